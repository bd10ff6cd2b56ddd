"""Initial data for an empty database.

Creates the three starting branches, the system administrator and a
sample savings account owned by the admin. Safe to run repeatedly: once
the admin exists nothing is written.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlmodel import Session

from . import models, repositories
from .services import hash_password

logger = logging.getLogger("onlinebank.seed")

ADMIN_EMAIL = "admin@onlinebank.com"
ADMIN_PASSWORD = "Admin@123"
SAMPLE_ACCOUNT_NUMBER = "ACC001234567890"

SEED_BRANCHES = [
    {
        "branch_code": "OBS001",
        "branch_name": "Main Branch",
        "address": "123 Banking Street, Financial District",
        "city": "Mumbai",
        "state": "Maharashtra",
        "ifsc_code": "OBSN0000001",
        "manager_name": "Rajesh Kumar",
        "phone_number": "+912222661234",
        "branch_type": models.BranchType.MAIN,
        "is_main_branch": True,
    },
    {
        "branch_code": "OBS002",
        "branch_name": "Delhi Branch",
        "address": "Connaught Place, New Delhi",
        "city": "New Delhi",
        "state": "Delhi",
        "ifsc_code": "OBSN0000002",
        "manager_name": "Priya Sharma",
        "phone_number": "+911123456789",
        "branch_type": models.BranchType.URBAN,
    },
    {
        "branch_code": "OBS003",
        "branch_name": "Bangalore Branch",
        "address": "Koramangala, Bangalore",
        "city": "Bangalore",
        "state": "Karnataka",
        "ifsc_code": "OBSN0000003",
        "manager_name": "Sunita Reddy",
        "phone_number": "+918012345678",
        "branch_type": models.BranchType.SEMI_URBAN,
    },
]


def seed_branches(session: Session) -> int:
    repo = repositories.BranchRepository(session)
    created = 0
    for data in SEED_BRANCHES:
        if repo.get_by_code(data["branch_code"]) is None:
            repo.add(models.Branch(**data))
            created += 1
    session.commit()
    return created


def seed_database(session: Session) -> dict:
    """Seed branches, the admin user and the sample account."""
    branches_created = seed_branches(session)
    user_repo = repositories.UserRepository(session)
    if user_repo.get_by_email(ADMIN_EMAIL) is not None:
        logger.info("admin already exists, skipping seed")
        return {"branches": branches_created, "admin": False, "account": False}

    branch = repositories.BranchRepository(session).get_main()
    admin = user_repo.create(
        models.User(
            full_name="System Administrator",
            email=ADMIN_EMAIL,
            phone_number="9321578963",
            password_hash=hash_password(ADMIN_PASSWORD),
            role=models.UserRole.ADMIN,
            status=models.UserStatus.APPROVED,
            address="Bank Headquarters",
            date_of_birth=date(1980, 1, 1),
            branch_id=branch.id,
            is_active=True,
            is_email_verified=True,
        )
    )

    account_repo = repositories.AccountRepository(session)
    account_created = False
    if not account_repo.number_exists(SAMPLE_ACCOUNT_NUMBER):
        account_repo.create(
            models.Account(
                user_id=admin.id,
                branch_id=branch.id,
                account_number=SAMPLE_ACCOUNT_NUMBER,
                account_type=models.AccountType.SAVINGS,
                balance=Decimal("10000.00"),
                status=models.AccountStatus.ACTIVE,
                is_active=True,
            )
        )
        account_created = True
    logger.info("seeded admin user %s and sample account", admin.id)
    return {"branches": branches_created, "admin": True, "account": account_created}
