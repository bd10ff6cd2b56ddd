import itertools
import os
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Point the app at a throwaway database before anything imports it.
_TMP = Path(tempfile.mkdtemp(prefix="onlinebank-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["LOG_DIR"] = str(_TMP / "logs")
os.environ["SMTP_HOST"] = ""
os.environ["SEED_ON_STARTUP"] = "true"
os.environ["ENV"] = "dev"

from sqlmodel import Session  # noqa: E402

from onlinebank import models  # noqa: E402
from onlinebank.database import create_db_and_tables, engine  # noqa: E402
from onlinebank.seed import seed_database  # noqa: E402
from onlinebank.services import create_access_token, hash_password  # noqa: E402

_counter = itertools.count(1)


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Ensure a fresh, seeded SQLite database for the test session."""
    create_db_and_tables()
    with Session(engine) as session:
        seed_database(session)
    yield
    engine.dispose()
    db_path = _TMP / "test.db"
    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def main_branch(session):
    from onlinebank.repositories import BranchRepository

    return BranchRepository(session).get_main()


@pytest.fixture
def make_user(session, main_branch):
    """Create a user with a unique email and phone number."""
    def _make(role=models.UserRole.CUSTOMER, password="Secret@123", dob=date(1990, 5, 17), branch_id=None, **kw):
        n = next(_counter)
        user = models.User(
            full_name=kw.pop("full_name", f"Test User {n}"),
            email=kw.pop("email", f"user{n}@example.com"),
            phone_number=kw.pop("phone_number", f"9{n:09d}"),
            password_hash=hash_password(password),
            role=role,
            date_of_birth=dob,
            status=models.UserStatus.APPROVED,
            branch_id=branch_id or main_branch.id,
            is_email_verified=True,
            **kw,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return _make


@pytest.fixture
def make_account(session, main_branch):
    """Create an account with a unique number (Active, Savings by default)."""
    def _make(user, balance="10000", account_type=models.AccountType.SAVINGS,
              status=models.AccountStatus.ACTIVE, branch_id=None):
        n = next(_counter)
        account = models.Account(
            user_id=user.id,
            branch_id=branch_id or main_branch.id,
            account_number=f"TST{n:09d}",
            account_type=account_type,
            balance=Decimal(balance),
            status=status,
        )
        session.add(account)
        session.commit()
        session.refresh(account)
        return account
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}
    return _headers
