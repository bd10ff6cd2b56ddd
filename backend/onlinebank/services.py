"""Business logic services used by HTTP controllers.

This module holds the identity-side services (auth, users,
registration, OTP), branches and the read-only statistics. Money
movement lives in `banking.py`. Services are intentionally thin: they
validate, run domain logic and persist through repositories, raising
`ValueError` (or one of the subclasses below) when a rule is broken.
"""

import logging
import secrets
import string
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories, rules, schemas
from .config import settings
from .notifications import EmailService, email_service

logger = logging.getLogger("onlinebank.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS

OTP_VALID_MINUTES = 10
OTP_RATE_LIMIT = 3
OTP_RATE_WINDOW_MINUTES = 15
OTP_VERIFIED_WINDOW_MINUTES = 30

MIN_CUSTOMER_AGE = 18
MAX_CUSTOMER_AGE = 100
TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "@#$"


class NotFoundError(ValueError):
    """A referenced row does not exist (or is soft-deleted)."""


class ConflictError(ValueError):
    """A uniqueness rule would be broken."""


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return PWD_CTX.verify(password, password_hash)


def create_access_token(user: models.User, now: Optional[datetime] = None) -> str:
    """Sign a JWT carrying the user's id, email, name and role.

    The token is valid for `JWT_EXPIRE_HOURS` (24 by default) and is
    bound to the configured issuer and audience.
    """
    now = now or datetime.now(timezone.utc)
    role = user.role.value if isinstance(user.role, models.UserRole) else str(user.role)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.full_name,
        "role": role,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=JWT_EXPIRE_HOURS)).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, expiry, issuer and audience; raises `jwt.PyJWTError`."""
    return jwt.decode(
        token,
        JWT_SECRET,
        algorithms=[JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
    )


def generate_temp_password(length: int = 12) -> str:
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


class AuthService:
    """Credential checks and token issuance."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        """Return the user for valid credentials, `None` otherwise."""
        user = self.user_repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("invalid credentials for %s", email)
            return None
        if not user.is_active:
            logger.warning("login refused for deactivated user %s", email)
            return None
        return user

    def login(self, email: str, password: str) -> dict:
        """Verify credentials and return a token plus the user's profile.

        Raises `ValueError("Invalid credentials")` on failure.
        """
        user = self.authenticate(email, password)
        if user is None:
            raise ValueError("Invalid credentials")
        token = create_access_token(user)
        logger.info("user %s logged in", user.id)
        return {
            "token": token,
            "user": schemas.UserRead.model_validate(user).model_dump(mode="json"),
            "message": "Login successful",
        }


class UserService:
    """User lookups and admin-side maintenance."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def get(self, user_id: int) -> models.User:
        user = self.user_repo.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def list(self, role: Optional[models.UserRole] = None, search: Optional[str] = None) -> List[models.User]:
        users = self.user_repo.list_by_role(role) if role else self.user_repo.list()
        if search:
            needle = search.strip().lower()
            users = [u for u in users if needle in u.full_name.lower() or needle in u.email.lower()]
        return users

    def update(self, user_id: int, dto: schemas.ProfileUpdate, updated_by: str = "System") -> models.User:
        """Apply the fields set on `dto`; phone numbers stay unique."""
        user = self.get(user_id)
        changes = dto.model_dump(exclude_unset=True)
        phone = changes.get("phone_number")
        if phone and phone != user.phone_number:
            other = self.user_repo.get_by_phone(phone)
            if other is not None and other.id != user.id:
                raise ConflictError("Phone number already exists")
        for field, value in changes.items():
            setattr(user, field, value)
        user.touch(updated_by)
        self.user_repo.save(user)
        logger.info("user %s updated by %s", user_id, updated_by)
        return user

    def delete(self, user_id: int, deleted_by: str = "System") -> None:
        user = self.get(user_id)
        user.is_active = False
        self.user_repo.soft_delete(user, deleted_by)
        logger.info("user %s deleted by %s", user_id, deleted_by)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = self.get(user_id)
        if not verify_password(current_password, user.password_hash):
            raise ValueError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        user.touch(user.email)
        self.user_repo.save(user)
        logger.info("password changed for user %s", user_id)


class OtpService:
    """One-time codes mailed to an address for a given purpose."""
    def __init__(self, session: Session, mailer: EmailService = None):
        self.session = session
        self.otp_repo = repositories.OtpRepository(session)
        self.mailer = mailer or email_service

    def _generate_code(self) -> str:
        return f"{secrets.randbelow(900000) + 100000}"

    def _invalidate(self, email: str, purpose: models.OtpPurpose, now: datetime) -> None:
        for otp in self.otp_repo.list_unused(email, purpose):
            if models.as_utc(otp.expires_at) > now:
                otp.expires_at = now
                otp.touch()
                self.otp_repo.add(otp)

    def _issue(self, email: str, purpose: models.OtpPurpose, user_id: Optional[int]) -> models.OtpVerification:
        now = models.utcnow()
        self._invalidate(email, purpose, now)
        otp = models.OtpVerification(
            user_id=user_id if user_id and user_id > 0 else None,
            email=email,
            otp_code=self._generate_code(),
            purpose=purpose,
            expires_at=now + timedelta(minutes=OTP_VALID_MINUTES),
        )
        self.otp_repo.create(otp)
        purpose_label = purpose.name.replace("_", " ").lower()
        if not self.mailer.send_otp(email, otp.otp_code, purpose_label, OTP_VALID_MINUTES):
            raise ValueError("Failed to send OTP")
        logger.info("otp issued for %s (%s)", email, purpose.name)
        return otp

    def send(self, email: str, purpose: models.OtpPurpose, user_id: Optional[int] = None) -> models.OtpVerification:
        """Issue a fresh code unless the sender hit the rate limit.

        At most `OTP_RATE_LIMIT` codes per email and purpose are issued in
        any `OTP_RATE_WINDOW_MINUTES` window; older unused codes stop
        being valid once a new one goes out.
        """
        since = models.utcnow() - timedelta(minutes=OTP_RATE_WINDOW_MINUTES)
        if self.otp_repo.count_since(email, purpose, since) >= OTP_RATE_LIMIT:
            logger.warning("otp rate limit hit for %s (%s)", email, purpose.name)
            raise ValueError("Too many OTP requests. Please try again after some time.")
        return self._issue(email, purpose, user_id)

    def resend(self, email: str, purpose: models.OtpPurpose) -> models.OtpVerification:
        return self._issue(email, purpose, None)

    def verify(self, email: str, code: str, purpose: models.OtpPurpose) -> bool:
        otp = self.otp_repo.latest_valid(email, purpose, models.utcnow())
        if otp is None:
            return False
        if otp.otp_code != code:
            otp.attempt_count += 1
            otp.touch()
            self.otp_repo.save(otp)
            logger.warning("wrong otp for %s (attempt %s)", email, otp.attempt_count)
            return False
        otp.is_used = True
        otp.used_at = models.utcnow()
        otp.touch()
        self.otp_repo.save(otp)
        return True

    def is_email_verified(self, email: str, purpose: models.OtpPurpose) -> bool:
        since = models.utcnow() - timedelta(minutes=OTP_VERIFIED_WINDOW_MINUTES)
        return self.otp_repo.latest_used_since(email, purpose, since) is not None

    def cleanup_expired(self) -> int:
        expired = self.otp_repo.list_expired(models.utcnow())
        for otp in expired:
            otp.is_deleted = True
            otp.touch()
            self.otp_repo.add(otp)
        self.session.commit()
        return len(expired)


class PasswordResetService:
    """Forgotten-password flow on top of `OtpService` codes."""
    def __init__(self, session: Session, mailer: EmailService = None):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.otp_service = OtpService(session, mailer)

    def request(self, email: str) -> bool:
        """Mail a reset code; returns False (without mailing) for unknown emails.

        Callers answer both cases the same way so the endpoint does not
        reveal which addresses have accounts.
        """
        user = self.user_repo.get_by_email(email)
        if user is None or not user.is_active:
            logger.info("password reset requested for unknown email %s", email)
            return False
        self.otp_service.send(user.email, models.OtpPurpose.PASSWORD_RESET, user.id)
        return True

    def reset(self, email: str, code: str, new_password: str) -> models.User:
        user = self.user_repo.get_by_email(email)
        if user is None or not self.otp_service.verify(user.email, code, models.OtpPurpose.PASSWORD_RESET):
            raise ValueError("Invalid or expired reset code")
        user.password_hash = hash_password(new_password)
        user.touch(user.email)
        self.user_repo.save(user)
        logger.info("password reset for user %s", user.id)
        return user


class RegistrationService:
    """Customer self-registration and staff onboarding."""
    def __init__(self, session: Session, mailer: EmailService = None):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.branch_repo = repositories.BranchRepository(session)
        self.mailer = mailer or email_service
        self.otp_service = OtpService(session, self.mailer)

    def _ensure_unique(self, email: str, phone_number: str) -> None:
        if self.user_repo.get_by_email(email):
            raise ConflictError("Email already exists")
        if self.user_repo.get_by_phone(phone_number):
            raise ConflictError("Phone number already exists")

    def _persist(self, user: models.User) -> models.User:
        try:
            return self.user_repo.create(user)
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Email or phone number already exists") from exc

    def register_customer(self, dto: schemas.CustomerRegistration) -> models.User:
        """Create an approved customer attached to the main branch.

        The email must have been verified through an OTP for the
        `REGISTRATION` purpose within the last half hour.
        """
        if not self.otp_service.is_email_verified(dto.email, models.OtpPurpose.REGISTRATION):
            raise ValueError("Please verify your email with OTP first before registration.")
        self._ensure_unique(dto.email, dto.phone_number)
        age = rules.age_on(dto.date_of_birth)
        if age < MIN_CUSTOMER_AGE or age > MAX_CUSTOMER_AGE:
            raise ValueError(f"Age must be between {MIN_CUSTOMER_AGE} and {MAX_CUSTOMER_AGE} years")
        main_branch = self.branch_repo.get_main()
        user = models.User(
            full_name=dto.full_name,
            email=dto.email,
            phone_number=dto.phone_number,
            password_hash=hash_password(dto.password),
            role=models.UserRole.CUSTOMER,
            address=dto.address,
            date_of_birth=dto.date_of_birth,
            gender=dto.gender,
            status=models.UserStatus.APPROVED,
            is_active=True,
            is_email_verified=True,
            branch_id=main_branch.id if main_branch else None,
        )
        user = self._persist(user)
        self.mailer.send_welcome(user.email, user.full_name)
        logger.info("customer %s registered", user.id)
        return user

    def _employee_code(self, branch: models.Branch) -> str:
        return f"{branch.branch_code}{date.today():%Y%m%d}{secrets.randbelow(900) + 100}"

    def create_employee(self, dto: schemas.CreateEmployee, created_by: str = "System") -> dict:
        """Create branch staff with a generated employee code and password.

        Each branch can have only one active branch manager. The
        temporary password is mailed to the employee and also returned
        so an admin can hand it over.
        """
        branch = self.branch_repo.get(dto.branch_id)
        if branch is None:
            raise NotFoundError("Branch not found")
        if dto.role == models.UserRole.BRANCH_MANAGER and self.user_repo.get_branch_manager(branch.id):
            raise ConflictError("This branch already has a manager assigned")
        self._ensure_unique(dto.email, dto.phone_number)
        temp_password = generate_temp_password()
        user = models.User(
            full_name=dto.full_name,
            email=dto.email,
            phone_number=dto.phone_number,
            password_hash=hash_password(temp_password),
            role=dto.role,
            address=dto.address,
            date_of_birth=dto.date_of_birth,
            gender=dto.gender,
            status=models.UserStatus.APPROVED,
            is_active=True,
            is_email_verified=True,
            employee_code=self._employee_code(branch),
            branch_id=branch.id,
            created_by=created_by,
        )
        user = self._persist(user)
        if dto.role == models.UserRole.BRANCH_MANAGER:
            branch.manager_name = user.full_name
            branch.touch(created_by)
            self.branch_repo.save(branch)
        self.mailer.send_employee_credentials(user.email, user.full_name, user.employee_code, temp_password)
        logger.info("employee %s created for branch %s", user.id, branch.id)
        return {"user": user, "temporary_password": temp_password}


class BranchService:
    """Branch maintenance and per-branch statistics."""
    def __init__(self, session: Session):
        self.session = session
        self.branch_repo = repositories.BranchRepository(session)
        self.account_repo = repositories.AccountRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def get(self, branch_id: int) -> models.Branch:
        branch = self.branch_repo.get(branch_id)
        if branch is None:
            raise NotFoundError("Branch not found")
        return branch

    def list_active(self) -> List[models.Branch]:
        return self.branch_repo.list_active()

    def list_by_type(self, branch_type: models.BranchType) -> List[models.Branch]:
        return self.branch_repo.list_by_type(branch_type)

    def create(self, dto: schemas.CreateBranch, created_by: str = "System") -> models.Branch:
        if self.branch_repo.get_by_code(dto.branch_code):
            raise ConflictError("Branch code already exists")
        if self.branch_repo.get_by_ifsc(dto.ifsc_code):
            raise ConflictError("IFSC code already exists")
        branch = models.Branch(**dto.model_dump(), created_by=created_by)
        try:
            branch = self.branch_repo.create(branch)
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Branch code already exists") from exc
        logger.info("branch %s (%s) created", branch.id, branch.branch_code)
        return branch

    def update(self, branch_id: int, dto, updated_by: str = "System") -> models.Branch:
        """Apply the fields set on `dto` (`CreateBranch` or `UpdateBranch`)."""
        branch = self.get(branch_id)
        changes = dto.model_dump(exclude_unset=True, exclude_none=True)
        code = changes.get("branch_code")
        if code and code != branch.branch_code:
            other = self.branch_repo.get_by_code(code)
            if other is not None and other.id != branch.id:
                raise ConflictError("Branch code already exists")
        for field, value in changes.items():
            setattr(branch, field, value)
        branch.touch(updated_by)
        try:
            self.branch_repo.save(branch)
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Branch code or IFSC code already exists") from exc
        return branch

    def accounts(self, branch_id: int) -> List[models.Account]:
        self.get(branch_id)
        return self.account_repo.list_by_branch(branch_id)

    def manager_status(self, branch_id: int) -> dict:
        branch = self.get(branch_id)
        manager = self.user_repo.get_branch_manager(branch.id)
        return {
            "branch_id": branch.id,
            "branch_name": branch.branch_name,
            "has_manager": manager is not None,
            "manager_name": manager.full_name if manager else None,
            "manager_email": manager.email if manager else None,
        }

    def details(self, branch_id: int) -> dict:
        branch = self.get(branch_id)
        accounts = self.account_repo.list_by_branch(branch.id)
        status_counts = {s: 0 for s in models.AccountStatus}
        for a in accounts:
            status_counts[a.status] += 1
        return {
            "branch": schemas.BranchRead.model_validate(branch).model_dump(mode="json"),
            "total_accounts": len(accounts),
            "active_accounts": status_counts[models.AccountStatus.ACTIVE],
            "pending_accounts": status_counts[models.AccountStatus.PENDING],
            "dormant_accounts": status_counts[models.AccountStatus.DORMANT],
            "total_deposits": float(sum((a.balance for a in accounts), Decimal("0"))),
            "total_customers": len({a.user_id for a in accounts}),
            "manager": self.manager_status(branch.id),
        }


class StatsService:
    """Read-only statistics for the public overview and the admin and branch dashboards."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.branch_repo = repositories.BranchRepository(session)
        self.account_repo = repositories.AccountRepository(session)
        self.txn_repo = repositories.TransactionRepository(session)

    def bank_overview(self) -> dict:
        """Totals plus users with a transaction in the last 30 days."""
        since = models.utcnow() - timedelta(days=30)
        accounts = self.account_repo.list()
        owner_by_account = {a.id: a.user_id for a in accounts}
        active_users = set()
        for t in self.txn_repo.list():
            if models.as_utc(t.transaction_date) < since:
                continue
            for account_id in (t.from_account_id, t.to_account_id):
                if account_id in owner_by_account:
                    active_users.add(owner_by_account[account_id])
        return {
            "total_accounts": len(accounts),
            "total_transactions": self.txn_repo.count(),
            "active_users": len(active_users),
            "total_branches": self.branch_repo.count(),
        }

    def admin_dashboard(self) -> dict:
        accounts = self.account_repo.list()
        by_status = {s.name.lower(): 0 for s in models.AccountStatus}
        for a in accounts:
            by_status[models.AccountStatus(a.status).name.lower()] += 1
        today = models.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        users = self.user_repo.list()
        return {
            "total_users": len(users),
            "total_customers": sum(1 for u in users if u.role == models.UserRole.CUSTOMER),
            "total_branch_managers": sum(1 for u in users if u.role == models.UserRole.BRANCH_MANAGER),
            "total_branches": self.branch_repo.count(),
            "total_accounts": len(accounts),
            "accounts_by_status": by_status,
            "total_balance": float(Decimal(str(self.account_repo.total_balance()))),
            "total_transactions": self.txn_repo.count(),
            "transactions_today": self.txn_repo.count_since(today),
            "pending_transactions": len(self.txn_repo.list_pending()),
            "pending_accounts": by_status["pending"],
        }

    def branch_dashboard(self, branch_id: Optional[int]) -> dict:
        """A branch manager's overview of the accounts and traffic at their branch."""
        if branch_id is None:
            raise ValueError("Branch manager not assigned to branch")
        branch = self.branch_repo.get(branch_id)
        if branch is None:
            raise NotFoundError("Branch not found")
        accounts = self.account_repo.list_by_branch(branch.id)
        by_status = {s.name.lower(): 0 for s in models.AccountStatus}
        for a in accounts:
            by_status[models.AccountStatus(a.status).name.lower()] += 1
        account_ids = [a.id for a in accounts]
        txns = self.txn_repo.list_for_accounts(account_ids)
        today = models.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = today.replace(day=1)
        return {
            "branch_id": branch.id,
            "branch_name": branch.branch_name,
            "branch_code": branch.branch_code,
            "total_accounts": len(accounts),
            "accounts_by_status": by_status,
            "total_balance": float(sum((Decimal(str(a.balance)) for a in accounts), Decimal("0"))),
            "total_customers": len({a.user_id for a in accounts}),
            "today_transactions": sum(1 for t in txns if models.as_utc(t.transaction_date) >= today),
            "monthly_transactions": sum(1 for t in txns if models.as_utc(t.transaction_date) >= month_start),
            "pending_approvals": len(self.txn_repo.list_pending(branch.id)),
            "pending_accounts": by_status["pending"],
        }
