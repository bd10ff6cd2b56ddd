"""SQLModel data models.

This module defines the bank's database tables using SQLModel together
with the enums stored in them. Every table inherits `BaseEntity`, which
carries the audit columns and the `is_deleted` soft-delete flag; rows
are never removed physically.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum, IntEnum
from typing import List, Optional

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field, Relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values (SQLite reads them back naive) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UserRole(str, Enum):
    ADMIN = "Admin"
    BRANCH_MANAGER = "BranchManager"
    CUSTOMER = "Customer"


class UserStatus(IntEnum):
    PENDING = 0
    APPROVED = 1
    REJECTED = 2


class Gender(IntEnum):
    MALE = 0
    FEMALE = 1
    OTHER = 2


class AccountStatus(IntEnum):
    PENDING = 0
    VERIFIED = 1
    ACTIVE = 2
    DORMANT = 3
    CLOSED = 4
    REJECTED = 5


class AccountType(IntEnum):
    SAVINGS = 0
    CURRENT = 1
    MINOR = 2
    MAJOR = 3


class TransactionType(IntEnum):
    DEPOSIT = 0
    WITHDRAWAL = 1
    TRANSFER = 2


class TransactionStatus(IntEnum):
    PENDING = 0
    PROCESSING = 1
    COMPLETED = 2
    FAILED = 3
    CANCELLED = 4


class DepositMode(IntEnum):
    CASH = 1
    CHEQUE = 2
    ONLINE_TRANSFER = 3
    DEMAND_DRAFT = 4
    NEFT = 5
    RTGS = 6
    UPI = 7
    IMPS = 8


class WithdrawalMode(IntEnum):
    BANK_COUNTER = 0
    ATM = 1
    CHEQUE = 2


class BranchType(IntEnum):
    MAIN = 0
    URBAN = 1
    RURAL = 2
    SEMI_URBAN = 3


class OtpPurpose(IntEnum):
    REGISTRATION = 0
    LOGIN = 1
    PASSWORD_RESET = 2
    TRANSACTION_APPROVAL = 3
    PROFILE_UPDATE = 4
    ACCOUNT_ACTIVATION = 5


class BaseEntity(SQLModel):
    """Audit and soft-delete columns shared by every table."""
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str = Field(default="System", max_length=100)
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = Field(default=None, max_length=100)
    is_deleted: bool = Field(default=False, index=True)

    def touch(self, by: str = "System"):
        self.updated_at = utcnow()
        self.updated_by = by


class Branch(BaseEntity, table=True):
    """A bank branch. `branch_code` and `ifsc_code` are unique."""
    __tablename__ = "branches"

    branch_code: str = Field(max_length=10, unique=True, index=True)
    branch_name: str = Field(max_length=100)
    address: str = Field(max_length=500)
    city: str = Field(max_length=50)
    state: str = Field(max_length=50)
    ifsc_code: str = Field(max_length=11, unique=True)
    postal_code: Optional[str] = Field(default=None, max_length=10)
    phone_number: Optional[str] = Field(default=None, max_length=15)
    email: Optional[str] = Field(default=None, max_length=100)
    manager_name: Optional[str] = Field(default=None, max_length=100)
    branch_type: BranchType = BranchType.URBAN
    is_active: bool = True
    is_main_branch: bool = False

    accounts: List["Account"] = Relationship(back_populates="branch")
    users: List["User"] = Relationship(back_populates="branch")


class User(BaseEntity, table=True):
    """A customer or an employee of the bank.

    Fields:
    - `email`, `phone_number`: unique login/contact identifiers
    - `password_hash`: hashed password string (never store plaintext)
    - `employee_code`: only set for branch staff
    """
    __tablename__ = "users"

    full_name: str = Field(max_length=100)
    email: str = Field(max_length=100, unique=True, index=True)
    phone_number: str = Field(max_length=15, unique=True)
    password_hash: str
    role: UserRole = UserRole.CUSTOMER
    address: Optional[str] = Field(default=None, max_length=500)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    status: UserStatus = UserStatus.PENDING
    is_active: bool = True
    is_email_verified: bool = False
    employee_code: Optional[str] = Field(default=None, max_length=30)
    branch_id: Optional[int] = Field(default=None, foreign_key="branches.id")

    branch: Optional[Branch] = Relationship(back_populates="users")
    accounts: List["Account"] = Relationship(back_populates="user")
    otps: List["OtpVerification"] = Relationship(back_populates="user")


class Account(BaseEntity, table=True):
    """A bank account owned by a user and held at a branch."""
    __tablename__ = "accounts"

    user_id: int = Field(foreign_key="users.id", index=True)
    branch_id: int = Field(foreign_key="branches.id", index=True)
    account_number: str = Field(min_length=8, max_length=20, unique=True, index=True)
    account_type: AccountType = AccountType.SAVINGS
    balance: Decimal = Field(default=Decimal("0.00"), max_digits=18, decimal_places=2)
    opened_date: datetime = Field(default_factory=utcnow)
    is_active: bool = True
    last_transaction_date: Optional[datetime] = None
    status: AccountStatus = AccountStatus.PENDING

    user: Optional[User] = Relationship(back_populates="accounts")
    branch: Optional[Branch] = Relationship(back_populates="accounts")


class Transaction(BaseEntity, table=True):
    """Money movement between accounts.

    Deposits only have a destination, withdrawals only a source and
    transfers both, so both account links are nullable.
    """
    __tablename__ = "transactions"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),)

    from_account_id: Optional[int] = Field(default=None, foreign_key="accounts.id", index=True)
    to_account_id: Optional[int] = Field(default=None, foreign_key="accounts.id", index=True)
    amount: Decimal = Field(max_digits=18, decimal_places=2, gt=0)
    transaction_type: TransactionType
    transaction_date: datetime = Field(default_factory=utcnow, index=True)
    description: Optional[str] = Field(default=None, max_length=500)
    transaction_reference: Optional[str] = Field(default=None, max_length=50)
    status: TransactionStatus = TransactionStatus.PENDING
    balance_after_transaction: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=2)
    receipt_path: Optional[str] = Field(default=None, max_length=255)

    from_account: Optional[Account] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[Transaction.from_account_id]"}
    )
    to_account: Optional[Account] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[Transaction.to_account_id]"}
    )


class OtpVerification(BaseEntity, table=True):
    """A one-time code mailed to `email` for a given purpose."""
    __tablename__ = "otp_verifications"

    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    email: str = Field(max_length=100, index=True)
    otp_code: str = Field(max_length=6)
    purpose: OtpPurpose
    expires_at: datetime
    is_used: bool = False
    used_at: Optional[datetime] = None
    attempt_count: int = 0

    user: Optional[User] = Relationship(back_populates="otps")
