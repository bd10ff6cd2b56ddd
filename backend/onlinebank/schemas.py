"""Pydantic request/response schemas used by the API.

Request schemas double as the DTO validators: each field check raises a
`ValueError` whose text is the exact message returned to clients inside
the response envelope. Read schemas are built from ORM rows with
`from_attributes` and expose money as plain numbers.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator, model_validator

from .models import (
    AccountStatus,
    AccountType,
    BranchType,
    DepositMode,
    Gender,
    OtpPurpose,
    TransactionStatus,
    TransactionType,
    UserRole,
    WithdrawalMode,
    as_utc,
)

ACCOUNT_NUMBER_RE = re.compile(r"^[A-Za-z0-9]+$")
IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
BRANCH_PHONE_RE = re.compile(r"^\d{10}$")
MOBILE_RE = re.compile(r"^[6-9]\d{9}$")
FULL_NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
PIN_RE = re.compile(r"^\d{4}$")
OTP_RE = re.compile(r"^\d{6}$")

PASSWORD_SPECIALS = "@$!%*?&"

ID_PROOF_TYPES = ("Passport", "NationalID", "DrivingLicense")

DEPOSIT_CEILING = Decimal("1000000")
TRANSFER_CEILING = Decimal("500000")
WITHDRAWAL_CEILING = Decimal("200000")


def check_account_number(value: Optional[str], label: str) -> str:
    """Shared rule for every account-number field."""
    if not value or not value.strip():
        raise ValueError(f"{label} is required")
    value = value.strip()
    if not 8 <= len(value) <= 20:
        raise ValueError(f"{label} must be between 8 and 20 characters")
    if not ACCOUNT_NUMBER_RE.match(value):
        raise ValueError(f"{label} can only contain letters and numbers")
    return value


def check_max_length(value: Optional[str], limit: int, label: str) -> Optional[str]:
    if value is not None and len(value) > limit:
        raise ValueError(f"{label} cannot exceed {limit} characters")
    return value


def check_password_strength(value: str) -> str:
    if not value:
        raise ValueError("Password is required")
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if len(value) > 100:
        raise ValueError("Password cannot exceed 100 characters")
    if not (
        re.search(r"[a-z]", value)
        and re.search(r"[A-Z]", value)
        and re.search(r"\d", value)
        and any(c in PASSWORD_SPECIALS for c in value)
    ):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number and one special character"
        )
    return value


# --- auth / users ---------------------------------------------------------

class LoginIn(BaseModel):
    """Payload for the JSON login endpoint."""
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    """Fields a signed-in user may change on their own profile."""
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None

    @field_validator("full_name")
    @classmethod
    def _full_name(cls, v):
        if v is not None and not 2 <= len(v.strip()) <= 100:
            raise ValueError("Full name must be between 2 and 100 characters")
        return v

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, v):
        if v is not None and not MOBILE_RE.match(v):
            raise ValueError("Phone number must be a valid 10-digit Indian mobile number")
        return v

    @field_validator("address")
    @classmethod
    def _address(cls, v):
        return check_max_length(v, 500, "Address")


class UserUpdate(ProfileUpdate):
    """Admin-side user update."""
    is_active: Optional[bool] = None
    is_email_verified: Optional[bool] = None


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    role: UserRole
    status: int
    is_active: bool
    is_email_verified: bool
    employee_code: Optional[str] = None
    branch_id: Optional[int] = None
    created_at: datetime


# --- registration ---------------------------------------------------------

class CustomerRegistration(BaseModel):
    """Self-service customer sign-up, allowed once the email is OTP-verified."""
    full_name: str
    email: EmailStr
    phone_number: str
    password: str
    confirm_password: str
    address: Optional[str] = None
    date_of_birth: date
    gender: Optional[Gender] = None

    @field_validator("full_name")
    @classmethod
    def _full_name(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("Full name is required")
        if not 2 <= len(v) <= 100:
            raise ValueError("Full name must be between 2 and 100 characters")
        if not FULL_NAME_RE.match(v):
            raise ValueError("Full name can only contain letters and spaces")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return check_max_length(v, 100, "Email")

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, v):
        if not v or not MOBILE_RE.match(v):
            raise ValueError("Phone number must be a valid 10-digit Indian mobile number")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        return check_password_strength(v)

    @field_validator("address")
    @classmethod
    def _address(cls, v):
        return check_max_length(v, 500, "Address")

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class CreateEmployee(BaseModel):
    """Admin payload for creating branch staff."""
    full_name: str
    email: EmailStr
    phone_number: str
    address: str
    date_of_birth: date
    role: UserRole = UserRole.BRANCH_MANAGER
    branch_id: int
    gender: Optional[Gender] = None

    @field_validator("full_name")
    @classmethod
    def _full_name(cls, v):
        v = (v or "").strip()
        if not 2 <= len(v) <= 100:
            raise ValueError("Full name must be between 2 and 100 characters")
        return v

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, v):
        if not v or not MOBILE_RE.match(v):
            raise ValueError("Phone number must be a valid 10-digit Indian mobile number")
        return v

    @field_validator("branch_id")
    @classmethod
    def _branch(cls, v):
        if v <= 0:
            raise ValueError("Valid branch is required")
        return v


class ChangePassword(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def _password(cls, v):
        return check_password_strength(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordReset(BaseModel):
    """Sets a new password once the emailed reset code checks out."""
    email: EmailStr
    otp_code: str
    new_password: str
    confirm_password: str

    @field_validator("otp_code")
    @classmethod
    def _otp(cls, v):
        if not v or not OTP_RE.match(v):
            raise ValueError("OTP must be 6 digits")
        return v

    @field_validator("new_password")
    @classmethod
    def _password(cls, v):
        return check_password_strength(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


# --- otp ------------------------------------------------------------------

class OtpRequest(BaseModel):
    email: EmailStr
    purpose: OtpPurpose = OtpPurpose.REGISTRATION
    user_id: Optional[int] = None


class OtpVerify(BaseModel):
    email: EmailStr
    otp_code: str
    purpose: OtpPurpose = OtpPurpose.REGISTRATION

    @field_validator("otp_code")
    @classmethod
    def _code(cls, v):
        if not v or not OTP_RE.match(v):
            raise ValueError("OTP must be 6 digits")
        return v


# --- branches -------------------------------------------------------------

class CreateBranch(BaseModel):
    """Payload for creating a branch (and for a full PUT update)."""
    branch_name: str
    branch_code: str
    address: str
    city: str
    state: str
    ifsc_code: str
    postal_code: Optional[str] = None
    phone_number: str
    email: EmailStr
    branch_type: BranchType = BranchType.URBAN
    manager_name: Optional[str] = None
    is_active: Optional[bool] = True
    is_main_branch: Optional[bool] = False

    @field_validator("branch_name")
    @classmethod
    def _name(cls, v):
        if not v or not v.strip():
            raise ValueError("Branch name is required")
        return check_max_length(v.strip(), 100, "Branch name")

    @field_validator("branch_code")
    @classmethod
    def _code(cls, v):
        if not v or not v.strip():
            raise ValueError("Branch code is required")
        return check_max_length(v.strip().upper(), 10, "Branch code")

    @field_validator("address")
    @classmethod
    def _address(cls, v):
        if not v or not v.strip():
            raise ValueError("Address is required")
        return check_max_length(v, 500, "Address")

    @field_validator("city", "state")
    @classmethod
    def _region(cls, v, info):
        label = info.field_name.capitalize()
        if not v or not v.strip():
            raise ValueError(f"{label} is required")
        return check_max_length(v, 50, label)

    @field_validator("ifsc_code")
    @classmethod
    def _ifsc(cls, v):
        if not v or not IFSC_RE.match(v):
            raise ValueError("Invalid IFSC code format")
        return v

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, v):
        if not v or not BRANCH_PHONE_RE.match(v):
            raise ValueError("Phone number must be 10 digits")
        return v


class UpdateBranch(BaseModel):
    """Partial branch update; only the fields that are set get applied."""
    branch_name: Optional[str] = None
    branch_code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    ifsc_code: Optional[str] = None
    postal_code: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    branch_type: Optional[BranchType] = None
    manager_name: Optional[str] = None
    is_active: Optional[bool] = None
    is_main_branch: Optional[bool] = None

    @field_validator("ifsc_code")
    @classmethod
    def _ifsc(cls, v):
        if v is not None and not IFSC_RE.match(v):
            raise ValueError("Invalid IFSC code format")
        return v

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, v):
        if v is not None and not BRANCH_PHONE_RE.match(v):
            raise ValueError("Phone number must be 10 digits")
        return v

    @field_validator("branch_code")
    @classmethod
    def _code(cls, v):
        return check_max_length(v.strip().upper(), 10, "Branch code") if v is not None else v


class BranchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    branch_name: str
    branch_code: str
    address: str
    city: str
    state: str
    ifsc_code: str
    postal_code: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    manager_name: Optional[str] = None
    branch_type: BranchType
    is_active: bool
    is_main_branch: bool


# --- accounts -------------------------------------------------------------

class CreateAccount(BaseModel):
    """Customer request to open an account (KYC details and consents)."""
    account_type: AccountType
    initial_deposit: Decimal = Decimal("0")
    purpose: str = ""
    branch_id: int
    city: str
    state: str
    postal_code: str
    country: str
    occupation: str
    monthly_income: Optional[Decimal] = None
    emergency_contact_name: str
    emergency_contact_phone: str
    alternate_contact_phone: Optional[str] = None
    id_proof_type: str
    id_proof_number: str
    terms_and_conditions_accepted: bool
    privacy_policy_accepted: bool
    anti_money_laundering_consent: bool

    @field_validator("initial_deposit")
    @classmethod
    def _deposit(cls, v):
        if v < 0 or v > DEPOSIT_CEILING:
            raise ValueError("Initial deposit must be between ₹0 and ₹10,00,000")
        return v

    @field_validator("branch_id")
    @classmethod
    def _branch(cls, v):
        if v <= 0:
            raise ValueError("Valid branch is required")
        return v

    @field_validator("city", "state", "postal_code", "country", "occupation",
                     "emergency_contact_name", "id_proof_number")
    @classmethod
    def _required(cls, v, info):
        if not v or not v.strip():
            label = info.field_name.replace("_", " ").capitalize()
            raise ValueError(f"{label} is required")
        return v.strip()

    @field_validator("emergency_contact_phone")
    @classmethod
    def _emergency_phone(cls, v):
        if not v or not BRANCH_PHONE_RE.match(v):
            raise ValueError("Emergency contact phone must be 10 digits")
        return v

    @field_validator("id_proof_type")
    @classmethod
    def _id_proof(cls, v):
        if v not in ID_PROOF_TYPES:
            raise ValueError("ID proof type must be Passport, NationalID or DrivingLicense")
        return v

    @model_validator(mode="after")
    def _consents(self):
        if not self.terms_and_conditions_accepted:
            raise ValueError("You must accept the terms and conditions")
        if not self.privacy_policy_accepted:
            raise ValueError("You must accept the privacy policy")
        if not self.anti_money_laundering_consent:
            raise ValueError("Anti-money laundering consent is required")
        return self


class VerifyAccount(BaseModel):
    is_approved: bool = True
    remarks: Optional[str] = None

    @field_validator("remarks")
    @classmethod
    def _remarks(cls, v):
        return check_max_length(v, 500, "Remarks")


class AccountStatusUpdate(BaseModel):
    status: AccountStatus
    reason: Optional[str] = None


class AccountRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_number: str
    account_type: AccountType
    balance: float
    opened_date: datetime
    user_id: int
    branch_id: int
    status: AccountStatus
    is_active: bool
    last_transaction_date: Optional[datetime] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    branch_name: Optional[str] = None
    is_dormant: bool = False

    @classmethod
    def from_account(cls, account) -> "AccountRead":
        out = cls.model_validate(account)
        out.is_dormant = account.status == AccountStatus.DORMANT
        if account.user is not None:
            out.user_name = account.user.full_name
            out.user_email = account.user.email
        if account.branch is not None:
            out.branch_name = account.branch.branch_name
        return out


# --- transactions ---------------------------------------------------------

class DepositRequest(BaseModel):
    to_account_number: str
    amount: Decimal
    deposit_mode: DepositMode = DepositMode.CASH
    reference_number: Optional[str] = None
    branch_id: Optional[int] = None
    depositor_name: str
    description: Optional[str] = None

    @field_validator("to_account_number")
    @classmethod
    def _account(cls, v):
        return check_account_number(v, "Account number")

    @field_validator("amount")
    @classmethod
    def _amount(cls, v):
        if v <= 0:
            raise ValueError("Deposit amount must be greater than zero")
        if v > DEPOSIT_CEILING:
            raise ValueError("Deposit amount cannot exceed ₹10,00,000")
        return v

    @field_validator("depositor_name")
    @classmethod
    def _depositor(cls, v):
        if not v or not v.strip():
            raise ValueError("Depositor name is required")
        return check_max_length(v.strip(), 200, "Depositor name")

    @field_validator("description")
    @classmethod
    def _description(cls, v):
        return check_max_length(v, 500, "Description")

    @field_validator("reference_number")
    @classmethod
    def _reference(cls, v):
        return check_max_length(v, 100, "Reference number")


class WithdrawalRequest(BaseModel):
    from_account_number: str
    amount: Decimal
    description: Optional[str] = None
    pin: Optional[str] = None
    withdrawal_mode: WithdrawalMode = WithdrawalMode.BANK_COUNTER
    branch_id: int = 1
    reference_number: Optional[str] = None

    @field_validator("from_account_number")
    @classmethod
    def _account(cls, v):
        return check_account_number(v, "Account number")

    @field_validator("amount")
    @classmethod
    def _amount(cls, v):
        if v <= 0:
            raise ValueError("Withdrawal amount must be greater than zero")
        if v > WITHDRAWAL_CEILING:
            raise ValueError("Maximum withdrawal limit is ₹2,00,000")
        return v

    @field_validator("pin")
    @classmethod
    def _pin(cls, v):
        if v and not PIN_RE.match(v):
            raise ValueError("PIN must be 4 digits")
        return v

    @field_validator("branch_id")
    @classmethod
    def _branch(cls, v):
        if v <= 0:
            raise ValueError("Valid branch is required")
        return v

    @field_validator("description")
    @classmethod
    def _description(cls, v):
        return check_max_length(v, 500, "Description")

    @model_validator(mode="after")
    def _cheque_reference(self):
        if self.withdrawal_mode == WithdrawalMode.CHEQUE and not (self.reference_number or "").strip():
            raise ValueError("Cheque number is required for cheque withdrawals")
        return self


class TransferRequest(BaseModel):
    from_account_number: str
    to_account_number: str
    amount: Decimal
    description: Optional[str] = None
    reference: Optional[str] = None

    @field_validator("from_account_number")
    @classmethod
    def _from(cls, v):
        return check_account_number(v, "From account number")

    @field_validator("to_account_number")
    @classmethod
    def _to(cls, v):
        return check_account_number(v, "To account number")

    @field_validator("amount")
    @classmethod
    def _amount(cls, v):
        if v <= 0:
            raise ValueError("Transfer amount must be greater than zero")
        if v > TRANSFER_CEILING:
            raise ValueError("Transfer amount cannot exceed ₹5,00,000")
        return v

    @field_validator("description")
    @classmethod
    def _description(cls, v):
        return check_max_length(v, 500, "Description")

    @field_validator("reference")
    @classmethod
    def _reference(cls, v):
        return check_max_length(v, 100, "Reference")


class TransactionApproval(BaseModel):
    is_approved: bool
    remarks: Optional[str] = None

    @field_validator("remarks")
    @classmethod
    def _remarks(cls, v):
        return check_max_length(v, 500, "Remarks")

    @model_validator(mode="after")
    def _rejection_needs_remarks(self):
        if not self.is_approved and not (self.remarks or "").strip():
            raise ValueError("Remarks are required when rejecting a transaction")
        return self


class TransactionFilter(BaseModel):
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    transaction_type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    account_id: Optional[int] = None
    page_number: int = 1
    page_size: int = 10

    @field_validator("from_date", "to_date")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)

    @field_validator("page_number")
    @classmethod
    def _page(cls, v):
        if v < 1:
            raise ValueError("Page number must be at least 1")
        return v

    @field_validator("page_size")
    @classmethod
    def _page_size(cls, v):
        if not 1 <= v <= 100:
            raise ValueError("Page size must be between 1 and 100")
        return v

    @model_validator(mode="after")
    def _ranges(self):
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("From date cannot be after to date")
        if self.min_amount is not None and self.max_amount is not None and self.min_amount > self.max_amount:
            raise ValueError("Minimum amount cannot exceed maximum amount")
        return self


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_reference: Optional[str] = None
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    from_account_number: Optional[str] = None
    to_account_number: Optional[str] = None
    amount: float
    transaction_type: TransactionType
    status: TransactionStatus
    description: Optional[str] = None
    transaction_date: datetime
    balance_after_transaction: Optional[float] = None
    receipt_path: Optional[str] = None

    @classmethod
    def from_transaction(cls, txn) -> "TransactionRead":
        out = cls.model_validate(txn)
        if txn.from_account is not None:
            out.from_account_number = txn.from_account.account_number
        if txn.to_account is not None:
            out.to_account_number = txn.to_account.account_number
        return out


class TransactionDetail(TransactionRead):
    """A history row as seen by one customer."""
    direction: str
    display_description: str


class PagedResult(BaseModel):
    items: List[Any]
    total_count: int
    page_number: int
    page_size: int
    total_pages: int
