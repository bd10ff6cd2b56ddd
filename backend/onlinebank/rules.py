"""Banking business rules.

`BusinessRulesEngine` holds bank-wide limits, fees, approval thresholds
and the transaction status machine. `AccountTypeRules` layers the
per-account-type limits (minor/major/savings/current) on top. Both are
pure: they read rows but never write them, and report violations as
`(ok, message)` tuples so services decide how to surface them.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from .models import (
    Account,
    AccountStatus,
    AccountType,
    Gender,
    TransactionStatus,
    TransactionType,
    as_utc,
    utcnow,
)

HIGH_VALUE_TRANSACTION_LIMIT = Decimal("100000")
DAILY_TRANSACTION_LIMIT = Decimal("500000")
MINOR_ACCOUNT_LIMIT = Decimal("50000")
MIN_TRANSACTION_AMOUNT = Decimal("0.01")
MAX_TRANSACTION_AMOUNT = Decimal("1000000")
MINIMUM_AGE = 18
DORMANT_ACCOUNT_DAYS = 365

TRANSFER_FEE_THRESHOLD = Decimal("10000")
TRANSFER_FEE = Decimal("10")
WITHDRAWAL_FEE_THRESHOLD = Decimal("5000")
WITHDRAWAL_FEE = Decimal("5")

APPROVAL_LEVEL_TELLER = "Teller"
APPROVAL_LEVEL_MANAGER = "Manager"

VALID_TRANSITIONS = {
    TransactionStatus.PENDING: {TransactionStatus.PROCESSING},
    TransactionStatus.PROCESSING: {TransactionStatus.COMPLETED, TransactionStatus.FAILED},
}

DEBIT_TYPES = (TransactionType.WITHDRAWAL, TransactionType.TRANSFER)

RuleResult = Tuple[bool, Optional[str]]


def age_on(date_of_birth: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def rupees(amount) -> str:
    return f"₹{Decimal(amount):,.2f}"


class BusinessRulesEngine:
    """Bank-wide transaction rules."""

    def validate_transaction(
        self,
        account: Account,
        amount: Decimal,
        transaction_type: TransactionType,
        to_account: Optional[Account] = None,
    ) -> RuleResult:
        if amount < MIN_TRANSACTION_AMOUNT:
            return False, f"Amount must be at least {rupees(MIN_TRANSACTION_AMOUNT)}"
        if amount > MAX_TRANSACTION_AMOUNT:
            return False, f"Amount cannot exceed {rupees(MAX_TRANSACTION_AMOUNT)}"
        if not account.is_active or account.status != AccountStatus.ACTIVE:
            return False, "Account is not active"
        if transaction_type in DEBIT_TYPES and account.balance < amount:
            return False, "Insufficient balance"
        if transaction_type == TransactionType.TRANSFER and to_account is not None and to_account.id == account.id:
            return False, "Cannot transfer to the same account"
        if account.account_type == AccountType.MINOR and amount > MINOR_ACCOUNT_LIMIT:
            return False, f"Minor accounts cannot transact more than {rupees(MINOR_ACCOUNT_LIMIT)}"
        return True, None

    def requires_approval(self, amount: Decimal) -> bool:
        return amount > HIGH_VALUE_TRANSACTION_LIMIT

    def approval_level(self, amount: Decimal) -> str:
        return APPROVAL_LEVEL_MANAGER if amount > HIGH_VALUE_TRANSACTION_LIMIT else APPROVAL_LEVEL_TELLER

    def calculate_fee(self, transaction_type: TransactionType, amount: Decimal) -> Decimal:
        if transaction_type == TransactionType.TRANSFER and amount > TRANSFER_FEE_THRESHOLD:
            return TRANSFER_FEE
        if transaction_type == TransactionType.WITHDRAWAL and amount > WITHDRAWAL_FEE_THRESHOLD:
            return WITHDRAWAL_FEE
        return Decimal("0")

    def classify_account(self, date_of_birth: date, gender: Optional[Gender] = None, today: Optional[date] = None) -> Tuple[bool, bool]:
        """Return `(is_minor, is_girl_child)` for an account holder."""
        is_minor = age_on(date_of_birth, today) < MINIMUM_AGE
        return is_minor, is_minor and gender == Gender.FEMALE

    def should_transition_to_major(self, date_of_birth: date, today: Optional[date] = None) -> bool:
        return age_on(date_of_birth, today) >= MINIMUM_AGE

    def is_valid_status_transition(self, current: TransactionStatus, new: TransactionStatus) -> bool:
        return new in VALID_TRANSITIONS.get(current, ())

    def is_dormant(self, last_activity: Optional[datetime], now: Optional[datetime] = None) -> bool:
        if last_activity is None:
            return False
        now = now or utcnow()
        return as_utc(now) - as_utc(last_activity) > timedelta(days=DORMANT_ACCOUNT_DAYS)


class AccountTypeRules:
    """Per-account-type limits.

    `daily_debits` callers pass the sum of today's completed debits so the
    daily-limit check does not need its own database access.
    """

    DAILY_LIMITS = {
        AccountType.MINOR: Decimal("10000"),
        AccountType.MAJOR: Decimal("100000"),
        AccountType.SAVINGS: Decimal("50000"),
        AccountType.CURRENT: Decimal("200000"),
    }
    MINIMUM_BALANCES = {
        AccountType.MINOR: Decimal("500"),
        AccountType.MAJOR: Decimal("1000"),
        AccountType.SAVINGS: Decimal("1000"),
        AccountType.CURRENT: Decimal("5000"),
    }
    APPROVAL_THRESHOLDS = {
        AccountType.MINOR: Decimal("5000"),
        AccountType.SAVINGS: Decimal("100000"),
        AccountType.CURRENT: Decimal("500000"),
    }
    DEFAULT_DAILY_LIMIT = Decimal("50000")
    DEFAULT_APPROVAL_THRESHOLD = Decimal("100000")
    MINOR_PER_TRANSACTION_LIMIT = Decimal("10000")
    MINOR_TRANSFER_LIMIT = Decimal("5000")

    def daily_limit(self, account_type: AccountType) -> Decimal:
        return self.DAILY_LIMITS.get(account_type, self.DEFAULT_DAILY_LIMIT)

    def minimum_balance(self, account_type: AccountType) -> Decimal:
        return self.MINIMUM_BALANCES.get(account_type, Decimal("0"))

    def requires_approval(self, account_type: AccountType, amount: Decimal) -> bool:
        return amount > self.APPROVAL_THRESHOLDS.get(account_type, self.DEFAULT_APPROVAL_THRESHOLD)

    def validate(
        self,
        account: Account,
        amount: Decimal,
        transaction_type: TransactionType,
        daily_debits: Decimal = Decimal("0"),
    ) -> RuleResult:
        account_type = account.account_type
        if account_type == AccountType.MINOR:
            return self._validate_minor(amount, transaction_type)

        if transaction_type in DEBIT_TYPES:
            minimum = self.minimum_balance(account_type)
            if account.balance - amount < minimum:
                return False, f"Minimum balance of {rupees(minimum)} must be maintained"
            if account_type in (AccountType.SAVINGS, AccountType.MAJOR):
                limit = self.daily_limit(account_type)
                if daily_debits + amount > limit:
                    return False, f"Daily transaction limit of {rupees(limit)} exceeded"
        return True, None

    def _validate_minor(self, amount: Decimal, transaction_type: TransactionType) -> RuleResult:
        if amount > self.MINOR_PER_TRANSACTION_LIMIT:
            return False, "Minor accounts cannot transact more than ₹10,000 per day"
        if transaction_type == TransactionType.TRANSFER and amount > self.MINOR_TRANSFER_LIMIT:
            return False, "Minor accounts cannot transfer more than ₹5,000"
        return True, None
