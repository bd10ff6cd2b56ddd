from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from onlinebank.models import (
    Account,
    AccountStatus,
    AccountType,
    Gender,
    TransactionStatus,
    TransactionType,
    as_utc,
    utcnow,
)
from onlinebank.rules import AccountTypeRules, BusinessRulesEngine, age_on

engine = BusinessRulesEngine()
type_rules = AccountTypeRules()


def _account(account_type=AccountType.SAVINGS, balance="20000", status=AccountStatus.ACTIVE, id=1):
    return Account(id=id, user_id=1, branch_id=1, account_number="ACC00000001",
                   account_type=account_type, balance=Decimal(balance), status=status)


def test_approval_threshold_and_fees():
    assert engine.requires_approval(Decimal("100001"))
    assert not engine.requires_approval(Decimal("100000"))
    assert engine.approval_level(Decimal("150000")) == "Manager"
    assert engine.calculate_fee(TransactionType.TRANSFER, Decimal("20000")) == Decimal("10")
    assert engine.calculate_fee(TransactionType.WITHDRAWAL, Decimal("6000")) == Decimal("5")
    assert engine.calculate_fee(TransactionType.DEPOSIT, Decimal("90000")) == Decimal("0")


def test_validate_transaction():
    account = _account()
    assert engine.validate_transaction(account, Decimal("100"), TransactionType.WITHDRAWAL) == (True, None)
    assert engine.validate_transaction(account, Decimal("50000"), TransactionType.WITHDRAWAL) == (False, "Insufficient balance")
    ok, msg = engine.validate_transaction(_account(status=AccountStatus.DORMANT), Decimal("1"), TransactionType.DEPOSIT)
    assert not ok and msg == "Account is not active"
    ok, msg = engine.validate_transaction(account, Decimal("10"), TransactionType.TRANSFER, to_account=account)
    assert msg == "Cannot transfer to the same account"


def test_status_machine():
    assert engine.is_valid_status_transition(TransactionStatus.PENDING, TransactionStatus.PROCESSING)
    assert engine.is_valid_status_transition(TransactionStatus.PROCESSING, TransactionStatus.FAILED)
    assert not engine.is_valid_status_transition(TransactionStatus.COMPLETED, TransactionStatus.PENDING)


def test_classification_and_majority():
    today = date(2026, 6, 1)
    assert age_on(date(2008, 6, 2), today) == 17
    assert engine.classify_account(date(2010, 1, 1), Gender.FEMALE, today) == (True, True)
    assert engine.classify_account(date(1990, 1, 1), Gender.FEMALE, today) == (False, False)
    assert engine.should_transition_to_major(date(2008, 6, 1), today)


def test_dormancy():
    now = datetime(2026, 6, 1)
    assert engine.is_dormant(now - timedelta(days=400), now)
    assert not engine.is_dormant(now - timedelta(days=30), now)
    assert not engine.is_dormant(None, now)


def test_timestamps_are_timezone_aware_utc():
    now = utcnow()
    assert now.tzinfo is timezone.utc
    assert Account(user_id=1, branch_id=1, account_number="ACC00000002").opened_date.tzinfo is timezone.utc
    assert as_utc(datetime(2026, 6, 1, 12)) == datetime(2026, 6, 1, 12, tzinfo=timezone.utc)
    ist = timezone(timedelta(hours=5, minutes=30))
    assert as_utc(datetime(2026, 6, 1, 17, 30, tzinfo=ist)) == datetime(2026, 6, 1, 12, tzinfo=timezone.utc)
    assert as_utc(None) is None


def test_dormancy_accepts_naive_stored_values():
    stored = datetime(2025, 1, 1)
    assert engine.is_dormant(stored, datetime(2026, 6, 1, tzinfo=timezone.utc))
    assert not engine.is_dormant(stored, datetime(2025, 2, 1, tzinfo=timezone.utc))


def test_minor_limits():
    minor = _account(AccountType.MINOR, balance="50000")
    ok, msg = type_rules.validate(minor, Decimal("10001"), TransactionType.DEPOSIT)
    assert not ok and msg == "Minor accounts cannot transact more than ₹10,000 per day"
    ok, msg = type_rules.validate(minor, Decimal("6000"), TransactionType.TRANSFER)
    assert not ok
    assert type_rules.validate(minor, Decimal("4000"), TransactionType.TRANSFER) == (True, None)


def test_minimum_balance_and_daily_limit():
    savings = _account(balance="5000")
    ok, msg = type_rules.validate(savings, Decimal("4500"), TransactionType.WITHDRAWAL)
    assert not ok and msg == "Minimum balance of ₹1,000.00 must be maintained"
    rich = _account(balance="200000")
    ok, msg = type_rules.validate(rich, Decimal("20000"), TransactionType.WITHDRAWAL, daily_debits=Decimal("40000"))
    assert not ok and "Daily transaction limit" in msg
    current = _account(AccountType.CURRENT, balance="200000")
    assert type_rules.validate(current, Decimal("60000"), TransactionType.WITHDRAWAL) == (True, None)
    assert type_rules.daily_limit(AccountType.CURRENT) == Decimal("200000")
    assert type_rules.requires_approval(AccountType.MINOR, Decimal("5001"))
