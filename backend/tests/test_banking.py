from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from onlinebank import models, schemas
from onlinebank.banking import AccountService, TransactionService, generate_transaction_reference
from onlinebank.notifications import EmailService
from onlinebank.repositories import BranchRepository
from onlinebank.services import BranchService, ConflictError, NotFoundError


@pytest.fixture
def mailer():
    return EmailService(host="")


@pytest.fixture
def txns(session, mailer):
    return TransactionService(session, mailer)


def _deposit(account, amount, mode=models.DepositMode.CASH, reference=None):
    return schemas.DepositRequest(to_account_number=account.account_number, amount=Decimal(amount),
                                  deposit_mode=mode, reference_number=reference, depositor_name="Asha")


def _transfer(src, dst, amount, description=None):
    return schemas.TransferRequest(from_account_number=src.account_number, to_account_number=dst.account_number,
                                   amount=Decimal(amount), description=description)


def test_transaction_reference_format():
    ref = generate_transaction_reference()
    assert ref.startswith("TXN") and len(ref) == 13 and ref[3:].isdigit()


def test_cash_deposit_completes(txns, make_user, make_account, session, mailer):
    account = make_account(make_user(), balance="1000")
    result = txns.process_deposit(_deposit(account, "2500"))
    txn = result["transaction"]
    assert result["message"] == "Deposit completed successfully"
    assert txn.status == models.TransactionStatus.COMPLETED
    assert txn.description == "Cash Deposit by Asha"
    session.refresh(account)
    assert account.balance == Decimal("3500")
    assert txn.balance_after_transaction == Decimal("3500")
    assert account.last_transaction_date is not None
    assert mailer.outbox[-1]["subject"] == "Account credited"


def test_high_value_deposit_waits_for_approval(txns, make_user, make_account, session):
    account = make_account(make_user(), balance="1000")
    result = txns.process_deposit(_deposit(account, "150000"))
    assert result["transaction"].status == models.TransactionStatus.PENDING
    assert result["message"] == "Cash Deposit by Asha submitted for approval. You will be notified once processed."
    session.refresh(account)
    assert account.balance == Decimal("1000")

    approved = txns.approve_transaction(result["transaction"].id, "manager@onlinebank.com", True, "verified")
    assert approved["message"] == "Transaction approved and completed successfully"
    assert approved["transaction"].description.endswith(" | Approved: verified")
    session.refresh(account)
    assert account.balance == Decimal("151000")


def test_deposit_errors(txns, make_user, make_account):
    user = make_user()
    active = make_account(user)
    closed = make_account(user, status=models.AccountStatus.CLOSED, account_type=models.AccountType.CURRENT)
    with pytest.raises(ValueError, match="Cheque requires a reference number"):
        txns.process_deposit(_deposit(active, "100", models.DepositMode.CHEQUE))
    with pytest.raises(ValueError, match="Demand Draft requires a reference number"):
        txns.process_deposit(_deposit(active, "100", models.DepositMode.DEMAND_DRAFT))
    with pytest.raises(ValueError, match="Account is not active"):
        txns.process_deposit(_deposit(closed, "100"))
    missing = schemas.DepositRequest(to_account_number="NOPE00000000", amount=10, depositor_name="Asha")
    with pytest.raises(NotFoundError, match="Account not found"):
        txns.process_deposit(missing)


def test_cheque_deposit_debits_drawer_on_approval(txns, make_user, make_account, session):
    payer = make_user()
    payer_account = make_account(payer, balance="5000")
    payee_account = make_account(make_user(), balance="0")

    with pytest.raises(ValueError, match="Insufficient balance in your account for cheque deposit"):
        txns.process_deposit(_deposit(payee_account, "9000", models.DepositMode.CHEQUE, "CHQ1"), user_id=payer.id)

    result = txns.process_deposit(_deposit(payee_account, "2000", models.DepositMode.CHEQUE, "CHQ2"), user_id=payer.id)
    txn = result["transaction"]
    assert txn.status == models.TransactionStatus.PENDING
    assert txn.description == "Cheque Deposit (Ref: CHQ2)"
    assert txn.from_account_id == payer_account.id

    txns.approve_transaction(txn.id, "manager@onlinebank.com")
    session.refresh(payer_account)
    session.refresh(payee_account)
    assert payer_account.balance == Decimal("3000")
    assert payee_account.balance == Decimal("2000")


def test_online_deposit_description(txns, make_user, make_account):
    account = make_account(make_user())
    result = txns.process_deposit(_deposit(account, "100", models.DepositMode.UPI, "UPI77"))
    assert result["transaction"].description == "UPI Transfer (Ref: UPI77)"


def test_withdrawal(txns, make_user, make_account, session):
    account = make_account(make_user(), balance="10000")
    result = txns.process_withdrawal(schemas.WithdrawalRequest(from_account_number=account.account_number, amount=2000))
    assert result["message"] == "Withdrawal completed successfully"
    assert result["transaction"].description == "Cash Withdrawal"
    assert result["transaction"].balance_after_transaction == Decimal("8000")

    with pytest.raises(ValueError, match="Insufficient balance"):
        txns.process_withdrawal(schemas.WithdrawalRequest(from_account_number=account.account_number, amount=9000))
    with pytest.raises(ValueError, match="Minimum balance of ₹1,000.00 must be maintained"):
        txns.process_withdrawal(schemas.WithdrawalRequest(from_account_number=account.account_number, amount=7500))
    session.refresh(account)
    assert account.balance == Decimal("8000")


def test_transfer_moves_money(txns, make_user, make_account, session):
    src = make_account(make_user(), balance="10000")
    dst = make_account(make_user(), balance="500")
    result = txns.process_transfer(_transfer(src, dst, "1500"))
    assert result["message"] == "Transfer completed successfully"
    assert result["transaction"].description == "Money Transfer"
    session.refresh(src)
    session.refresh(dst)
    assert (src.balance, dst.balance) == (Decimal("8500"), Decimal("2000"))
    assert result["transaction"].balance_after_transaction == Decimal("8500")


def test_transfer_errors_in_order(txns, make_user, make_account):
    user = make_user()
    src = make_account(user, balance="100")
    dst = make_account(make_user())
    dormant = make_account(make_user(), status=models.AccountStatus.DORMANT)
    with pytest.raises(ValueError, match="Cannot transfer to the same account"):
        txns.process_transfer(_transfer(src, src, "10"))
    with pytest.raises(NotFoundError, match="Destination account not found"):
        txns.process_transfer(schemas.TransferRequest(from_account_number=src.account_number,
                                                      to_account_number="MISSING0001", amount=10))
    with pytest.raises(ValueError, match="Destination account is not active"):
        txns.process_transfer(_transfer(src, dormant, "10"))
    with pytest.raises(ValueError, match="Source account is not active"):
        txns.process_transfer(_transfer(dormant, dst, "10"))
    with pytest.raises(ValueError, match="Insufficient balance in source account"):
        txns.process_transfer(_transfer(src, dst, "1000"))


def test_high_value_transfer_approval_and_reapproval(txns, make_user, make_account, session):
    src = make_account(make_user(), balance="300000", account_type=models.AccountType.CURRENT)
    dst = make_account(make_user(), balance="0")
    result = txns.process_transfer(_transfer(src, dst, "150000"))
    txn = result["transaction"]
    assert txn.status == models.TransactionStatus.PENDING
    assert result["message"] == "Transfer request submitted for approval. You will be notified once approved."
    session.refresh(src)
    assert src.balance == Decimal("300000")

    txns.approve_transaction(txn.id, "admin@onlinebank.com")
    session.refresh(src)
    session.refresh(dst)
    assert (src.balance, dst.balance) == (Decimal("150000"), Decimal("150000"))
    with pytest.raises(ValueError, match="Transaction is not pending approval"):
        txns.approve_transaction(txn.id, "admin@onlinebank.com")


def test_approval_rechecks_balance_and_rejection(txns, make_user, make_account, session):
    src = make_account(make_user(), balance="200000", account_type=models.AccountType.CURRENT)
    dst = make_account(make_user(), balance="0")
    pending = txns.process_transfer(_transfer(src, dst, "120000"))["transaction"]
    src.balance = Decimal("1000")
    session.add(src)
    session.commit()
    with pytest.raises(ValueError, match="Insufficient balance in source account"):
        txns.approve_transaction(pending.id, "admin@onlinebank.com")

    rejected = txns.approve_transaction(pending.id, "admin@onlinebank.com", False, "Suspicious")
    assert rejected["transaction"].status == models.TransactionStatus.FAILED
    assert rejected["transaction"].description == "Money Transfer | Rejected: Suspicious"
    with pytest.raises(NotFoundError, match="Transaction not found"):
        txns.approve_transaction(999999, "admin@onlinebank.com")


def test_history_directions_and_dashboard(txns, make_user, make_account):
    user = make_user()
    savings = make_account(user, balance="20000")
    current = make_account(user, balance="10000", account_type=models.AccountType.CURRENT)
    other = make_account(make_user(), balance="5000")

    txns.process_transfer(_transfer(savings, current, "1000"))
    txns.process_transfer(_transfer(savings, other, "2000"))
    txns.process_transfer(_transfer(other, savings, "300"))
    txns.process_deposit(_deposit(savings, "700"))

    history = txns.user_history(user.id)
    labels = {t["display_description"]: t["direction"] for t in history["transactions"]}
    assert labels["Internal Account Transfer"] == "Credit"
    assert labels["Transfer Sent"] == "Debit"
    assert labels["Transfer Received"] == "Credit"
    assert labels["Deposit Received"] == "Credit"
    assert history["total_count"] == 4

    summary = txns.dashboard_summary(user.id)
    assert summary["today"]["count"] == 4
    assert summary["today"]["credits"] == 1000.0
    assert summary["today"]["debits"] == 2000.0
    assert summary["current_balance"] == 18000.0
    assert len(summary["recent_transactions"]) == 4


def test_dashboard_without_accounts(txns, make_user):
    with pytest.raises(NotFoundError, match="No accounts found for user"):
        txns.dashboard_summary(make_user().id)


def _open_request(branch_id, account_type=models.AccountType.SAVINGS, initial="500"):
    return schemas.CreateAccount(
        account_type=account_type, initial_deposit=Decimal(initial), branch_id=branch_id, city="Mumbai",
        state="Maharashtra", postal_code="400001", country="India", occupation="Engineer",
        emergency_contact_name="Meera", emergency_contact_phone="9876543210", id_proof_type="Passport",
        id_proof_number="P1234567", terms_and_conditions_accepted=True, privacy_policy_accepted=True,
        anti_money_laundering_consent=True,
    )


def test_account_opening(session, make_user, main_branch):
    service = AccountService(session)
    user = make_user()
    account = service.create(user.id, _open_request(main_branch.id))
    assert account.status == models.AccountStatus.PENDING
    assert account.account_number.startswith("OBS" + main_branch.branch_code.zfill(3))
    assert 8 <= len(account.account_number) <= 20
    assert account.balance == Decimal("500")
    with pytest.raises(ConflictError):
        service.create(user.id, _open_request(main_branch.id))

    child = make_user(dob=date.today() - timedelta(days=365 * 10))
    minor = service.create(child.id, _open_request(main_branch.id))
    assert minor.account_type == models.AccountType.MINOR
    with pytest.raises(ValueError, match="Minor accounts can only be opened"):
        service.create(user.id, _open_request(main_branch.id, models.AccountType.MINOR))


def test_account_lifecycle(session, make_user, make_account):
    service = AccountService(session)
    user = make_user()
    pending = make_account(user, status=models.AccountStatus.PENDING)
    assert service.verify(pending.id).status == models.AccountStatus.ACTIVE
    with pytest.raises(ValueError, match="Only pending accounts can be verified"):
        service.verify(pending.id)
    with pytest.raises(ValueError, match="Account balance must be zero before closing"):
        service.close(pending.id)

    empty = make_account(user, balance="0", status=models.AccountStatus.DORMANT,
                         account_type=models.AccountType.CURRENT)
    with pytest.raises(ValueError, match="Only dormant accounts can be reactivated"):
        service.reactivate(pending.id)
    assert service.reactivate(empty.id).status == models.AccountStatus.ACTIVE
    closed = service.close(empty.id)
    assert closed.status == models.AccountStatus.CLOSED and not closed.is_active


def test_dormancy_and_minor_transition(session, make_user, make_account):
    service = AccountService(session)
    idle = make_account(make_user())
    idle.opened_date = idle.last_transaction_date = models.utcnow() - timedelta(days=800)
    session.add(idle)
    session.commit()
    assert service.update_dormant() >= 1
    session.refresh(idle)
    assert idle.status == models.AccountStatus.DORMANT

    grown_up = make_user(dob=date(2000, 1, 1))
    minor = make_account(grown_up, account_type=models.AccountType.MINOR)
    assert service.transition_minor_to_major() >= 1
    session.refresh(minor)
    assert minor.account_type == models.AccountType.MAJOR


def test_approval_refuses_accounts_closed_meanwhile(txns, make_user, make_account, session):
    account = make_account(make_user(), balance="1000")
    pending = txns.process_deposit(_deposit(account, "150000"))["transaction"]
    account.status = models.AccountStatus.CLOSED
    session.add(account)
    session.commit()
    with pytest.raises(ValueError, match=f"Account {account.account_number} is no longer active"):
        txns.approve_transaction(pending.id, "admin@onlinebank.com")
    session.refresh(account)
    session.refresh(pending)
    assert account.balance == Decimal("1000")
    assert pending.status == models.TransactionStatus.PENDING


def test_database_rejects_duplicate_account_numbers(session, make_user, make_account, main_branch):
    existing = make_account(make_user())
    session.add(models.Account(user_id=existing.user_id, branch_id=main_branch.id,
                               account_number=existing.account_number, balance=Decimal("0")))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_database_rejects_duplicate_branch_codes(session):
    session.add(models.Branch(branch_code="OBS001", branch_name="Copy", address="x", city="Mumbai",
                              state="Maharashtra", ifsc_code="OBSN0000099"))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_account_number_collision_becomes_conflict(session, make_user, make_account, main_branch, monkeypatch):
    existing = make_account(make_user())
    service = AccountService(session)
    monkeypatch.setattr(service, "generate_account_number", lambda branch: existing.account_number)
    with pytest.raises(ConflictError, match="Account number already exists"):
        service.create(make_user().id, _open_request(main_branch.id))

    service = AccountService(session)
    monkeypatch.setattr(service.account_repo, "number_exists", lambda number: True)
    with pytest.raises(ConflictError, match="Could not allocate a unique account number"):
        service.generate_account_number(main_branch)


def test_branch_code_collision_becomes_conflict(session, monkeypatch):
    service = BranchService(session)
    monkeypatch.setattr(service.branch_repo, "get_by_code", lambda code: None)
    dto = schemas.CreateBranch(branch_name="Copy Branch", branch_code="OBS001", address="Fort", city="Mumbai",
                               state="Maharashtra", ifsc_code="OBSN0000098", phone_number="0221234567",
                               email="copy@onlinebank.com", branch_type=models.BranchType.URBAN)
    with pytest.raises(ConflictError, match="Branch code already exists"):
        service.create(dto)
    assert BranchRepository(session).get_by_ifsc("OBSN0000098") is None
