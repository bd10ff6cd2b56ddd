"""Account lifecycle and money movement.

`AccountService` opens, verifies, closes and re-classifies accounts.
`TransactionService` runs deposits, withdrawals and transfers, the
approval queue for high-value or instrument-backed (cheque/DD) items,
and the customer-facing history and dashboard views.

Balance changes for one operation are staged on the session and
committed together; any failure rolls the whole operation back.
"""

import logging
import math
import secrets
import time
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories, schemas
from .notifications import EmailService, email_service
from .rules import (
    DORMANT_ACCOUNT_DAYS,
    HIGH_VALUE_TRANSACTION_LIMIT,
    AccountTypeRules,
    BusinessRulesEngine,
    rupees,
)
from .services import ConflictError, NotFoundError

logger = logging.getLogger("onlinebank.banking")

ACCOUNT_NUMBER_PREFIX = "OBS"
MAX_ACCOUNT_NUMBER_ATTEMPTS = 10
INSTRUMENT_DEPOSIT_MODES = (models.DepositMode.CHEQUE, models.DepositMode.DEMAND_DRAFT)
CREDIT = "Credit"
DEBIT = "Debit"


def generate_transaction_reference() -> str:
    return f"TXN{str(time.time_ns())[-10:]}"


def to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value or 0))


def mode_label(mode: models.DepositMode) -> str:
    if mode in (models.DepositMode.NEFT, models.DepositMode.RTGS, models.DepositMode.UPI, models.DepositMode.IMPS):
        return mode.name
    return mode.name.replace("_", " ").title()


class AccountService:
    """Account opening and status management."""
    def __init__(self, session: Session):
        self.session = session
        self.account_repo = repositories.AccountRepository(session)
        self.branch_repo = repositories.BranchRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.rules = BusinessRulesEngine()

    def get(self, account_id: int) -> models.Account:
        account = self.account_repo.get(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    def list(self) -> List[models.Account]:
        return self.account_repo.list()

    def list_by_user(self, user_id: int) -> List[models.Account]:
        return self.account_repo.list_by_user(user_id)

    def list_by_status(self, status: models.AccountStatus) -> List[models.Account]:
        return self.account_repo.list_by_status(status)

    def list_by_type(self, account_type: models.AccountType) -> List[models.Account]:
        return self.account_repo.list_by_type(account_type)

    def list_pending(self, branch_id: Optional[int] = None) -> List[models.Account]:
        return self.account_repo.list_by_status(models.AccountStatus.PENDING, branch_id)

    def generate_account_number(self, branch: Optional[models.Branch]) -> str:
        """`OBS` + branch code (zero-padded to 3) + `yyMM` + 5 random digits.

        Long branch codes are cut to 8 characters so numbers stay within
        20 characters. Candidates are retried until unused.
        """
        branch_code = (branch.branch_code if branch else "1").zfill(3)[:8]
        year_month = models.utcnow().strftime("%y%m")
        for _ in range(MAX_ACCOUNT_NUMBER_ATTEMPTS):
            candidate = f"{ACCOUNT_NUMBER_PREFIX}{branch_code}{year_month}{secrets.randbelow(90000) + 10000}"
            if not self.account_repo.number_exists(candidate):
                return candidate
        raise ConflictError("Could not allocate a unique account number")

    def create(self, user_id: int, dto: schemas.CreateAccount) -> models.Account:
        """Open a `Pending` account; one live account per type per user."""
        user = self.user_repo.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        branch = self.branch_repo.get(dto.branch_id)
        if branch is None or not branch.is_active:
            raise NotFoundError("Branch not found")

        account_type = dto.account_type
        if user.date_of_birth is not None:
            is_minor, _ = self.rules.classify_account(user.date_of_birth, user.gender)
            if is_minor:
                account_type = models.AccountType.MINOR
            elif account_type == models.AccountType.MINOR:
                raise ValueError("Minor accounts can only be opened for customers under 18")

        if self.account_repo.get_active_of_type(user_id, account_type):
            raise ConflictError(f"You already have an active {account_type.name.title()} account")

        account = models.Account(
            user_id=user_id,
            branch_id=branch.id,
            account_number=self.generate_account_number(branch),
            account_type=account_type,
            balance=to_decimal(dto.initial_deposit),
            status=models.AccountStatus.PENDING,
            created_by=user.email,
        )
        try:
            account = self.account_repo.create(account)
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Account number already exists") from exc
        logger.info("account %s opened for user %s (pending)", account.account_number, user_id)
        return account

    def _set_status(self, account: models.Account, status: models.AccountStatus, by: str) -> models.Account:
        account.status = status
        account.is_active = status in (models.AccountStatus.ACTIVE, models.AccountStatus.VERIFIED,
                                       models.AccountStatus.PENDING, models.AccountStatus.DORMANT)
        account.touch(by)
        self.account_repo.save(account)
        logger.info("account %s -> %s by %s", account.id, status.name, by)
        return account

    def verify(self, account_id: int, is_approved: bool = True, remarks: Optional[str] = None, by: str = "System") -> models.Account:
        account = self.get(account_id)
        if account.status not in (models.AccountStatus.PENDING, models.AccountStatus.VERIFIED):
            raise ValueError("Only pending accounts can be verified")
        status = models.AccountStatus.ACTIVE if is_approved else models.AccountStatus.REJECTED
        return self._set_status(account, status, by)

    def mark_verified(self, account_id: int, by: str = "System") -> models.Account:
        account = self.get(account_id)
        if account.status != models.AccountStatus.PENDING:
            raise ValueError("Only pending accounts can be marked as verified")
        return self._set_status(account, models.AccountStatus.VERIFIED, by)

    def reject(self, account_id: int, reason: Optional[str] = None, by: str = "System") -> models.Account:
        account = self.get(account_id)
        if account.status not in (models.AccountStatus.PENDING, models.AccountStatus.VERIFIED):
            raise ValueError("Only pending or verified accounts can be rejected")
        return self._set_status(account, models.AccountStatus.REJECTED, by)

    def close(self, account_id: int, reason: Optional[str] = None, by: str = "System") -> models.Account:
        account = self.get(account_id)
        if account.status not in (models.AccountStatus.ACTIVE, models.AccountStatus.DORMANT):
            raise ValueError("Only active or dormant accounts can be closed")
        if account.balance > 0:
            raise ValueError("Account balance must be zero before closing")
        return self._set_status(account, models.AccountStatus.CLOSED, by)

    def reactivate(self, account_id: int, by: str = "System") -> models.Account:
        account = self.get(account_id)
        if account.status != models.AccountStatus.DORMANT:
            raise ValueError("Only dormant accounts can be reactivated")
        return self._set_status(account, models.AccountStatus.ACTIVE, by)

    def update_status(self, account_id: int, status: models.AccountStatus, by: str = "System") -> models.Account:
        return self._set_status(self.get(account_id), status, by)

    def update_dormant(self, now: Optional[datetime] = None) -> int:
        """Mark active accounts idle for `DORMANT_ACCOUNT_DAYS` as dormant."""
        now = now or models.utcnow()
        cutoff = now - timedelta(days=DORMANT_ACCOUNT_DAYS)
        accounts = self.account_repo.list_inactive_since(cutoff)
        for account in accounts:
            account.status = models.AccountStatus.DORMANT
            account.touch()
            self.account_repo.add(account)
        self.session.commit()
        logger.info("%s accounts marked dormant", len(accounts))
        return len(accounts)

    def transition_minor_to_major(self, today: Optional[date] = None) -> int:
        """Convert minor accounts whose holder has turned 18."""
        moved = 0
        for account in self.account_repo.list_by_type(models.AccountType.MINOR):
            user = self.user_repo.get(account.user_id)
            if user and user.date_of_birth and self.rules.should_transition_to_major(user.date_of_birth, today):
                account.account_type = models.AccountType.MAJOR
                account.touch()
                self.account_repo.add(account)
                moved += 1
        self.session.commit()
        logger.info("%s minor accounts moved to major", moved)
        return moved

    def delete(self, account_id: int, by: str = "System") -> None:
        account = self.get(account_id)
        account.is_active = False
        self.account_repo.soft_delete(account, by)


class TransactionService:
    """Deposits, withdrawals, transfers and the approval queue."""
    def __init__(self, session: Session, mailer: EmailService = None):
        self.session = session
        self.txn_repo = repositories.TransactionRepository(session)
        self.account_repo = repositories.AccountRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.mailer = mailer or email_service
        self.type_rules = AccountTypeRules()

    # -- helpers ------------------------------------------------------------

    def _commit(self, *rows):
        for row in rows:
            if row is not None:
                self.session.add(row)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        for row in rows:
            if row is not None:
                self.session.refresh(row)

    def _notify(self, account: Optional[models.Account], subject: str, body: str) -> None:
        if account is None:
            return
        user = self.user_repo.get(account.user_id)
        if user is not None:
            self.mailer.send(user.email, subject, f"Dear {user.full_name},\n\n{body}")

    def _active_account(self, account_number: str) -> models.Account:
        account = self.account_repo.get_by_number(account_number)
        if account is None:
            raise NotFoundError("Account not found")
        if account.status != models.AccountStatus.ACTIVE:
            raise ValueError("Account is not active")
        return account

    def _daily_debits(self, account: models.Account) -> Decimal:
        start = models.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return to_decimal(self.txn_repo.completed_debits_since(account.id, start))

    def _apply(self, txn: models.Transaction, from_account, to_account) -> None:
        now = models.utcnow()
        if from_account is not None:
            from_account.balance = to_decimal(from_account.balance) - to_decimal(txn.amount)
            from_account.last_transaction_date = now
            from_account.touch()
        if to_account is not None:
            to_account.balance = to_decimal(to_account.balance) + to_decimal(txn.amount)
            to_account.last_transaction_date = now
            to_account.touch()

    def get(self, txn_id: int) -> models.Transaction:
        txn = self.txn_repo.get(txn_id)
        if txn is None:
            raise NotFoundError("Transaction not found")
        return txn

    # -- money movement -----------------------------------------------------

    def process_deposit(self, dto: schemas.DepositRequest, user_id: int = 0) -> dict:
        """Credit an account, or queue the deposit for approval.

        Cheque and demand-draft deposits always wait for approval, as do
        deposits of `HIGH_VALUE_TRANSACTION_LIMIT` or more. For a cheque
        the depositor's own active account is the drawer and is debited
        when the deposit completes.
        """
        to_account = self._active_account(dto.to_account_number)

        if dto.deposit_mode in INSTRUMENT_DEPOSIT_MODES and not (dto.reference_number or "").strip():
            raise ValueError(f"{mode_label(dto.deposit_mode)} requires a reference number")

        ok, message = self.type_rules.validate(to_account, dto.amount, models.TransactionType.DEPOSIT)
        if not ok:
            raise ValueError(message)

        from_account = None
        if dto.deposit_mode == models.DepositMode.CHEQUE and user_id:
            from_account = self.account_repo.get_primary_active(user_id)
            if from_account is not None and from_account.id == to_account.id:
                from_account = None
            if from_account is not None and from_account.balance < dto.amount:
                raise ValueError("Insufficient balance in your account for cheque deposit")

        if dto.deposit_mode == models.DepositMode.CASH:
            description = f"Cash Deposit by {dto.depositor_name}" if dto.depositor_name else "Cash Deposit"
        elif dto.deposit_mode in INSTRUMENT_DEPOSIT_MODES:
            description = f"{mode_label(dto.deposit_mode)} Deposit (Ref: {dto.reference_number})"
        else:
            description = f"{mode_label(dto.deposit_mode)} Transfer (Ref: {dto.reference_number})"
        if dto.description:
            description = f"{description} - {dto.description}"

        requires_approval = dto.deposit_mode in INSTRUMENT_DEPOSIT_MODES or dto.amount >= HIGH_VALUE_TRANSACTION_LIMIT
        txn = models.Transaction(
            from_account_id=from_account.id if from_account else None,
            to_account_id=to_account.id,
            amount=dto.amount,
            transaction_type=models.TransactionType.DEPOSIT,
            status=models.TransactionStatus.PENDING if requires_approval else models.TransactionStatus.COMPLETED,
            description=description[:500],
            transaction_reference=generate_transaction_reference(),
        )

        if requires_approval:
            self._commit(txn)
            self._notify(to_account, "Deposit pending approval",
                         f"A {description} of {rupees(dto.amount)} is pending approval for account {to_account.account_number}.")
            logger.info("deposit %s queued for approval", txn.transaction_reference)
            return {
                "transaction": txn,
                "message": f"{description} submitted for approval. You will be notified once processed.",
            }

        self._apply(txn, None, to_account)
        txn.balance_after_transaction = to_account.balance
        self._commit(txn, to_account)
        self._notify(to_account, "Account credited",
                     f"Your account {to_account.account_number} has been credited with {rupees(dto.amount)}.")
        logger.info("deposit %s completed", txn.transaction_reference)
        return {"transaction": txn, "message": "Deposit completed successfully"}

    def process_withdrawal(self, dto: schemas.WithdrawalRequest) -> dict:
        account = self._active_account(dto.from_account_number)
        if account.balance < dto.amount:
            raise ValueError("Insufficient balance")
        ok, message = self.type_rules.validate(
            account, dto.amount, models.TransactionType.WITHDRAWAL, self._daily_debits(account)
        )
        if not ok:
            raise ValueError(message)

        txn = models.Transaction(
            from_account_id=account.id,
            amount=dto.amount,
            transaction_type=models.TransactionType.WITHDRAWAL,
            status=models.TransactionStatus.COMPLETED,
            description=dto.description or "Cash Withdrawal",
            transaction_reference=generate_transaction_reference(),
        )
        self._apply(txn, account, None)
        txn.balance_after_transaction = account.balance
        self._commit(txn, account)
        self._notify(account, "Account debited",
                     f"Your account {account.account_number} has been debited with {rupees(dto.amount)}.")
        logger.info("withdrawal %s completed", txn.transaction_reference)
        return {"transaction": txn, "message": "Withdrawal completed successfully"}

    def process_transfer(self, dto: schemas.TransferRequest) -> dict:
        """Move money between two active accounts.

        Transfers of `HIGH_VALUE_TRANSACTION_LIMIT` or more are stored as
        pending and only move money once approved. Account-type limits are
        reported in the log but do not block a transfer.
        """
        if dto.from_account_number == dto.to_account_number:
            raise ValueError("Cannot transfer to the same account")
        from_account = self.account_repo.get_by_number(dto.from_account_number)
        if from_account is None:
            raise NotFoundError("Source account not found")
        to_account = self.account_repo.get_by_number(dto.to_account_number)
        if to_account is None:
            raise NotFoundError("Destination account not found")
        if from_account.status != models.AccountStatus.ACTIVE:
            raise ValueError("Source account is not active")
        if to_account.status != models.AccountStatus.ACTIVE:
            raise ValueError("Destination account is not active")

        ok, message = self.type_rules.validate(from_account, dto.amount, models.TransactionType.TRANSFER)
        if not ok:
            logger.warning("transfer from %s breaks account-type rule: %s", from_account.account_number, message)

        if from_account.balance < dto.amount:
            raise ValueError("Insufficient balance in source account")

        requires_approval = dto.amount >= HIGH_VALUE_TRANSACTION_LIMIT
        txn = models.Transaction(
            from_account_id=from_account.id,
            to_account_id=to_account.id,
            amount=dto.amount,
            transaction_type=models.TransactionType.TRANSFER,
            status=models.TransactionStatus.PENDING if requires_approval else models.TransactionStatus.COMPLETED,
            description=dto.description or "Money Transfer",
            transaction_reference=generate_transaction_reference(),
        )
        if requires_approval:
            self._commit(txn)
            self._notify(from_account, "Transfer pending approval",
                         f"Your transfer of {rupees(dto.amount)} to {to_account.account_number} is pending approval.")
            logger.info("transfer %s queued for approval", txn.transaction_reference)
            return {
                "transaction": txn,
                "message": "Transfer request submitted for approval. You will be notified once approved.",
            }

        self._apply(txn, from_account, to_account)
        txn.balance_after_transaction = from_account.balance
        self._commit(txn, from_account, to_account)
        self._notify(from_account, "Transfer completed",
                     f"{rupees(dto.amount)} was sent from {from_account.account_number} to {to_account.account_number}.")
        self._notify(to_account, "Money received",
                     f"{rupees(dto.amount)} was received in {to_account.account_number}.")
        logger.info("transfer %s completed", txn.transaction_reference)
        return {"transaction": txn, "message": "Transfer completed successfully"}

    def branch_ids(self, txn: models.Transaction) -> set:
        """Branches of the accounts on either side of `txn`."""
        ids = set()
        for account_id in (txn.from_account_id, txn.to_account_id):
            account = self.account_repo.get(account_id) if account_id else None
            if account is not None:
                ids.add(account.branch_id)
        return ids

    def approve_transaction(self, txn_id: int, approver: str, is_approved: bool = True, remarks: Optional[str] = None) -> dict:
        """Complete or reject a pending transaction.

        Approval re-checks that both accounts are still active and the
        paying account's balance, since either may have changed while the
        transaction was queued.
        """
        txn = self.get(txn_id)
        if txn.status != models.TransactionStatus.PENDING:
            raise ValueError("Transaction is not pending approval")
        from_account = self.account_repo.get(txn.from_account_id) if txn.from_account_id else None
        to_account = self.account_repo.get(txn.to_account_id) if txn.to_account_id else None
        if txn.transaction_type == models.TransactionType.DEPOSIT and to_account is None:
            raise ValueError("Invalid deposit account")
        if txn.transaction_type == models.TransactionType.TRANSFER and (from_account is None or to_account is None):
            raise ValueError("Invalid transfer accounts")

        if not is_approved:
            txn.status = models.TransactionStatus.FAILED
            if remarks:
                txn.description = f"{txn.description or ''} | Rejected: {remarks}"[:500]
            txn.touch(approver)
            self._commit(txn)
            self._notify(to_account or from_account, "Transaction rejected",
                         f"Transaction {txn.transaction_reference} was rejected. Reason: {remarks or 'Not specified'}")
            logger.info("transaction %s rejected by %s", txn.id, approver)
            return {"transaction": txn, "message": "Transaction rejected successfully"}

        for account in (from_account, to_account):
            if account is not None and account.status != models.AccountStatus.ACTIVE:
                raise ValueError(f"Account {account.account_number} is no longer active")

        if from_account is not None and from_account.balance < txn.amount:
            if txn.transaction_type == models.TransactionType.DEPOSIT:
                raise ValueError("Insufficient balance in sender's account")
            raise ValueError("Insufficient balance in source account")

        self._apply(txn, from_account, to_account)
        txn.balance_after_transaction = from_account.balance if from_account is not None else to_account.balance
        txn.status = models.TransactionStatus.COMPLETED
        if remarks:
            txn.description = f"{txn.description or ''} | Approved: {remarks}"[:500]
        txn.touch(approver)
        self._commit(txn, from_account, to_account)
        self._notify(to_account, "Transaction approved",
                     f"Transaction {txn.transaction_reference} of {rupees(txn.amount)} has been approved and completed.")
        logger.info("transaction %s approved by %s", txn.id, approver)
        return {"transaction": txn, "message": "Transaction approved and completed successfully"}

    # -- queries ------------------------------------------------------------

    def list_all(self) -> List[models.Transaction]:
        return self.txn_repo.list()

    def list_pending(self, branch_id: Optional[int] = None) -> List[models.Transaction]:
        return self.txn_repo.list_pending(branch_id)

    def filter(self, flt: schemas.TransactionFilter) -> schemas.PagedResult:
        rows, total = self.txn_repo.filter(flt)
        return schemas.PagedResult(
            items=[schemas.TransactionRead.from_transaction(t).model_dump(mode="json") for t in rows],
            total_count=total,
            page_number=flt.page_number,
            page_size=flt.page_size,
            total_pages=math.ceil(total / flt.page_size) if total else 0,
        )

    def delete(self, txn_id: int, by: str = "System") -> None:
        self.txn_repo.soft_delete(self.get(txn_id), by)

    def detail_for_user(self, txn: models.Transaction, account_ids) -> schemas.TransactionDetail:
        """View a transaction from the side of the user owning `account_ids`."""
        is_sender = txn.from_account_id in account_ids
        is_receiver = txn.to_account_id in account_ids
        if txn.transaction_type == models.TransactionType.DEPOSIT:
            if is_receiver:
                direction = CREDIT
                display = "Internal Transfer" if is_sender else "Deposit Received"
            else:
                direction, display = DEBIT, "Deposit Sent"
        elif txn.transaction_type == models.TransactionType.WITHDRAWAL:
            direction, display = DEBIT, "Cash Withdrawal"
        elif is_sender and is_receiver:
            direction, display = CREDIT, "Internal Account Transfer"
        elif is_sender:
            direction, display = DEBIT, "Transfer Sent"
        else:
            direction, display = CREDIT, "Transfer Received"
        base = schemas.TransactionRead.from_transaction(txn).model_dump()
        return schemas.TransactionDetail(**base, direction=direction, display_description=display)

    def _period_totals(self, txns, account_ids, start: datetime, end: datetime) -> dict:
        credits = debits = Decimal("0")
        count = 0
        for t in txns:
            if not start <= models.as_utc(t.transaction_date) < end:
                continue
            is_sender = t.from_account_id in account_ids
            is_receiver = t.to_account_id in account_ids
            amount = to_decimal(t.amount)
            if t.transaction_type == models.TransactionType.DEPOSIT and is_receiver and not is_sender:
                credits += amount
            elif t.transaction_type == models.TransactionType.WITHDRAWAL and is_sender:
                debits += amount
            elif t.transaction_type == models.TransactionType.TRANSFER:
                if is_sender and not is_receiver:
                    debits += amount
                elif is_receiver and not is_sender:
                    credits += amount
            elif is_sender:
                debits += amount
            count += 1
        return {"credits": float(credits), "debits": float(debits), "count": count}

    def user_history(
        self,
        user_id: int,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        account_number: Optional[str] = None,
    ) -> dict:
        accounts = self.account_repo.list_by_user(user_id)
        if account_number:
            accounts = [a for a in accounts if a.account_number == account_number]
            if not accounts:
                raise NotFoundError("Account not found")
        account_ids = {a.id for a in accounts}
        txns = self.txn_repo.list_for_accounts(list(account_ids), from_date, to_date)
        details = [self.detail_for_user(t, account_ids) for t in txns]
        return {
            "transactions": [d.model_dump(mode="json") for d in details],
            "total_credits": float(sum((Decimal(str(d.amount)) for d in details
                                        if d.direction == CREDIT and d.status == models.TransactionStatus.COMPLETED), Decimal("0"))),
            "total_debits": float(sum((Decimal(str(d.amount)) for d in details
                                       if d.direction == DEBIT and d.status == models.TransactionStatus.COMPLETED), Decimal("0"))),
            "total_count": len(details),
        }

    def account_statement(self, user_id: int, from_date: Optional[datetime] = None, to_date: Optional[datetime] = None) -> List[schemas.TransactionDetail]:
        to_date = to_date or models.utcnow()
        from_date = from_date or to_date - timedelta(days=30)
        account_ids = {a.id for a in self.account_repo.list_by_user(user_id)}
        txns = self.txn_repo.list_for_accounts(list(account_ids), from_date, to_date)
        return [self.detail_for_user(t, account_ids) for t in txns]

    def dashboard_summary(self, user_id: int) -> dict:
        accounts = self.account_repo.list_by_user(user_id)
        if not accounts:
            raise NotFoundError("No accounts found for user")
        account_ids = {a.id for a in accounts}
        txns = self.txn_repo.list_for_accounts(list(account_ids))
        now = models.utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        month_start = today.replace(day=1)
        primary = next((a for a in accounts if a.status == models.AccountStatus.ACTIVE), None)
        balance = float(primary.balance) if primary else 0.0
        pending = [t for t in txns if t.status == models.TransactionStatus.PENDING]
        return {
            "recent_transactions": [self.detail_for_user(t, account_ids).model_dump(mode="json") for t in txns[:10]],
            "pending_transactions": [self.detail_for_user(t, account_ids).model_dump(mode="json") for t in pending],
            "pending_count": len(pending),
            "today": self._period_totals(txns, account_ids, today, today + timedelta(days=1)),
            "week": self._period_totals(txns, account_ids, week_start, now + timedelta(seconds=1)),
            "month": self._period_totals(txns, account_ids, month_start, now + timedelta(seconds=1)),
            "current_balance": balance,
            "available_balance": balance,
        }
