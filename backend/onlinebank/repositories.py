"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
branches, accounts, transactions, OTPs). Repositories return SQLModel
objects and hide soft-deleted rows from every query. `create` and
`save` commit; `add` only stages a change so services can commit several
writes as one unit of work.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, or_
from sqlmodel import Session, select

from . import models


class BaseRepository:
    """Shared persistence helpers; subclasses set `model`."""
    model = None

    def __init__(self, session: Session):
        self.session = session

    def _select(self):
        return select(self.model).where(self.model.is_deleted == False)  # noqa: E712

    def get(self, entity_id: int):
        """Get a live row by primary key, `None` if missing or soft-deleted."""
        row = self.session.get(self.model, entity_id)
        if row is None or row.is_deleted:
            return None
        return row

    def list(self) -> List:
        return self.session.exec(self._select().order_by(self.model.id)).all()

    def count(self) -> int:
        stmt = select(func.count(self.model.id)).where(self.model.is_deleted == False)  # noqa: E712
        return self.session.exec(stmt).one()

    def add(self, row):
        self.session.add(row)
        return row

    def create(self, row):
        """Persist a new row and return the managed instance."""
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def save(self, row=None):
        if row is not None:
            self.session.add(row)
        self.session.commit()
        if row is not None:
            self.session.refresh(row)
        return row

    def soft_delete(self, row, by: str = "System"):
        row.is_deleted = True
        row.touch(by)
        return self.save(row)


class UserRepository(BaseRepository):
    """CRUD operations for `User` objects."""
    model = models.User

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email (case-insensitive) or `None` if not found."""
        stmt = self._select().where(func.lower(models.User.email) == email.strip().lower())
        return self.session.exec(stmt).first()

    def get_by_phone(self, phone_number: str) -> Optional[models.User]:
        stmt = self._select().where(models.User.phone_number == phone_number)
        return self.session.exec(stmt).first()

    def list_by_role(self, role: models.UserRole) -> List[models.User]:
        return self.session.exec(self._select().where(models.User.role == role)).all()

    def get_branch_manager(self, branch_id: int) -> Optional[models.User]:
        stmt = self._select().where(
            models.User.branch_id == branch_id,
            models.User.role == models.UserRole.BRANCH_MANAGER,
            models.User.is_active == True,  # noqa: E712
        )
        return self.session.exec(stmt).first()


class BranchRepository(BaseRepository):
    """CRUD operations for `Branch` objects."""
    model = models.Branch

    def get_by_code(self, code: str) -> Optional[models.Branch]:
        stmt = self._select().where(func.upper(models.Branch.branch_code) == code.strip().upper())
        return self.session.exec(stmt).first()

    def get_by_ifsc(self, ifsc: str) -> Optional[models.Branch]:
        return self.session.exec(self._select().where(models.Branch.ifsc_code == ifsc)).first()

    def list_active(self) -> List[models.Branch]:
        stmt = self._select().where(models.Branch.is_active == True).order_by(models.Branch.id)  # noqa: E712
        return self.session.exec(stmt).all()

    def list_by_type(self, branch_type: models.BranchType) -> List[models.Branch]:
        stmt = self._select().where(
            models.Branch.branch_type == branch_type,
            models.Branch.is_active == True,  # noqa: E712
        )
        return self.session.exec(stmt).all()

    def get_main(self) -> Optional[models.Branch]:
        """The main branch, falling back to the first active branch."""
        stmt = self._select().where(models.Branch.is_main_branch == True)  # noqa: E712
        return self.session.exec(stmt).first() or next(iter(self.list_active()), None)


class AccountRepository(BaseRepository):
    """CRUD operations and lookups for `Account` objects."""
    model = models.Account

    def get_by_number(self, account_number: str) -> Optional[models.Account]:
        stmt = self._select().where(models.Account.account_number == account_number)
        return self.session.exec(stmt).first()

    def number_exists(self, account_number: str) -> bool:
        """Uniqueness check that also sees soft-deleted rows."""
        stmt = select(models.Account.id).where(models.Account.account_number == account_number)
        return self.session.exec(stmt).first() is not None

    def list_by_user(self, user_id: int) -> List[models.Account]:
        stmt = self._select().where(models.Account.user_id == user_id).order_by(models.Account.id)
        return self.session.exec(stmt).all()

    def list_by_branch(self, branch_id: int) -> List[models.Account]:
        stmt = self._select().where(models.Account.branch_id == branch_id).order_by(models.Account.id)
        return self.session.exec(stmt).all()

    def list_by_status(self, status: models.AccountStatus, branch_id: Optional[int] = None) -> List[models.Account]:
        stmt = self._select().where(models.Account.status == status)
        if branch_id is not None:
            stmt = stmt.where(models.Account.branch_id == branch_id)
        return self.session.exec(stmt.order_by(models.Account.id)).all()

    def list_by_type(self, account_type: models.AccountType) -> List[models.Account]:
        return self.session.exec(self._select().where(models.Account.account_type == account_type)).all()

    def get_active_of_type(self, user_id: int, account_type: models.AccountType) -> Optional[models.Account]:
        stmt = self._select().where(
            models.Account.user_id == user_id,
            models.Account.account_type == account_type,
            models.Account.status.in_([
                models.AccountStatus.PENDING,
                models.AccountStatus.VERIFIED,
                models.AccountStatus.ACTIVE,
                models.AccountStatus.DORMANT,
            ]),
        )
        return self.session.exec(stmt).first()

    def get_primary_active(self, user_id: int) -> Optional[models.Account]:
        stmt = self._select().where(
            models.Account.user_id == user_id,
            models.Account.status == models.AccountStatus.ACTIVE,
            models.Account.is_active == True,  # noqa: E712
        ).order_by(models.Account.id)
        return self.session.exec(stmt).first()

    def list_inactive_since(self, cutoff: datetime) -> List[models.Account]:
        """Active accounts whose last transaction (or opening) predates `cutoff`."""
        stmt = self._select().where(
            models.Account.status == models.AccountStatus.ACTIVE,
            or_(
                models.Account.last_transaction_date < cutoff,
                (models.Account.last_transaction_date == None) & (models.Account.opened_date < cutoff),  # noqa: E711
            ),
        )
        return self.session.exec(stmt).all()

    def total_balance(self, branch_id: Optional[int] = None):
        stmt = select(func.coalesce(func.sum(models.Account.balance), 0)).where(
            models.Account.is_deleted == False  # noqa: E712
        )
        if branch_id is not None:
            stmt = stmt.where(models.Account.branch_id == branch_id)
        return self.session.exec(stmt).one()


class TransactionRepository(BaseRepository):
    """Queries over `Transaction` rows."""
    model = models.Transaction

    def list(self) -> List[models.Transaction]:
        stmt = self._select().order_by(models.Transaction.transaction_date.desc())
        return self.session.exec(stmt).all()

    def list_for_accounts(
        self,
        account_ids: Sequence[int],
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[models.Transaction]:
        if not account_ids:
            return []
        stmt = self._select().where(
            or_(
                models.Transaction.from_account_id.in_(account_ids),
                models.Transaction.to_account_id.in_(account_ids),
            )
        )
        if from_date is not None:
            stmt = stmt.where(models.Transaction.transaction_date >= models.as_utc(from_date))
        if to_date is not None:
            stmt = stmt.where(models.Transaction.transaction_date <= models.as_utc(to_date))
        return self.session.exec(stmt.order_by(models.Transaction.transaction_date.desc())).all()

    def list_pending(self, branch_id: Optional[int] = None) -> List[models.Transaction]:
        stmt = self._select().where(models.Transaction.status == models.TransactionStatus.PENDING)
        if branch_id is not None:
            branch_accounts = select(models.Account.id).where(models.Account.branch_id == branch_id)
            stmt = stmt.where(
                or_(
                    models.Transaction.from_account_id.in_(branch_accounts),
                    models.Transaction.to_account_id.in_(branch_accounts),
                )
            )
        return self.session.exec(stmt.order_by(models.Transaction.transaction_date.desc())).all()

    def completed_debits_since(self, account_id: int, since: datetime):
        """Sum of completed withdrawals/transfers out of an account since `since`."""
        stmt = select(func.coalesce(func.sum(models.Transaction.amount), 0)).where(
            models.Transaction.is_deleted == False,  # noqa: E712
            models.Transaction.from_account_id == account_id,
            models.Transaction.status == models.TransactionStatus.COMPLETED,
            models.Transaction.transaction_date >= since,
        )
        return self.session.exec(stmt).one()

    def filter(self, flt) -> tuple:
        """Apply a `TransactionFilter` and return `(rows, total_count)`."""
        stmt = self._select()
        if flt.from_date is not None:
            stmt = stmt.where(models.Transaction.transaction_date >= models.as_utc(flt.from_date))
        if flt.to_date is not None:
            stmt = stmt.where(models.Transaction.transaction_date <= models.as_utc(flt.to_date))
        if flt.transaction_type is not None:
            stmt = stmt.where(models.Transaction.transaction_type == flt.transaction_type)
        if flt.status is not None:
            stmt = stmt.where(models.Transaction.status == flt.status)
        if flt.min_amount is not None:
            stmt = stmt.where(models.Transaction.amount >= flt.min_amount)
        if flt.max_amount is not None:
            stmt = stmt.where(models.Transaction.amount <= flt.max_amount)
        if flt.account_id is not None:
            stmt = stmt.where(
                or_(
                    models.Transaction.from_account_id == flt.account_id,
                    models.Transaction.to_account_id == flt.account_id,
                )
            )
        total = self.session.exec(select(func.count()).select_from(stmt.subquery())).one()
        stmt = (
            stmt.order_by(models.Transaction.transaction_date.desc())
            .offset((flt.page_number - 1) * flt.page_size)
            .limit(flt.page_size)
        )
        return self.session.exec(stmt).all(), total

    def count_since(self, since: datetime) -> int:
        stmt = select(func.count(models.Transaction.id)).where(
            models.Transaction.is_deleted == False,  # noqa: E712
            models.Transaction.transaction_date >= since,
        )
        return self.session.exec(stmt).one()


class OtpRepository(BaseRepository):
    """Lookups over `OtpVerification` rows for one email and purpose."""
    model = models.OtpVerification

    def _for(self, email: str, purpose: models.OtpPurpose):
        return self._select().where(
            func.lower(models.OtpVerification.email) == email.strip().lower(),
            models.OtpVerification.purpose == purpose,
        )

    def count_since(self, email: str, purpose: models.OtpPurpose, since: datetime) -> int:
        stmt = select(func.count()).select_from(
            self._for(email, purpose).where(models.OtpVerification.created_at >= since).subquery()
        )
        return self.session.exec(stmt).one()

    def list_unused(self, email: str, purpose: models.OtpPurpose) -> List[models.OtpVerification]:
        stmt = self._for(email, purpose).where(models.OtpVerification.is_used == False)  # noqa: E712
        return self.session.exec(stmt).all()

    def latest_valid(self, email: str, purpose: models.OtpPurpose, now: datetime) -> Optional[models.OtpVerification]:
        stmt = (
            self._for(email, purpose)
            .where(
                models.OtpVerification.is_used == False,  # noqa: E712
                models.OtpVerification.expires_at > now,
            )
            .order_by(models.OtpVerification.created_at.desc(), models.OtpVerification.id.desc())
        )
        return self.session.exec(stmt).first()

    def latest_used_since(self, email: str, purpose: models.OtpPurpose, since: datetime) -> Optional[models.OtpVerification]:
        stmt = self._for(email, purpose).where(
            models.OtpVerification.is_used == True,  # noqa: E712
            models.OtpVerification.used_at >= since,
        )
        return self.session.exec(stmt).first()

    def list_expired(self, now: datetime) -> List[models.OtpVerification]:
        stmt = self._select().where(models.OtpVerification.expires_at <= now)
        return self.session.exec(stmt).all()
