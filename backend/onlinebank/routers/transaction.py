"""Transaction endpoints: money movement, approvals and history."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, repositories, schemas
from ..auth import get_current_user, staff_only
from ..banking import TransactionService
from ..database import get_session
from ..responses import http_error, ok
from .account import check_branch_id, is_staff

router = APIRouter(prefix="/transaction", tags=["Transaction"])


def txn_out(txn: models.Transaction) -> dict:
    return schemas.TransactionRead.from_transaction(txn).model_dump(mode="json")


def _result(result: dict) -> dict:
    return ok(txn_out(result["transaction"]), result["message"])


def check_owns(user: models.User, account_number: str, db: Session) -> None:
    """Customers may only move money out of their own accounts."""
    if is_staff(user):
        return
    account = repositories.AccountRepository(db).get_by_number(account_number)
    if account is not None and account.user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only transact from your own accounts")


@router.get("/user-history")
def user_history(
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    account_number: Optional[str] = None,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    try:
        history = TransactionService(db).user_history(user.id, from_date, to_date, account_number)
    except ValueError as e:
        raise http_error(e)
    return ok(history, "Transaction history retrieved successfully")


@router.get("/dashboard-summary")
def dashboard_summary(user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    try:
        summary = TransactionService(db).dashboard_summary(user.id)
    except ValueError as e:
        raise http_error(e)
    return ok(summary, "Dashboard summary retrieved successfully")


@router.get("/statement")
def statement(
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    rows = TransactionService(db).account_statement(user.id, from_date, to_date)
    return ok([r.model_dump(mode="json") for r in rows], "Statement generated successfully")


@router.post("/deposit")
def deposit(
    payload: schemas.DepositRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    try:
        result = TransactionService(db).process_deposit(payload, user.id)
    except ValueError as e:
        raise http_error(e)
    return _result(result)


@router.post("/withdraw")
def withdraw(
    payload: schemas.WithdrawalRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    check_owns(user, payload.from_account_number, db)
    try:
        result = TransactionService(db).process_withdrawal(payload)
    except ValueError as e:
        raise http_error(e)
    return _result(result)


@router.post("/transfer")
def transfer(
    payload: schemas.TransferRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    check_owns(user, payload.from_account_number, db)
    try:
        result = TransactionService(db).process_transfer(payload)
    except ValueError as e:
        raise http_error(e)
    return _result(result)


@router.get("/pending-approval")
def pending_approval(user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    branch_id = user.branch_id if user.role == models.UserRole.BRANCH_MANAGER else None
    rows = TransactionService(db).list_pending(branch_id)
    return ok([txn_out(t) for t in rows], "Pending transactions retrieved successfully")


@router.get("/pending-approval/branch/{branch_id}")
def pending_approval_for_branch(branch_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    check_branch_id(user, branch_id)
    rows = TransactionService(db).list_pending(branch_id)
    return ok([txn_out(t) for t in rows], "Pending transactions retrieved successfully")


@router.post("/approve/{transaction_id}")
def approve(
    transaction_id: int,
    payload: schemas.TransactionApproval,
    user: models.User = Depends(staff_only),
    db: Session = Depends(get_session),
):
    """Approve (completing it) or reject a pending transaction."""
    service = TransactionService(db)
    try:
        txn = service.get(transaction_id)
        if user.role == models.UserRole.BRANCH_MANAGER and user.branch_id not in service.branch_ids(txn):
            raise HTTPException(status_code=403, detail="Access denied.")
        result = service.approve_transaction(transaction_id, user.email, payload.is_approved, payload.remarks)
    except ValueError as e:
        raise http_error(e)
    return _result(result)


@router.post("/filter")
def filter_transactions(
    payload: schemas.TransactionFilter,
    user: models.User = Depends(staff_only),
    db: Session = Depends(get_session),
):
    page = TransactionService(db).filter(payload)
    return ok(page.model_dump(mode="json"), "Transactions retrieved successfully")


@router.get("/all")
def all_transactions(user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    rows = TransactionService(db).list_all()
    return ok([txn_out(t) for t in rows], "Transactions retrieved successfully")


@router.get("/{transaction_id}")
def get_transaction(transaction_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    service = TransactionService(db)
    try:
        txn = service.get(transaction_id)
    except ValueError as e:
        raise http_error(e)
    if not is_staff(user):
        own = {a.id for a in repositories.AccountRepository(db).list_by_user(user.id)}
        if txn.from_account_id not in own and txn.to_account_id not in own:
            raise HTTPException(status_code=403, detail="Access denied.")
        return ok(service.detail_for_user(txn, own).model_dump(mode="json"), "Transaction retrieved successfully")
    return ok(txn_out(txn), "Transaction retrieved successfully")
