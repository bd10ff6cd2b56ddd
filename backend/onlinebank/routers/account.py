"""Account endpoints.

Customers see and open their own accounts; branch managers and admins
verify, close and re-classify them. Branch managers only work on the
accounts held at their own branch.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, schemas
from ..auth import admin_only, get_current_user, staff_only
from ..banking import AccountService
from ..database import get_session
from ..responses import http_error, ok

router = APIRouter(prefix="/account", tags=["Account"])


def account_out(account: models.Account) -> dict:
    return schemas.AccountRead.from_account(account).model_dump(mode="json")


def is_staff(user: models.User) -> bool:
    return user.role in (models.UserRole.ADMIN, models.UserRole.BRANCH_MANAGER)


def check_branch_id(user: models.User, branch_id: Optional[int]) -> None:
    """Branch managers may only act inside their own branch."""
    if user.role == models.UserRole.BRANCH_MANAGER and user.branch_id != branch_id:
        raise HTTPException(status_code=403, detail="Access denied.")


def check_branch_scope(user: models.User, account: models.Account) -> None:
    check_branch_id(user, account.branch_id)


def _status_change(action, account_id: int, user: models.User, db: Session, message: str, *args):
    service = AccountService(db)
    try:
        check_branch_scope(user, service.get(account_id))
        account = getattr(service, action)(account_id, *args, by=user.email)
    except ValueError as e:
        raise http_error(e)
    return ok(account_out(account), message)


@router.get("")
def list_accounts(user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    service = AccountService(db)
    if user.role == models.UserRole.BRANCH_MANAGER:
        accounts = [a for a in service.list() if a.branch_id == user.branch_id]
    else:
        accounts = service.list()
    return ok([account_out(a) for a in accounts], "Accounts retrieved successfully")


@router.get("/my-accounts")
def my_accounts(user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    accounts = AccountService(db).list_by_user(user.id)
    return ok([account_out(a) for a in accounts], "Accounts retrieved successfully")


@router.get("/user/{user_id}")
def accounts_for_user(user_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    if not is_staff(user) and user.id != user_id:
        raise HTTPException(status_code=403, detail="Access denied.")
    accounts = AccountService(db).list_by_user(user_id)
    return ok([account_out(a) for a in accounts], "Accounts retrieved successfully")


@router.get("/pending")
def pending_accounts(user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    branch_id = user.branch_id if user.role == models.UserRole.BRANCH_MANAGER else None
    accounts = AccountService(db).list_pending(branch_id)
    return ok([account_out(a) for a in accounts], "Pending accounts retrieved successfully")


@router.get("/pending/branch/{branch_id}")
def pending_accounts_for_branch(branch_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    check_branch_id(user, branch_id)
    accounts = AccountService(db).list_pending(branch_id)
    return ok([account_out(a) for a in accounts], "Pending accounts retrieved successfully")


@router.post("/create")
def create_account(
    payload: schemas.CreateAccount,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    """Open an account for the signed-in user; it starts out `Pending`."""
    try:
        account = AccountService(db).create(user.id, payload)
    except ValueError as e:
        raise http_error(e)
    return ok(account_out(account), "Account created successfully and is pending verification")


@router.post("/verify/{account_id}")
def verify_account(
    account_id: int,
    payload: schemas.VerifyAccount,
    user: models.User = Depends(staff_only),
    db: Session = Depends(get_session),
):
    message = "Account verified successfully" if payload.is_approved else "Account rejected"
    return _status_change("verify", account_id, user, db, message, payload.is_approved, payload.remarks)


@router.post("/mark-verified/{account_id}")
def mark_verified(account_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    return _status_change("mark_verified", account_id, user, db, "Account marked as verified")


@router.post("/reject/{account_id}")
def reject_account(
    account_id: int,
    payload: Optional[schemas.AccountStatusUpdate] = None,
    user: models.User = Depends(staff_only),
    db: Session = Depends(get_session),
):
    reason = payload.reason if payload else None
    return _status_change("reject", account_id, user, db, "Account rejected successfully", reason)


@router.post("/close/{account_id}")
def close_account(account_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    return _status_change("close", account_id, user, db, "Account closed successfully")


@router.post("/reactivate/{account_id}")
def reactivate_account(account_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    return _status_change("reactivate", account_id, user, db, "Account reactivated successfully")


@router.put("/update-status/{account_id}")
def update_status(
    account_id: int,
    payload: schemas.AccountStatusUpdate,
    user: models.User = Depends(staff_only),
    db: Session = Depends(get_session),
):
    return _status_change("update_status", account_id, user, db, "Account status updated successfully", payload.status)


@router.post("/update-dormant")
def update_dormant(user: models.User = Depends(admin_only), db: Session = Depends(get_session)):
    count = AccountService(db).update_dormant()
    return ok({"updated": count}, f"{count} accounts marked as dormant")


@router.post("/transition-minors")
def transition_minors(user: models.User = Depends(admin_only), db: Session = Depends(get_session)):
    count = AccountService(db).transition_minor_to_major()
    return ok({"updated": count}, f"{count} minor accounts transitioned to major")


@router.get("/{account_id}")
def get_account(account_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    try:
        account = AccountService(db).get(account_id)
    except ValueError as e:
        raise http_error(e)
    if not is_staff(user) and account.user_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied.")
    return ok(account_out(account), "Account retrieved successfully")


@router.delete("/{account_id}")
def delete_account(account_id: int, user: models.User = Depends(admin_only), db: Session = Depends(get_session)):
    try:
        AccountService(db).delete(account_id, by=user.email)
    except ValueError as e:
        raise http_error(e)
    return ok(None, "Account deleted successfully")
