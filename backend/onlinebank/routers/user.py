"""User administration: admins list, edit and deactivate users; any user may read their own record."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, schemas, services
from ..auth import admin_only, get_current_user
from ..database import get_session
from ..responses import http_error, ok
from .account import is_staff

router = APIRouter(prefix="/user", tags=["User"])


def user_out(user: models.User) -> dict:
    return schemas.UserRead.model_validate(user).model_dump(mode="json")


@router.get("")
def list_users(
    role: Optional[models.UserRole] = None,
    search: Optional[str] = None,
    admin: models.User = Depends(admin_only),
    db: Session = Depends(get_session),
):
    users = services.UserService(db).list(role, search)
    return ok([user_out(u) for u in users], "Users retrieved successfully")


@router.get("/{user_id}")
def get_user(user_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    if not is_staff(user) and user.id != user_id:
        raise HTTPException(status_code=403, detail="Access denied.")
    try:
        found = services.UserService(db).get(user_id)
    except ValueError as e:
        raise http_error(e)
    return ok(user_out(found), "User retrieved successfully")


@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    admin: models.User = Depends(admin_only),
    db: Session = Depends(get_session),
):
    try:
        updated = services.UserService(db).update(user_id, payload, updated_by=admin.email)
    except ValueError as e:
        raise http_error(e)
    return ok(user_out(updated), "User updated successfully")


@router.delete("/{user_id}")
def delete_user(user_id: int, admin: models.User = Depends(admin_only), db: Session = Depends(get_session)):
    if admin.id == user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    try:
        services.UserService(db).delete(user_id, deleted_by=admin.email)
    except ValueError as e:
        raise http_error(e)
    return ok(None, "User deleted successfully")
