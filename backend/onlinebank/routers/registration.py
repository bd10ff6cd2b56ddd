"""Registration endpoints: customer sign-up, branch manager onboarding and password changes."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models, schemas, services
from ..auth import admin_only, get_current_user
from ..database import get_session
from ..responses import http_error, ok

router = APIRouter(prefix="/registration", tags=["Registration"])


@router.post("/customer")
def register_customer(payload: schemas.CustomerRegistration, db: Session = Depends(get_session)):
    """Self-service sign-up; the email must have passed OTP verification."""
    try:
        user = services.RegistrationService(db).register_customer(payload)
    except ValueError as e:
        raise http_error(e)
    return ok(schemas.UserRead.model_validate(user).model_dump(mode="json"), "Customer registered successfully")


@router.post("/branch-manager")
def create_branch_manager(
    payload: schemas.CreateEmployee,
    admin: models.User = Depends(admin_only),
    db: Session = Depends(get_session),
):
    try:
        result = services.RegistrationService(db).create_employee(payload, created_by=admin.email)
    except ValueError as e:
        raise http_error(e)
    data = schemas.UserRead.model_validate(result["user"]).model_dump(mode="json")
    data["temporary_password"] = result["temporary_password"]
    return ok(data, "Employee created successfully. Login credentials have been sent by email.")


@router.post("/change-password")
def change_password(
    payload: schemas.ChangePassword,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    try:
        services.UserService(db).change_password(user.id, payload.current_password, payload.new_password)
    except ValueError as e:
        raise http_error(e)
    return ok(None, "Password changed successfully")
