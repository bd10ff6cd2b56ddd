"""Forgotten-password endpoints: mail a reset code, then set a new password with it."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import schemas, services
from ..database import get_session
from ..responses import http_error, ok

router = APIRouter(prefix="/password-reset", tags=["Password reset"])


@router.post("/request")
def request_reset(payload: schemas.PasswordResetRequest, db: Session = Depends(get_session)):
    """Answers the same way whether or not the email is registered."""
    try:
        services.PasswordResetService(db).request(payload.email)
    except ValueError as e:
        raise http_error(e)
    return ok(None, "If the email exists, a reset code will be sent.")


@router.post("/reset")
def reset_password(payload: schemas.PasswordReset, db: Session = Depends(get_session)):
    try:
        services.PasswordResetService(db).reset(payload.email, payload.otp_code, payload.new_password)
    except ValueError as e:
        raise http_error(e)
    return ok(None, "Password reset successful")
