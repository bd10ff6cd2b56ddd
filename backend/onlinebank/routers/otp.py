"""One-time passcode endpoints used before registration and other verified actions."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import schemas, services
from ..database import get_session
from ..responses import http_error, ok

router = APIRouter(prefix="/otp", tags=["OTP"])


@router.post("/send")
def send_otp(payload: schemas.OtpRequest, db: Session = Depends(get_session)):
    try:
        otp = services.OtpService(db).send(payload.email, payload.purpose, payload.user_id)
    except ValueError as e:
        raise http_error(e)
    return ok({"email": otp.email, "expires_at": otp.expires_at.isoformat()}, "OTP sent successfully")


@router.post("/resend")
def resend_otp(payload: schemas.OtpRequest, db: Session = Depends(get_session)):
    try:
        otp = services.OtpService(db).resend(payload.email, payload.purpose)
    except ValueError as e:
        raise http_error(e)
    return ok({"email": otp.email, "expires_at": otp.expires_at.isoformat()}, "OTP resent successfully")


@router.post("/verify")
def verify_otp(payload: schemas.OtpVerify, db: Session = Depends(get_session)):
    if not services.OtpService(db).verify(payload.email, payload.otp_code, payload.purpose):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")
    return ok({"email": payload.email, "verified": True}, "OTP verified successfully")
