"""Login and the signed-in user's profile.

Endpoints:
- POST /api/auth/login (form fields `email`, `password`)
- POST /api/auth/login-json
- GET /api/auth/profile
- PUT /api/auth/profile
"""

from fastapi import APIRouter, Depends, Form
from sqlmodel import Session

from .. import models, schemas, services
from ..auth import get_current_user
from ..database import get_session
from ..responses import http_error, ok

router = APIRouter(prefix="/auth", tags=["Auth"])


def _login(db: Session, email: str, password: str) -> dict:
    try:
        result = services.AuthService(db).login(email, password)
    except ValueError as e:
        raise http_error(e)
    return ok({"token": result["token"], "user": result["user"]}, result["message"])


@router.post("/login")
def login(email: str = Form(...), password: str = Form(...), db: Session = Depends(get_session)):
    """Authenticate with form fields and return a 24 hour JWT."""
    return _login(db, email, password)


@router.post("/login-json")
def login_json(payload: schemas.LoginIn, db: Session = Depends(get_session)):
    return _login(db, payload.email, payload.password)


@router.get("/profile")
def get_profile(user: models.User = Depends(get_current_user)):
    return ok(schemas.UserRead.model_validate(user).model_dump(mode="json"), "Profile retrieved successfully")


@router.put("/profile")
def update_profile(
    payload: schemas.ProfileUpdate,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    try:
        updated = services.UserService(db).update(user.id, payload, updated_by=user.email)
    except ValueError as e:
        raise http_error(e)
    return ok(schemas.UserRead.model_validate(updated).model_dump(mode="json"), "Profile updated successfully")
