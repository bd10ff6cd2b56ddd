"""Authentication helpers and FastAPI security dependencies.

`get_current_user` validates the bearer token and returns the matching
`User` row. `require_roles` builds a dependency that additionally
checks the user's role. Verification failures raise HTTPExceptions so
the dependencies can be used directly inside routes.
"""

import logging

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .database import get_session
from .services import decode_access_token

logger = logging.getLogger("onlinebank.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required.")
    payload = decode_token(credentials.credentials)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = repositories.UserRepository(db).get(user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_roles(*roles: models.UserRole):
    """Dependency factory restricting a route to the given roles."""
    allowed = {models.UserRole(r) for r in roles}

    def _check(user: models.User = Depends(get_current_user)) -> models.User:
        if models.UserRole(user.role) not in allowed:
            logger.warning("user %s (%s) denied; needs %s", user.id, user.role, [r.value for r in allowed])
            raise HTTPException(status_code=403, detail="Access denied.")
        return user

    return _check


admin_only = require_roles(models.UserRole.ADMIN)
staff_only = require_roles(models.UserRole.ADMIN, models.UserRole.BRANCH_MANAGER)
branch_manager_only = require_roles(models.UserRole.BRANCH_MANAGER)
