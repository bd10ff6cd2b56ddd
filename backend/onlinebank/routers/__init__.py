"""API routers, one module per endpoint group, all mounted under `/api`."""

from fastapi import APIRouter

from . import account, admin, auth, branch, otp, password_reset, registration, stats, transaction, user

api_router = APIRouter(prefix="/api")
for module in (auth, registration, otp, password_reset, account, transaction, branch, user, admin, stats):
    api_router.include_router(module.router)
