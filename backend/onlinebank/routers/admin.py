"""Admin-only dashboard."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models, services
from ..auth import admin_only
from ..database import get_session
from ..responses import ok

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard")
def dashboard(admin: models.User = Depends(admin_only), db: Session = Depends(get_session)):
    """Bank-wide counts, balances and the approval backlog."""
    return ok(services.StatsService(db).admin_dashboard(), "Dashboard data retrieved successfully")
