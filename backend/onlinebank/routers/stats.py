"""Public bank-wide statistics."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import services
from ..database import get_session
from ..responses import ok

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("/bank-overview")
def bank_overview(db: Session = Depends(get_session)):
    return ok(services.StatsService(db).bank_overview(), "Bank statistics retrieved successfully")
