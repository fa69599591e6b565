"""
Dashboard API Routes

Aggregate counters for the authority portal.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import require_authority
from ..models.db_models import UserDB
from ..services.complaints import DashboardService


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=dict)
async def get_summary(
    _: UserDB = Depends(require_authority),
    db: Session = Depends(get_db),
):
    """Open, breached, critical and resolved counts."""
    return DashboardService(db).summary()


@router.get("/sla-stats", response_model=list)
async def get_sla_stats(
    _: UserDB = Depends(require_authority),
    db: Session = Depends(get_db),
):
    """Per-department SLA compliance and resolution rates."""
    return DashboardService(db).sla_stats()
