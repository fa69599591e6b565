"""
CiviLens Accountability Engine - Internal SLA Routes

For deployments that trigger the breach sweep from an external cron rather
than the in-process worker. Callers authenticate with a shared key in the
X-Internal-Key header, never with a user token.
"""
import os
from fastapi import APIRouter, Depends, HTTPException, Header, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.sla import SLAScheduler


router = APIRouter(prefix="/internal", tags=["sla-internal"])

INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "civilens-internal-key-change-in-production")

MAX_LOOKAHEAD_HOURS = 24 * 30


def require_internal_key(x_internal_key: str = Header(...)) -> None:
    if x_internal_key != INTERNAL_API_KEY:
        raise HTTPException(status_code=403, detail="Internal key rejected")


@router.post("/sla-sweep", response_model=dict, dependencies=[Depends(require_internal_key)])
async def trigger_sla_sweep(db: Session = Depends(get_db)):
    """
    Flag every open complaint past its deadline and pay the breach bonus.

    Repeat calls are harmless: a complaint is only ever flagged once.
    """
    return SLAScheduler(db).run_sweep()


@router.get("/deadlines", response_model=dict, dependencies=[Depends(require_internal_key)])
async def list_due_soon(
    hours_ahead: int = Query(24, ge=1, le=MAX_LOOKAHEAD_HOURS),
    db: Session = Depends(get_db),
):
    due = SLAScheduler(db).get_upcoming_deadlines(hours_ahead=hours_ahead)
    return {"hours_ahead": hours_ahead, "count": len(due), "deadlines": due}
