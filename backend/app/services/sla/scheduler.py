"""
SLA Scheduler

Periodic sweep that detects SLA overruns and escalates them without human
intervention.

AUTHORITY: SYSTEM - Runs on a fixed interval (worker loop or internal
endpoint). No user confirmation required.

Sweep contract:
- Candidates: sla_breached = False AND resolved_at IS NULL
  AND status NOT IN (RESOLVED, CLOSED) AND sla_deadline < now
- Each candidate is flipped by a conditional UPDATE carrying the full
  predicate, so a row already flagged by a concurrent sweep (or resolved
  in the meantime) matches zero rows and is skipped.
- Flag flip + system history entry commit once per batch.
- The citizen breach bonus is awarded after commit, only for rows this run
  flipped. A bonus failure is logged and never undoes the flip.
"""
import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    ComplaintDB,
    ComplaintStatus,
    StatusHistoryDB,
    SYSTEM_ACTOR,
    TERMINAL_STATUSES,
    utcnow,
)
from ..rewards.hooks import AccountabilityRewards


logger = logging.getLogger(__name__)


SWEEP_BATCH_SIZE = int(os.getenv("SLA_SWEEP_BATCH_SIZE", "100"))
WARNING_WINDOW = timedelta(hours=3)
BREACH_NOTE = "SLA deadline exceeded - auto-flagged by system."


# =============================================================================
# SLA STATUS SNAPSHOT
# =============================================================================

def format_duration(delta: timedelta) -> str:
    """Human-readable duration: 'Xd Yh', 'Xh Ym' or 'Xm'."""
    total_minutes = max(int(delta.total_seconds() // 60), 0)
    days, remainder = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(remainder, 60)

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def sla_status(complaint: ComplaintDB, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Point-in-time view of a complaint's deadline for display."""
    now = now or utcnow()

    if complaint.resolved_at is not None or complaint.status in TERMINAL_STATUSES:
        return {
            "remaining": "Resolved",
            "is_breached": bool(complaint.sla_breached),
            "is_warning": False,
            "is_resolved": True,
        }

    remaining = complaint.sla_deadline - now
    if complaint.sla_breached or remaining.total_seconds() < 0:
        return {
            "remaining": f"Overdue by {format_duration(-remaining)}",
            "is_breached": True,
            "is_warning": False,
            "is_resolved": False,
        }

    return {
        "remaining": format_duration(remaining),
        "is_breached": False,
        "is_warning": remaining < WARNING_WINDOW,
        "is_resolved": False,
    }


# =============================================================================
# SCHEDULER
# =============================================================================

class SLAScheduler:
    """
    Single logical sweep actor.

    Safe to run from several processes at once: the conditional UPDATE is the
    only thing that decides who flips a row.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _open_unbreached():
        return (
            ComplaintDB.sla_breached.is_(False),
            ComplaintDB.resolved_at.is_(None),
            ComplaintDB.status.notin_(TERMINAL_STATUSES),
        )

    def find_candidates(self, now: datetime) -> List[str]:
        """Ids of complaints past deadline and not yet flagged, oldest deadline first."""
        rows = self.db.query(ComplaintDB.id).filter(
            *self._open_unbreached(),
            ComplaintDB.sla_deadline < now,
        ).order_by(ComplaintDB.sla_deadline).all()
        return [row.id for row in rows]

    def _flag_breach(self, complaint_id: str, now: datetime) -> bool:
        """Conditionally flip one complaint. True only if this call changed the row."""
        with self.db.begin_nested():
            updated = self.db.query(ComplaintDB).filter(
                ComplaintDB.id == complaint_id,
                *self._open_unbreached(),
                ComplaintDB.sla_deadline < now,
            ).update(
                {
                    ComplaintDB.sla_breached: True,
                    ComplaintDB.status: ComplaintStatus.BREACHED,
                    ComplaintDB.updated_at: now,
                },
                synchronize_session=False,
            )

            if updated == 0:
                return False

            self.db.add(StatusHistoryDB(
                id=str(uuid4()),
                complaint_id=complaint_id,
                status=ComplaintStatus.BREACHED,
                note=BREACH_NOTE,
                actor_id=SYSTEM_ACTOR,
                created_at=now,
            ))
        return True

    def run_sweep(self, now: Optional[datetime] = None, batch_size: Optional[int] = None) -> Dict[str, Any]:
        """
        Run one sweep.

        Returns a summary of what this run flagged and rewarded.
        """
        now = now or utcnow()
        batch_size = batch_size or SWEEP_BATCH_SIZE

        candidates = self.find_candidates(now)
        if not candidates:
            logger.debug("SLA sweep: no overdue complaints")
            return {
                "run_date": now.isoformat(),
                "candidates": 0,
                "breaches_flagged": 0,
                "rewards_awarded": 0,
                "errors": 0,
                "details": {"flagged": [], "errors": []},
            }

        flagged: List[str] = []
        errors: List[Dict[str, str]] = []

        for start in range(0, len(candidates), batch_size):
            batch_flagged = []
            for complaint_id in candidates[start:start + batch_size]:
                try:
                    if self._flag_breach(complaint_id, now):
                        batch_flagged.append(complaint_id)
                    else:
                        logger.debug(f"SLA sweep: complaint {complaint_id} already handled")
                except SQLAlchemyError as e:
                    logger.error(f"SLA sweep: failed to flag complaint {complaint_id}: {e}")
                    errors.append({"complaint_id": complaint_id, "error": str(e)})

            self.db.commit()
            flagged.extend(batch_flagged)

        rewards_awarded = self._award_breach_bonuses(flagged)

        logger.info(
            f"SLA sweep: {len(candidates)} candidates, {len(flagged)} flagged, "
            f"{rewards_awarded} bonuses, {len(errors)} errors"
        )

        return {
            "run_date": now.isoformat(),
            "candidates": len(candidates),
            "breaches_flagged": len(flagged),
            "rewards_awarded": rewards_awarded,
            "errors": len(errors),
            "details": {
                "flagged": flagged,
                "errors": errors,
            },
        }

    def _award_breach_bonuses(self, complaint_ids: List[str]) -> int:
        """Best-effort citizen bonus for each complaint flipped by this run."""
        rewards = AccountabilityRewards(self.db)
        awarded = 0

        for complaint_id in complaint_ids:
            complaint = self.db.query(ComplaintDB).filter(ComplaintDB.id == complaint_id).first()
            if complaint is None:
                continue
            if rewards.on_sla_breached(complaint):
                awarded += 1

        return awarded

    def get_upcoming_deadlines(self, hours_ahead: int = 24, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Open, unbreached complaints whose deadline falls within the window."""
        now = now or utcnow()
        window_end = now + timedelta(hours=hours_ahead)

        complaints = self.db.query(ComplaintDB).filter(
            *self._open_unbreached(),
            ComplaintDB.sla_deadline >= now,
            ComplaintDB.sla_deadline <= window_end,
        ).order_by(ComplaintDB.sla_deadline).all()

        return [
            {
                "complaint_id": c.id,
                "category": c.category,
                "severity": c.severity.value,
                "status": c.status.value,
                "priority_score": c.priority_score,
                "department_id": c.department_id,
                "sla_deadline": c.sla_deadline.isoformat(),
                "remaining": format_duration(c.sla_deadline - now),
            }
            for c in complaints
        ]
