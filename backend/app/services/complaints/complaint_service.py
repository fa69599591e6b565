"""
Complaint Service

Orchestrates the complaint lifecycle:
  submit -> PriorityScorer -> SLAPolicy -> persist (+ SUBMITTED history)
         -> best-effort coin awards -> badge recheck
  update_status -> compare-and-set transition (+ history)
         -> best-effort resolution awards on first terminal entry

Status changes are conditional on the status that was read. If the sweep
(or another authority) changed the row in between, the update matches
nothing and ComplaintConflict is raised; nothing is written.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import (
    ComplaintDB,
    ComplaintStatus,
    Severity,
    StatusHistoryDB,
    TERMINAL_STATUSES,
    UserDB,
    UserRole,
    utcnow,
)
from ..prioritization import GeoZoneIndex, PriorityScorer
from ..rewards.hooks import AccountabilityRewards
from ..sla import SLAPolicy, sla_status
from .notifications import FEED_LIMIT, notification_to_dict


logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class ComplaintServiceError(Exception):
    """Raised when a complaint operation fails."""
    code = "COMPLAINT_ERROR"


class ComplaintValidationError(ComplaintServiceError):
    code = "VALIDATION_ERROR"


class ComplaintNotFound(ComplaintServiceError):
    code = "COMPLAINT_NOT_FOUND"


class UserNotFound(ComplaintServiceError):
    code = "USER_NOT_FOUND"


class InvalidStatusTransition(ComplaintServiceError):
    code = "INVALID_STATUS_TRANSITION"


class ComplaintConflict(ComplaintServiceError):
    """The complaint changed underneath the update (e.g. breached by the sweep)."""
    code = "CONFLICT"


# =============================================================================
# STATE CONFIGURATION
# =============================================================================
#
# BREACHED is entered only by the SLA sweep (actor = system) and is never
# accepted from a caller. A breached complaint can still be resolved or
# closed; sla_breached stays True.
#
# =============================================================================

STATE_CONFIG = {
    ComplaintStatus.SUBMITTED: {
        "description": "Filed by a citizen, awaiting triage",
        "allowed_transitions": [
            ComplaintStatus.ASSIGNED,
            ComplaintStatus.IN_PROGRESS,
            ComplaintStatus.RESOLVED,
            ComplaintStatus.CLOSED,
        ],
    },
    ComplaintStatus.ASSIGNED: {
        "description": "Assigned to an authority",
        "allowed_transitions": [
            ComplaintStatus.IN_PROGRESS,
            ComplaintStatus.RESOLVED,
            ComplaintStatus.CLOSED,
        ],
    },
    ComplaintStatus.IN_PROGRESS: {
        "description": "Work under way",
        "allowed_transitions": [ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED],
    },
    ComplaintStatus.BREACHED: {
        "description": "Deadline passed without resolution",
        "allowed_transitions": [ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED],
    },
    ComplaintStatus.RESOLVED: {
        "description": "Resolved by the authority",
        "allowed_transitions": [ComplaintStatus.CLOSED],
    },
    ComplaintStatus.CLOSED: {
        "description": "Closed",
        "allowed_transitions": [],
    },
}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def can_transition(current: ComplaintStatus, target: ComplaintStatus) -> bool:
    return target in STATE_CONFIG[current]["allowed_transitions"]


def _parse_enum(enum_cls, value: Any, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ComplaintValidationError(f"{field} must be one of: {allowed}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def complaint_to_dict(complaint: ComplaintDB) -> Dict[str, Any]:
    return {
        "id": complaint.id,
        "citizen_id": complaint.citizen_id,
        "category": complaint.category,
        "description": complaint.description,
        "image_url": complaint.image_url,
        "proof_image_url": complaint.proof_image_url,
        "latitude": complaint.latitude,
        "longitude": complaint.longitude,
        "location_label": complaint.location_label,
        "severity": complaint.severity.value,
        "priority_score": complaint.priority_score,
        "priority_breakdown": complaint.priority_breakdown,
        "status": complaint.status.value,
        "department_id": complaint.department_id,
        "department_name": complaint.department.name if complaint.department else None,
        "assigned_authority_id": complaint.assigned_authority_id,
        "duplicate_of": complaint.duplicate_of,
        "sla_hours": complaint.sla_hours,
        "sla_deadline": _iso(complaint.sla_deadline),
        "sla_breached": complaint.sla_breached,
        "resolved_at": _iso(complaint.resolved_at),
        "created_at": _iso(complaint.created_at),
        "updated_at": _iso(complaint.updated_at),
    }


def history_to_dict(entry: StatusHistoryDB) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "status": entry.status.value,
        "note": entry.note,
        "actor_id": entry.actor_id,
        "created_at": _iso(entry.created_at),
    }


# =============================================================================
# SERVICE
# =============================================================================

class ComplaintService:
    """Complaint intake, transitions and reads."""

    def __init__(self, db: Session):
        self.db = db
        self.policy = SLAPolicy(db)
        self.rewards = AccountabilityRewards(db)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _get_complaint(self, complaint_id: str) -> ComplaintDB:
        complaint = self.db.query(ComplaintDB).filter(ComplaintDB.id == complaint_id).first()
        if complaint is None:
            raise ComplaintNotFound(f"Complaint {complaint_id} not found")
        return complaint

    def _get_user(self, user_id: str) -> UserDB:
        user = self.db.query(UserDB).filter(UserDB.id == user_id).first()
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user

    def _log_status(self, complaint_id: str, status: ComplaintStatus, note: Optional[str], actor_id: str, now: datetime):
        self.db.add(StatusHistoryDB(
            id=str(uuid4()),
            complaint_id=complaint_id,
            status=status,
            note=note,
            actor_id=actor_id,
            created_at=now,
        ))

    def _compare_and_set(self, complaint: ComplaintDB, expected: ComplaintStatus, values: Dict[Any, Any]) -> None:
        updated = self.db.query(ComplaintDB).filter(
            ComplaintDB.id == complaint.id,
            ComplaintDB.status == expected,
        ).update(values, synchronize_session=False)

        if updated == 0:
            self.db.rollback()
            raise ComplaintConflict(
                f"Complaint {complaint.id} changed since it was read (expected {expected.value})"
            )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # =========================================================================
    # INTAKE
    # =========================================================================

    def submit(
        self,
        citizen_id: str,
        category: str,
        latitude: float,
        longitude: float,
        severity: Any,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        location_label: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        File a complaint.

        Returns priority score + breakdown, deadline, hours allowed,
        department and the coins awarded for the submission.
        """
        category = (category or "").strip()
        if not category:
            raise ComplaintValidationError("category is required")

        try:
            lat = float(latitude)
            lng = float(longitude)
        except (TypeError, ValueError):
            raise ComplaintValidationError("latitude and longitude must be numbers")
        if not (-90 <= lat <= 90):
            raise ComplaintValidationError("latitude must be between -90 and 90")
        if not (-180 <= lng <= 180):
            raise ComplaintValidationError("longitude must be between -180 and 180")

        sev = _parse_enum(Severity, severity, "severity")
        self._get_user(citizen_id)

        now = now or utcnow()
        department = self.policy.get_department_for_category(category)
        department_id = department.id if department else None

        scorer = PriorityScorer(self.db, GeoZoneIndex.from_db(self.db))
        priority = scorer.score(sev, lat, lng, category, now=now)
        sla = self.policy.assign_sla(category, sev, department_id, submitted_at=now)

        complaint = ComplaintDB(
            id=str(uuid4()),
            citizen_id=citizen_id,
            department_id=department_id,
            category=category,
            description=description,
            image_url=image_url,
            latitude=lat,
            longitude=lng,
            location_label=location_label,
            severity=sev,
            priority_score=priority.total,
            priority_breakdown=priority.breakdown,
            status=ComplaintStatus.SUBMITTED,
            sla_hours=sla.hours_allowed,
            sla_deadline=sla.deadline,
            sla_breached=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(complaint)
        self._log_status(
            complaint.id,
            ComplaintStatus.SUBMITTED,
            f"Complaint submitted. SLA: {sla.hours_allowed}h. Priority: {priority.total}/100.",
            citizen_id,
            now,
        )
        self._commit()

        logger.info(
            f"Complaint {complaint.id} submitted by {citizen_id}: "
            f"priority {priority.total}, SLA {sla.hours_allowed}h"
        )

        coins = self.rewards.on_complaint_submitted(citizen_id, complaint.id, bool(image_url))

        return {
            "complaint": complaint_to_dict(complaint),
            "priority_score": priority.total,
            "priority_breakdown": priority.breakdown,
            "sla_deadline": _iso(sla.deadline),
            "hours_allowed": sla.hours_allowed,
            "department_id": department_id,
            "coins_awarded": coins,
        }

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def update_status(
        self,
        complaint_id: str,
        new_status: Any,
        actor_id: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Move a complaint to a new status.

        resolved_at is set, and resolution coins awarded, only on the first
        entry into RESOLVED/CLOSED.
        """
        target = _parse_enum(ComplaintStatus, new_status, "status")
        if target == ComplaintStatus.BREACHED:
            raise InvalidStatusTransition("BREACHED is set by the SLA sweep only")

        complaint = self._get_complaint(complaint_id)
        current = complaint.status
        if not can_transition(current, target):
            raise InvalidStatusTransition(f"Cannot move from {current.value} to {target.value}")

        now = now or utcnow()
        first_resolution = target in TERMINAL_STATUSES and complaint.resolved_at is None

        values = {ComplaintDB.status: target, ComplaintDB.updated_at: now}
        if first_resolution:
            values[ComplaintDB.resolved_at] = now

        self._compare_and_set(complaint, current, values)
        self._log_status(complaint.id, target, note or f"Status changed to {target.value}", actor_id, now)
        self._commit()
        self.db.refresh(complaint)

        logger.info(f"Complaint {complaint.id}: {current.value} -> {target.value} by {actor_id}")

        coins = self.rewards.on_complaint_resolved(complaint) if first_resolution else []

        return {"complaint": complaint_to_dict(complaint), "coins_awarded": coins}

    def assign(
        self,
        complaint_id: str,
        assignee_id: str,
        actor_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Assign to an authority. SUBMITTED moves to ASSIGNED; other states keep theirs."""
        complaint = self._get_complaint(complaint_id)
        assignee = self._get_user(assignee_id)
        if assignee.role not in (UserRole.AUTHORITY, UserRole.ADMIN):
            raise ComplaintValidationError("Assignee must be an authority")

        now = now or utcnow()
        current = complaint.status
        target = ComplaintStatus.ASSIGNED if current == ComplaintStatus.SUBMITTED else current

        self._compare_and_set(complaint, current, {
            ComplaintDB.assigned_authority_id: assignee.id,
            ComplaintDB.status: target,
            ComplaintDB.updated_at: now,
        })
        self._log_status(complaint.id, target, f"Assigned to {assignee.name or assignee.id}", actor_id, now)
        self._commit()
        self.db.refresh(complaint)

        return complaint_to_dict(complaint)

    def attach_resolution_proof(
        self,
        complaint_id: str,
        proof_image_url: str,
        actor_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        if not proof_image_url:
            raise ComplaintValidationError("proof_image_url is required")

        complaint = self._get_complaint(complaint_id)
        now = now or utcnow()

        complaint.proof_image_url = proof_image_url
        complaint.updated_at = now
        self._log_status(complaint.id, complaint.status, "Resolution proof attached.", actor_id, now)
        self._commit()
        self.db.refresh(complaint)

        return complaint_to_dict(complaint)

    def mark_duplicate(
        self,
        complaint_id: str,
        duplicate_of_id: str,
        actor_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Flag as a duplicate; duplicates stop counting toward submission badges."""
        if complaint_id == duplicate_of_id:
            raise ComplaintValidationError("A complaint cannot duplicate itself")

        complaint = self._get_complaint(complaint_id)
        original = self._get_complaint(duplicate_of_id)
        now = now or utcnow()

        complaint.duplicate_of = original.id
        complaint.updated_at = now
        self._log_status(complaint.id, complaint.status, f"Marked as duplicate of {original.id}", actor_id, now)
        self._commit()
        self.db.refresh(complaint)

        return complaint_to_dict(complaint)

    # =========================================================================
    # READS
    # =========================================================================

    def get_complaint(self, complaint_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Complaint with ordered history and SLA snapshot."""
        complaint = self._get_complaint(complaint_id)
        return {
            **complaint_to_dict(complaint),
            "status_history": [history_to_dict(h) for h in complaint.status_history],
            "sla_status": sla_status(complaint, now),
        }

    def list_for_citizen(self, citizen_id: str) -> List[Dict[str, Any]]:
        complaints = self.db.query(ComplaintDB).filter(
            ComplaintDB.citizen_id == citizen_id
        ).order_by(ComplaintDB.created_at.desc()).all()
        return [{**complaint_to_dict(c), "sla_status": sla_status(c)} for c in complaints]

    def notifications(
        self,
        citizen_id: str,
        limit: int = FEED_LIMIT,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """
        Newest status-history entries across the citizen's complaints.

        Includes the sweep's BREACHED entries, so automatic escalation shows
        up in the feed. At most FEED_LIMIT entries.
        """
        now = now or utcnow()
        limit = min(max(limit, 1), FEED_LIMIT)

        entries = self.db.query(StatusHistoryDB).join(
            ComplaintDB, ComplaintDB.id == StatusHistoryDB.complaint_id
        ).filter(
            ComplaintDB.citizen_id == citizen_id
        ).order_by(
            StatusHistoryDB.created_at.desc(),
            StatusHistoryDB.id,
        ).limit(limit).all()

        return [notification_to_dict(entry, now) for entry in entries]

    def list_all(
        self,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        department_id: Optional[str] = None,
        sla_breached: Optional[bool] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """Authority queue: breached first, then highest priority, then newest."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        query = self.db.query(ComplaintDB)
        if status:
            query = query.filter(ComplaintDB.status == _parse_enum(ComplaintStatus, status, "status"))
        if severity:
            query = query.filter(ComplaintDB.severity == _parse_enum(Severity, severity, "severity"))
        if department_id:
            query = query.filter(ComplaintDB.department_id == department_id)
        if sla_breached is not None:
            query = query.filter(ComplaintDB.sla_breached.is_(sla_breached))

        total = query.count()
        complaints = query.order_by(
            ComplaintDB.sla_breached.desc(),
            ComplaintDB.priority_score.desc(),
            ComplaintDB.created_at.desc(),
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "complaints": [{**complaint_to_dict(c), "sla_status": sla_status(c)} for c in complaints],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        }
