"""
Citizen Notifications

A read-only feed built from status history: every transition on the
citizen's complaints, including the BREACHED entries the sweep writes.
Nothing is stored; "read" is derived from the entry's age.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ...models.db_models import ComplaintStatus, StatusHistoryDB


FEED_LIMIT = 50
READ_AFTER = timedelta(hours=24)
TICKET_PREFIX = "#CVL-"

NOTIFICATION_TYPES = {
    ComplaintStatus.SUBMITTED: ("Issue Registered", "success", "✅"),
    ComplaintStatus.ASSIGNED: ("Issue Assigned", "assigned", "👤"),
    ComplaintStatus.IN_PROGRESS: ("Work In Progress", "info", "🔧"),
    ComplaintStatus.RESOLVED: ("Issue Resolved", "success", "✅"),
    ComplaintStatus.CLOSED: ("Issue Closed", "success", "🏁"),
    ComplaintStatus.BREACHED: ("SLA Breached", "breach", "🚨"),
}


def ticket_id(complaint_id: str) -> str:
    """Short citizen-facing reference, e.g. #CVL-3F9A0C1B."""
    return TICKET_PREFIX + complaint_id.replace("-", "")[:8].upper()


def notification_to_dict(entry: StatusHistoryDB, now: datetime) -> Dict[str, Any]:
    complaint = entry.complaint
    title, kind, icon = NOTIFICATION_TYPES[entry.status]
    created_at: Optional[datetime] = entry.created_at

    return {
        "id": entry.id,
        "title": title,
        "body": entry.note or f"Status changed to {entry.status.value.replace('_', ' ')}",
        "type": kind,
        "icon": icon,
        "status": entry.status.value,
        "ticket_id": ticket_id(complaint.id),
        "complaint_id": complaint.id,
        "category": complaint.category,
        "location_label": complaint.location_label,
        "time": created_at.isoformat() if created_at else None,
        "read": created_at is not None and now - created_at > READ_AFTER,
    }
