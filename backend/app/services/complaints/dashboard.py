"""
Authority Dashboard

Aggregate counts for the authority portal. Read-only.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ...models.db_models import ComplaintDB, DepartmentDB, Severity, TERMINAL_STATUSES, utcnow


def _percent(part: int, whole: int) -> int:
    return int(part / whole * 100 + 0.5)


class DashboardService:

    def __init__(self, db: Session):
        self.db = db

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Headline counters. resolvedToday counts from midnight UTC."""
        now = now or utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

        complaints = self.db.query(ComplaintDB)
        open_filter = ComplaintDB.status.notin_(TERMINAL_STATUSES)

        total_complaints = complaints.count()
        total_resolved = complaints.filter(ComplaintDB.status.in_(TERMINAL_STATUSES)).count()

        return {
            "totalOpen": complaints.filter(open_filter).count(),
            "totalBreached": complaints.filter(ComplaintDB.sla_breached.is_(True)).count(),
            "totalCritical": complaints.filter(open_filter, ComplaintDB.severity == Severity.CRITICAL).count(),
            "resolvedToday": complaints.filter(ComplaintDB.resolved_at >= today_start).count(),
            "totalComplaints": total_complaints,
            "totalResolved": total_resolved,
            "resolutionRate": _percent(total_resolved, total_complaints) if total_complaints else 0,
        }

    def sla_stats(self) -> List[Dict[str, Any]]:
        """Per-department SLA compliance."""
        stats = []

        for dept in self.db.query(DepartmentDB).order_by(DepartmentDB.name).all():
            scoped = self.db.query(ComplaintDB).filter(ComplaintDB.department_id == dept.id)
            total = scoped.count()

            if total == 0:
                stats.append({
                    "departmentId": dept.id,
                    "departmentName": dept.name,
                    "totalComplaints": 0,
                    "breachedCount": 0,
                    "resolvedCount": 0,
                    "slaComplianceRate": 100,
                    "resolutionRate": 0,
                })
                continue

            breached = scoped.filter(ComplaintDB.sla_breached.is_(True)).count()
            resolved = scoped.filter(ComplaintDB.status.in_(TERMINAL_STATUSES)).count()

            stats.append({
                "departmentId": dept.id,
                "departmentName": dept.name,
                "totalComplaints": total,
                "breachedCount": breached,
                "resolvedCount": resolved,
                "slaComplianceRate": _percent(total - breached, total),
                "resolutionRate": _percent(resolved, total),
            })

        return stats
