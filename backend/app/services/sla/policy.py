"""
SLA Policy

Resolves the allowed resolution time for a complaint and turns it into a
concrete deadline.

Rule lookup, most specific first:
1. (category, severity, department) exact match in sla_rules
2. (severity, department) ignoring category
3. Built-in default table keyed by severity alone
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models.db_models import DepartmentDB, SLARuleDB, Severity, utcnow


# =============================================================================
# DEFAULTS
# =============================================================================

FALLBACK_HOURS = {
    Severity.CRITICAL: 2,
    Severity.HIGH: 12,
    Severity.MEDIUM: 24,
    Severity.LOW: 48,
}
DEFAULT_HOURS = 24

GENERAL_DEPARTMENT = "General"

CATEGORY_TO_DEPARTMENT = {
    "Water Leakage": "Water",
    "Road Damage": "Roads",
    "Garbage": "Sanitation",
    "Streetlight": "Electrical",
    "Public Safety": "Public Safety",
    "Park / Open Space": "Parks",
    "Stray Animals": "Animal Control",
    "Other": GENERAL_DEPARTMENT,
}


def _as_severity(severity: Any) -> Optional[Severity]:
    if isinstance(severity, Severity):
        return severity
    try:
        return Severity(str(severity).upper())
    except ValueError:
        return None


@dataclass
class SLAAssignment:
    """Deadline computed for a complaint at submission time."""
    deadline: datetime
    hours_allowed: int
    department_id: Optional[str] = None


class SLAPolicy:
    """Reads the SLA rule table. Never mutates configuration."""

    def __init__(self, db: Session):
        self.db = db

    def get_department_for_category(self, category: str) -> Optional[DepartmentDB]:
        """
        Department that owns a category.

        Unmapped categories go to General; if the mapped department is not
        configured, the first department is used; None if there are none.
        """
        name = CATEGORY_TO_DEPARTMENT.get(category, GENERAL_DEPARTMENT)

        department = self.db.query(DepartmentDB).filter(DepartmentDB.name == name).first()
        if department is None:
            department = self.db.query(DepartmentDB).order_by(DepartmentDB.name).first()
        return department

    def get_sla_hours(self, category: str, severity: Any, department_id: Optional[str] = None) -> int:
        """Allowed hours for the triple, falling back as described above."""
        sev = _as_severity(severity)
        if sev is None:
            return DEFAULT_HOURS

        rule = self.db.query(SLARuleDB).filter(
            SLARuleDB.category == category,
            SLARuleDB.severity == sev,
            SLARuleDB.department_id == department_id,
        ).first()

        if rule is None and department_id is not None:
            rule = self.db.query(SLARuleDB).filter(
                SLARuleDB.severity == sev,
                SLARuleDB.department_id == department_id,
            ).order_by(SLARuleDB.category).first()

        if rule is not None:
            return rule.hours_allowed

        return FALLBACK_HOURS.get(sev, DEFAULT_HOURS)

    def assign_sla(
        self,
        category: str,
        severity: Any,
        department_id: Optional[str] = None,
        submitted_at: Optional[datetime] = None,
    ) -> SLAAssignment:
        """Deadline = submission time + allowed hours."""
        submitted_at = submitted_at or utcnow()
        hours = self.get_sla_hours(category, severity, department_id)

        return SLAAssignment(
            deadline=submitted_at + timedelta(hours=hours),
            hours_allowed=hours,
            department_id=department_id,
        )
