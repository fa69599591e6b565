"""
SLA Services

Deadline assignment and the periodic breach sweep.
"""

from .policy import SLAPolicy, SLAAssignment, FALLBACK_HOURS, CATEGORY_TO_DEPARTMENT
from .scheduler import SLAScheduler, sla_status, format_duration

__all__ = [
    'SLAPolicy',
    'SLAAssignment',
    'FALLBACK_HOURS',
    'CATEGORY_TO_DEPARTMENT',
    'SLAScheduler',
    'sla_status',
    'format_duration',
]
