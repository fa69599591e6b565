"""
Complaint Lifecycle Services

Intake, status transitions, authority reads and the dashboard.
"""

from .complaint_service import (
    ComplaintService,
    ComplaintServiceError,
    ComplaintValidationError,
    ComplaintNotFound,
    UserNotFound,
    InvalidStatusTransition,
    ComplaintConflict,
    STATE_CONFIG,
    can_transition,
)
from .dashboard import DashboardService

__all__ = [
    'ComplaintService',
    'ComplaintServiceError',
    'ComplaintValidationError',
    'ComplaintNotFound',
    'UserNotFound',
    'InvalidStatusTransition',
    'ComplaintConflict',
    'STATE_CONFIG',
    'can_transition',
    'DashboardService',
]
