"""
Domain error -> HTTP translation shared by the routers.

Validation and business-rule failures map to 400, missing rows to 404,
lost compare-and-set races to 409.
"""
from fastapi import HTTPException

from ..services.complaints import (
    ComplaintConflict,
    ComplaintNotFound,
    UserNotFound,
)
from ..services.rewards import RewardNotFound

NOT_FOUND_ERRORS = (ComplaintNotFound, UserNotFound, RewardNotFound)
CONFLICT_ERRORS = (ComplaintConflict,)


def to_http(exc: Exception) -> HTTPException:
    """Build the HTTPException for a domain error carrying a `code`."""
    if isinstance(exc, NOT_FOUND_ERRORS):
        status_code = 404
    elif isinstance(exc, CONFLICT_ERRORS):
        status_code = 409
    else:
        status_code = 400

    return HTTPException(
        status_code=status_code,
        detail={"code": getattr(exc, "code", "ERROR"), "message": str(exc)},
    )
