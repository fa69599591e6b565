"""
Classification API Routes

Keyword-based category suggestion for the intake form.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..auth import get_current_user
from ..models.db_models import UserDB
from ..services.prioritization import classify_text


router = APIRouter(prefix="/classify", tags=["classify"])


class ClassifyRequest(BaseModel):
    text: str = Field(..., description="Complaint description")


@router.post("", response_model=dict)
async def classify(
    request: ClassifyRequest,
    _: UserDB = Depends(get_current_user),
):
    """Suggested categories, best match first."""
    suggestions = classify_text(request.text)
    return {
        "suggestions": suggestions,
        "top": suggestions[0] if suggestions else None,
    }
