"""
Complaint API Routes

Citizen intake and authority handling of complaints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_authority
from ..models.db_models import UserDB, UserRole
from ..services.complaints import ComplaintNotFound, ComplaintService, ComplaintServiceError
from .errors import to_http


router = APIRouter(prefix="/complaints", tags=["complaints"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class SubmitComplaintRequest(BaseModel):
    """New complaint from a citizen."""
    category: str = Field(..., description="Issue category, e.g. 'Road Damage'")
    latitude: float = Field(..., description="Decimal degrees")
    longitude: float = Field(..., description="Decimal degrees")
    severity: str = Field(..., description="CRITICAL, HIGH, MEDIUM or LOW")
    description: Optional[str] = Field(None, description="Free-text description")
    image_url: Optional[str] = Field(None, description="Uploaded photo evidence")
    location_label: Optional[str] = Field(None, description="Human-readable address")


class UpdateStatusRequest(BaseModel):
    status: str = Field(..., description="Target status")
    note: Optional[str] = Field(None, description="Note recorded in the status history")


class AssignRequest(BaseModel):
    assignee_id: str = Field(..., description="Authority user id")


class ProofRequest(BaseModel):
    proof_image_url: str = Field(..., description="Uploaded proof of resolution")


class DuplicateRequest(BaseModel):
    duplicate_of: str = Field(..., description="Id of the original complaint")


# =============================================================================
# CITIZEN ENDPOINTS
# =============================================================================

@router.post("", status_code=201, response_model=dict)
async def submit_complaint(
    request: SubmitComplaintRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    File a complaint.

    Returns the priority score and breakdown, the SLA deadline, and the
    coins awarded for the submission.
    """
    service = ComplaintService(db)
    try:
        return service.submit(
            citizen_id=current_user.id,
            category=request.category,
            latitude=request.latitude,
            longitude=request.longitude,
            severity=request.severity,
            description=request.description,
            image_url=request.image_url,
            location_label=request.location_label,
        )
    except ComplaintServiceError as e:
        raise to_http(e)


@router.get("/mine", response_model=list)
async def my_complaints(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Caller's complaints, newest first."""
    return ComplaintService(db).list_for_citizen(current_user.id)


@router.get("/notifications", response_model=list)
async def my_notifications(
    limit: int = Query(50, ge=1, le=50),
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Status updates on the caller's complaints, newest first, including SLA breaches."""
    return ComplaintService(db).notifications(current_user.id, limit=limit)


@router.get("/{complaint_id}", response_model=dict)
async def get_complaint(
    complaint_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Complaint detail with status history and SLA snapshot."""
    try:
        complaint = ComplaintService(db).get_complaint(complaint_id)
    except ComplaintServiceError as e:
        raise to_http(e)

    if current_user.role == UserRole.CITIZEN and complaint["citizen_id"] != current_user.id:
        raise to_http(ComplaintNotFound(f"Complaint {complaint_id} not found"))
    return complaint


# =============================================================================
# AUTHORITY ENDPOINTS
# =============================================================================

@router.get("", response_model=dict)
async def list_complaints(
    status: Optional[str] = None,
    severity: Optional[str] = None,
    department_id: Optional[str] = None,
    sla_breached: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: UserDB = Depends(require_authority),
    db: Session = Depends(get_db),
):
    """Authority queue: breached first, then by priority."""
    try:
        return ComplaintService(db).list_all(
            status=status,
            severity=severity,
            department_id=department_id,
            sla_breached=sla_breached,
            page=page,
            limit=limit,
        )
    except ComplaintServiceError as e:
        raise to_http(e)


@router.patch("/{complaint_id}/status", response_model=dict)
async def update_status(
    complaint_id: str,
    request: UpdateStatusRequest,
    current_user: UserDB = Depends(require_authority),
    db: Session = Depends(get_db),
):
    """Move a complaint through its lifecycle."""
    try:
        return ComplaintService(db).update_status(
            complaint_id, request.status, actor_id=current_user.id, note=request.note
        )
    except ComplaintServiceError as e:
        raise to_http(e)


@router.patch("/{complaint_id}/assign", response_model=dict)
async def assign_complaint(
    complaint_id: str,
    request: AssignRequest,
    current_user: UserDB = Depends(require_authority),
    db: Session = Depends(get_db),
):
    try:
        return ComplaintService(db).assign(complaint_id, request.assignee_id, actor_id=current_user.id)
    except ComplaintServiceError as e:
        raise to_http(e)


@router.post("/{complaint_id}/proof", response_model=dict)
async def attach_proof(
    complaint_id: str,
    request: ProofRequest,
    current_user: UserDB = Depends(require_authority),
    db: Session = Depends(get_db),
):
    try:
        return ComplaintService(db).attach_resolution_proof(
            complaint_id, request.proof_image_url, actor_id=current_user.id
        )
    except ComplaintServiceError as e:
        raise to_http(e)


@router.post("/{complaint_id}/duplicate", response_model=dict)
async def mark_duplicate(
    complaint_id: str,
    request: DuplicateRequest,
    current_user: UserDB = Depends(require_authority),
    db: Session = Depends(get_db),
):
    try:
        return ComplaintService(db).mark_duplicate(complaint_id, request.duplicate_of, actor_id=current_user.id)
    except ComplaintServiceError as e:
        raise to_http(e)
