"""
Gamification API Routes

Wallet, badges, leaderboard, reward catalog and redemption.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_admin
from ..models.db_models import UserDB
from ..services.rewards import (
    BadgeEngine,
    LeaderboardScopeError,
    LeaderboardService,
    LedgerError,
    ProfileService,
    RedemptionError,
    RedemptionService,
    clamp_pagination,
)
from .errors import to_http


router = APIRouter(prefix="/gamification", tags=["gamification"])


class RedeemRequest(BaseModel):
    reward_id: str = Field(..., description="Reward to redeem")


# =============================================================================
# WALLET & PROFILE
# =============================================================================

@router.get("/wallet", response_model=dict)
async def get_wallet(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Balance, lifetime earnings and the 20 most recent transactions."""
    return ProfileService(db).get_wallet(current_user.id)


@router.get("/profile", response_model=dict)
async def get_profile(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Caller's accountability profile."""
    return ProfileService(db).get_profile(current_user.id)


@router.get("/profile/{user_id}", response_model=dict)
async def get_user_profile(
    user_id: str,
    _: UserDB = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Any user's accountability profile (admin only)."""
    profile = ProfileService(db).get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail={"code": "USER_NOT_FOUND", "message": f"User {user_id} not found"})
    return profile


@router.get("/badges", response_model=dict)
async def get_badges(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Earned and still-available badges."""
    return BadgeEngine(db).list_badges(current_user.id)


# =============================================================================
# LEADERBOARD
# =============================================================================

@router.get("/leaderboard", response_model=dict)
async def get_leaderboard(
    scope: str = Query("all", pattern="^(all|state|city)$"),
    city: Optional[str] = None,
    state: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Citizens ranked by lifetime coins.

    City/state scopes default to the caller's own city/state; 400 when
    neither the query nor the caller supplies one.
    """
    page, limit = clamp_pagination(page, limit)
    if scope == "city":
        city = city or current_user.city
    elif scope == "state":
        state = state or current_user.state

    service = LeaderboardService(db)
    try:
        result = service.rank(scope=scope, city=city, state=state, page=page, limit=limit)
        result["my_rank"] = service.my_rank(current_user.id, scope=scope, city=city, state=state)
    except LeaderboardScopeError as e:
        raise to_http(e)
    return result


# =============================================================================
# REWARDS
# =============================================================================

@router.get("/rewards", response_model=dict)
async def list_rewards(
    category: Optional[str] = None,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active rewards with affordability for the caller."""
    try:
        return RedemptionService(db).list_rewards(current_user.id, category=category)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={"code": "VALIDATION_ERROR", "message": f"Unknown reward category: {category}"},
        )


@router.post("/redeem", response_model=dict)
async def redeem_reward(
    request: RedeemRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Exchange coins for a coupon code."""
    try:
        return RedemptionService(db).redeem(current_user.id, request.reward_id)
    except (RedemptionError, LedgerError) as e:
        raise to_http(e)


@router.get("/my-redemptions", response_model=list)
async def my_redemptions(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return RedemptionService(db).list_redemptions(current_user.id)
