"""
Leaderboard

Read-only ranking of citizens by lifetime coins earned, scoped by
geography (all / state / city).

Ranks are global across pages: rank = skip + index + 1. Equal totals are
enumerated by user id, so adjacent ranks among ties are stable but
arbitrary. my_rank counts strictly greater totals, so tied users report
the same rank there.
"""
import math
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ...models.db_models import CoinWalletDB, UserDB, UserRole


SCOPES = ("all", "state", "city")
DEFAULT_LIMIT = 20
MAX_LIMIT = 50
BADGES_PER_ENTRY = 3


class LeaderboardScopeError(ValueError):
    """Unknown scope, or a city/state scope without the value to filter on."""
    code = "INVALID_LEADERBOARD_SCOPE"


def clamp_pagination(page: int, limit: int) -> Tuple[int, int]:
    """page >= 1, 1 <= limit <= 50."""
    return max(page, 1), min(max(limit, 1), MAX_LIMIT)


class LeaderboardService:

    def __init__(self, db: Session):
        self.db = db

    def _scoped_query(self, scope: str, city: Optional[str], state: Optional[str]):
        if scope not in SCOPES:
            raise LeaderboardScopeError(f"Unknown leaderboard scope: {scope}")
        if scope == "city" and not city:
            raise LeaderboardScopeError("City leaderboard requires a city")
        if scope == "state" and not state:
            raise LeaderboardScopeError("State leaderboard requires a state")

        query = self.db.query(CoinWalletDB, UserDB).join(
            UserDB, UserDB.id == CoinWalletDB.user_id
        ).filter(
            UserDB.role == UserRole.CITIZEN,
            CoinWalletDB.total_earned > 0,
        )

        if scope == "city":
            query = query.filter(UserDB.city == city)
        elif scope == "state":
            query = query.filter(UserDB.state == state)

        return query

    def rank(
        self,
        scope: str = "all",
        city: Optional[str] = None,
        state: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
    ) -> Dict[str, Any]:
        """One page of the leaderboard."""
        page, limit = clamp_pagination(page, limit)
        skip = (page - 1) * limit

        query = self._scoped_query(scope, city, state)
        total = query.count()

        rows = query.order_by(
            CoinWalletDB.total_earned.desc(),
            UserDB.id,
        ).offset(skip).limit(limit).all()

        entries: List[Dict[str, Any]] = []
        for index, (wallet, user) in enumerate(rows):
            entries.append({
                "rank": skip + index + 1,
                "user_id": user.id,
                "name": user.name,
                "city": user.city,
                "state": user.state,
                "total_coins": wallet.total_earned,
                "current_balance": wallet.balance,
                "badges": [
                    {
                        "slug": award.badge.slug,
                        "name": award.badge.name,
                        "icon": award.badge.icon,
                        "tier": award.badge.tier.value,
                    }
                    for award in user.badges[:BADGES_PER_ENTRY]
                ],
            })

        return {
            "scope": scope,
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
            "entries": entries,
        }

    def my_rank(
        self,
        user_id: str,
        scope: str = "all",
        city: Optional[str] = None,
        state: Optional[str] = None,
    ) -> Optional[int]:
        """
        Caller's rank in scope.

        None (unranked) unless the caller is a citizen inside the scope who
        has earned something, i.e. would appear on the board itself.
        """
        mine = self._scoped_query(scope, city, state).filter(CoinWalletDB.user_id == user_id).first()
        if mine is None:
            return None
        wallet, _ = mine

        ahead = self._scoped_query(scope, city, state).filter(
            CoinWalletDB.total_earned > wallet.total_earned
        ).count()

        return ahead + 1
