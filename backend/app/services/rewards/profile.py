"""
Accountability Profile

Read model combining a citizen's wallet, badges, redemptions, complaint
statistics and leaderboard rank.
"""
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.db_models import ComplaintDB, TERMINAL_STATUSES, UserDB
from .badges import BadgeEngine
from .leaderboard import LeaderboardService
from .ledger import Ledger
from .redemption import RedemptionService


RECENT_TRANSACTIONS = 20
RECENT_REDEMPTIONS = 10


def _transaction_dict(tx) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "amount": tx.amount,
        "reason": tx.reason,
        "reference_id": tx.reference_id,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
    }


class ProfileService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = Ledger(db)

    def get_wallet(self, user_id: str) -> Dict[str, Any]:
        """Balance, lifetime earnings and recent transactions. Reads never create a wallet."""
        wallet = self.ledger.get_wallet(user_id)
        return {
            "balance": wallet.balance if wallet else 0,
            "total_earned": wallet.total_earned if wallet else 0,
            "transactions": [
                _transaction_dict(tx)
                for tx in self.ledger.get_transactions(user_id, limit=RECENT_TRANSACTIONS)
            ],
        }

    def complaint_stats(self, user_id: str) -> Dict[str, int]:
        base = self.db.query(func.count(ComplaintDB.id)).filter(ComplaintDB.citizen_id == user_id)

        total = base.scalar() or 0
        resolved = base.filter(ComplaintDB.status.in_(TERMINAL_STATUSES)).scalar() or 0
        breached = base.filter(ComplaintDB.sla_breached.is_(True)).scalar() or 0

        return {
            "total": total,
            "resolved": resolved,
            "pending": total - resolved,
            "breached": breached,
        }

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Full accountability profile, or None for an unknown user."""
        user = self.db.query(UserDB).filter(UserDB.id == user_id).first()
        if user is None:
            return None

        wallet = self.get_wallet(user_id)

        return {
            "user": {
                "id": user.id,
                "name": user.name,
                "role": user.role.value,
                "city": user.city,
                "state": user.state,
            },
            "coins": {
                "balance": wallet["balance"],
                "total_earned": wallet["total_earned"],
            },
            "badges": BadgeEngine(self.db).list_badges(user_id)["earned"],
            "transactions": wallet["transactions"],
            "redemptions": RedemptionService(self.db).list_redemptions(user_id, limit=RECENT_REDEMPTIONS),
            "complaint_stats": self.complaint_stats(user_id),
            "rank": LeaderboardService(self.db).my_rank(user_id),
        }
