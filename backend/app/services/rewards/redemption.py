"""
Reward Catalog & Redemption

Converts ledger balance into partner coupon codes.

Redemption is one atomic unit:
- claim one unit of stock (finite-stock rewards only, conditional on stock > 0)
- debit the coin cost (conditional on balance >= cost)
- insert the redemption record with a unique code
Any failure rolls all three back.
"""
import logging
import os
import secrets
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import RedemptionDB, RewardCategory, RewardDB
from .ledger import Ledger, RewardReason


logger = logging.getLogger(__name__)


REDEMPTION_CODE_PREFIX = os.getenv("REDEMPTION_CODE_PREFIX", "CL")
UNLIMITED_STOCK = -1


# =============================================================================
# ERRORS
# =============================================================================

class RedemptionError(Exception):
    """Raised when a reward cannot be redeemed."""
    code = "REDEMPTION_ERROR"


class RewardNotFound(RedemptionError):
    code = "REWARD_NOT_FOUND"


class RewardInactive(RedemptionError):
    code = "REWARD_INACTIVE"


class OutOfStock(RedemptionError):
    code = "OUT_OF_STOCK"


def generate_code(partner: str) -> str:
    """
    Coupon code: PREFIX-PARTNER-SUFFIX, e.g. CL-SWI-3F9A0C1B7E.

    The suffix carries 40 random bits; redemptions.code is UNIQUE as well.
    """
    partner_tag = "".join(ch for ch in (partner or "") if ch.isalnum())[:3].upper() or "GEN"
    return f"{REDEMPTION_CODE_PREFIX}-{partner_tag}-{secrets.token_hex(5).upper()}"


def _redemption_dict(redemption: RedemptionDB) -> Dict[str, Any]:
    reward = redemption.reward
    return {
        "id": redemption.id,
        "reward_id": redemption.reward_id,
        "reward_name": reward.name if reward else None,
        "partner": reward.partner if reward else None,
        "coins_spent": redemption.coins_spent,
        "code": redemption.code,
        "created_at": redemption.created_at.isoformat() if redemption.created_at else None,
    }


class RedemptionService:
    """Reward catalog reads and the redeem operation."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = Ledger(db)

    def redeem(self, user_id: str, reward_id: str) -> Dict[str, Any]:
        """
        Exchange coins for a reward code.

        Raises RewardNotFound, RewardInactive, OutOfStock, or the ledger's
        InsufficientBalance unchanged.
        """
        reward = self.db.query(RewardDB).filter(RewardDB.id == reward_id).first()
        if reward is None:
            raise RewardNotFound(f"Reward {reward_id} not found")
        if not reward.active:
            raise RewardInactive(f"Reward {reward.name} is no longer available")
        if reward.stock == 0:
            raise OutOfStock(f"Reward {reward.name} is out of stock")

        # Wallet creation commits on its own; do it before opening the unit
        self.ledger.get_or_create_wallet(user_id)

        cost = reward.coin_cost
        partner = reward.partner
        finite_stock = reward.stock != UNLIMITED_STOCK

        try:
            if finite_stock:
                claimed = self.db.query(RewardDB).filter(
                    RewardDB.id == reward_id,
                    RewardDB.stock > 0,
                ).update({RewardDB.stock: RewardDB.stock - 1}, synchronize_session=False)
                if claimed == 0:
                    raise OutOfStock(f"Reward {reward.name} is out of stock")

            wallet = self.ledger.deduct_coins(
                user_id, cost, RewardReason.REWARD_REDEEMED, reference_id=reward_id, commit=False
            )

            redemption = RedemptionDB(
                id=str(uuid4()),
                user_id=user_id,
                reward_id=reward_id,
                coins_spent=cost,
                code=generate_code(partner),
            )
            self.db.add(redemption)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"User {user_id} redeemed reward {reward_id} for {cost} coins")

        return {
            "redemption_id": redemption.id,
            "code": redemption.code,
            "coins_spent": cost,
            "reward_name": reward.name,
            "partner": partner,
            "balance": wallet.balance,
        }

    def list_rewards(self, user_id: str, category: Optional[str] = None) -> Dict[str, Any]:
        """Active rewards by ascending cost, annotated for the caller's balance."""
        wallet = self.ledger.get_wallet(user_id)
        balance = wallet.balance if wallet else 0

        query = self.db.query(RewardDB).filter(RewardDB.active.is_(True))
        if category:
            query = query.filter(RewardDB.category == RewardCategory(category.upper()))

        rewards = [
            {
                "id": r.id,
                "name": r.name,
                "description": r.description,
                "partner": r.partner,
                "coin_cost": r.coin_cost,
                "category": r.category.value,
                "stock": r.stock,
                "can_afford": balance >= r.coin_cost,
                "in_stock": r.stock != 0,
            }
            for r in query.order_by(RewardDB.coin_cost, RewardDB.name).all()
        ]

        return {"balance": balance, "rewards": rewards}

    def list_redemptions(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Caller's redemptions, newest first."""
        query = self.db.query(RedemptionDB).filter(
            RedemptionDB.user_id == user_id
        ).order_by(RedemptionDB.created_at.desc())
        if limit:
            query = query.limit(limit)
        return [_redemption_dict(r) for r in query.all()]
