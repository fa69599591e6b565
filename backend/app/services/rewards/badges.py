"""
Badge Engine

Evaluates badge criteria against a user's aggregate statistics and awards
newly-qualified badges exactly once.

Criteria are stored on each badge as {"type": <kind>, "threshold": <int>}.
Each kind is a BadgeCriterion subclass registered in CRITERIA_REGISTRY;
adding a criterion means adding a class, nothing else.

Idempotency:
- Already-earned badges are skipped before evaluation.
- The (user_id, badge_id) unique constraint rejects a concurrent duplicate;
  the losing insert is rolled back and treated as already earned.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Type
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.db_models import (
    BadgeDB,
    CoinWalletDB,
    ComplaintDB,
    TERMINAL_STATUSES,
    UserBadgeDB,
    utcnow,
)


logger = logging.getLogger(__name__)


STREAK_WINDOW = timedelta(days=7)


# =============================================================================
# USER STATISTICS
# =============================================================================

class UserStatistics:
    """
    Aggregates for one user, computed on first access and cached for the
    lifetime of a single recheck.
    """

    def __init__(self, db: Session, user_id: str, now: Optional[datetime] = None):
        self.db = db
        self.user_id = user_id
        self.now = now or utcnow()
        self._cache: Dict[str, int] = {}

    def _cached(self, key: str, compute) -> int:
        if key not in self._cache:
            self._cache[key] = compute()
        return self._cache[key]

    def _complaints(self):
        return self.db.query(ComplaintDB).filter(ComplaintDB.citizen_id == self.user_id)

    @property
    def complaints_submitted(self) -> int:
        return self._cached(
            "complaints_submitted",
            lambda: self._complaints().filter(ComplaintDB.duplicate_of.is_(None)).count(),
        )

    @property
    def complaints_resolved(self) -> int:
        return self._cached(
            "complaints_resolved",
            lambda: self._complaints().filter(ComplaintDB.status.in_(TERMINAL_STATUSES)).count(),
        )

    @property
    def sla_resolved(self) -> int:
        return self._cached(
            "sla_resolved",
            lambda: self._complaints().filter(
                ComplaintDB.resolved_at.isnot(None),
                ComplaintDB.resolved_at <= ComplaintDB.sla_deadline,
            ).count(),
        )

    @property
    def total_coins(self) -> int:
        def compute():
            wallet = self.db.query(CoinWalletDB).filter(CoinWalletDB.user_id == self.user_id).first()
            return wallet.total_earned if wallet else 0
        return self._cached("total_coins", compute)

    @property
    def recent_complaints(self) -> int:
        return self._cached(
            "recent_complaints",
            lambda: self._complaints().filter(
                ComplaintDB.created_at >= self.now - STREAK_WINDOW
            ).count(),
        )


# =============================================================================
# CRITERIA
# =============================================================================

class BadgeCriterion(ABC):
    """A threshold over one user statistic."""

    kind: str = ""

    def __init__(self, threshold: int):
        self.threshold = threshold

    @abstractmethod
    def measure(self, stats: UserStatistics) -> int:
        """Current value of the statistic this criterion tracks."""

    def evaluate(self, stats: UserStatistics) -> bool:
        return self.measure(stats) >= self.threshold


class ComplaintsSubmitted(BadgeCriterion):
    """Non-duplicate complaints filed."""
    kind = "complaints_submitted"

    def measure(self, stats: UserStatistics) -> int:
        return stats.complaints_submitted


class ComplaintsResolved(BadgeCriterion):
    """Complaints that reached RESOLVED or CLOSED."""
    kind = "complaints_resolved"

    def measure(self, stats: UserStatistics) -> int:
        return stats.complaints_resolved


class SlaResolved(BadgeCriterion):
    """Complaints resolved at or before their deadline."""
    kind = "sla_resolved"

    def measure(self, stats: UserStatistics) -> int:
        return stats.sla_resolved


class TotalCoins(BadgeCriterion):
    kind = "total_coins"

    def measure(self, stats: UserStatistics) -> int:
        return stats.total_coins


class Streak7d(BadgeCriterion):
    """Complaints created in the trailing 7 days."""
    kind = "streak_7d"

    def measure(self, stats: UserStatistics) -> int:
        return stats.recent_complaints


CRITERIA_REGISTRY: Dict[str, Type[BadgeCriterion]] = {
    cls.kind: cls
    for cls in (ComplaintsSubmitted, ComplaintsResolved, SlaResolved, TotalCoins, Streak7d)
}


def build_criterion(descriptor: Optional[Dict[str, Any]]) -> Optional[BadgeCriterion]:
    """Instantiate the criterion for a stored descriptor; None if unusable."""
    if not descriptor:
        return None

    criterion_cls = CRITERIA_REGISTRY.get(descriptor.get("type"))
    threshold = descriptor.get("threshold")
    if criterion_cls is None or not isinstance(threshold, int):
        return None

    return criterion_cls(threshold)


# =============================================================================
# ENGINE
# =============================================================================

def _badge_dict(badge: BadgeDB) -> Dict[str, Any]:
    return {
        "id": badge.id,
        "slug": badge.slug,
        "name": badge.name,
        "description": badge.description,
        "icon": badge.icon,
        "tier": badge.tier.value,
        "criteria": badge.criteria,
    }


class BadgeEngine:
    """Re-checks unmet badges after ledger-affecting events."""

    def __init__(self, db: Session):
        self.db = db

    def earned_badge_ids(self, user_id: str) -> set:
        rows = self.db.query(UserBadgeDB.badge_id).filter(UserBadgeDB.user_id == user_id).all()
        return {row.badge_id for row in rows}

    def recheck(self, user_id: str, now: Optional[datetime] = None) -> List[BadgeDB]:
        """
        Award every badge the user newly qualifies for.

        Returns the badges awarded by this call.
        """
        earned = self.earned_badge_ids(user_id)
        stats = UserStatistics(self.db, user_id, now=now)
        awarded = []

        for badge in self.db.query(BadgeDB).order_by(BadgeDB.slug).all():
            if badge.id in earned:
                continue

            criterion = build_criterion(badge.criteria)
            if criterion is None:
                logger.warning(f"Badge {badge.slug} has unusable criteria: {badge.criteria}")
                continue

            if not criterion.evaluate(stats):
                continue

            if self._insert_award(user_id, badge.id, now):
                logger.info(f"Badge {badge.slug} awarded to user {user_id}")
                awarded.append(badge)

        return awarded

    def _insert_award(self, user_id: str, badge_id: str, now: Optional[datetime]) -> bool:
        self.db.add(UserBadgeDB(
            id=str(uuid4()),
            user_id=user_id,
            badge_id=badge_id,
            awarded_at=now or utcnow(),
        ))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.debug(f"Badge {badge_id} already awarded to user {user_id}")
            return False
        return True

    def list_badges(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Earned badges (newest first) and the ones still available."""
        awards = self.db.query(UserBadgeDB).filter(
            UserBadgeDB.user_id == user_id
        ).order_by(UserBadgeDB.awarded_at.desc()).all()
        earned_ids = {a.badge_id for a in awards}

        earned = [
            {**_badge_dict(a.badge), "awarded_at": a.awarded_at.isoformat() if a.awarded_at else None}
            for a in awards
        ]
        available = [
            _badge_dict(b)
            for b in self.db.query(BadgeDB).order_by(BadgeDB.slug).all()
            if b.id not in earned_ids
        ]

        return {"earned": earned, "available": available}
