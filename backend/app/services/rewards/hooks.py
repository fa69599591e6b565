"""
Accountability Rewards

Post-commit reward side effects of complaint events.

Every award here is best-effort relative to the event that triggered it:
the complaint submission / status change / breach flag has already been
committed. Each reason is its own atomic ledger transaction, attempted
independently; a failure is logged and rolled back without blocking the
remaining reasons. The badge recheck runs last.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ...models.db_models import ComplaintDB
from .badges import BadgeEngine
from .ledger import COIN_RULES, COMPLAINT_MILESTONES, Ledger, RewardReason


logger = logging.getLogger(__name__)


class AccountabilityRewards:
    """Maps complaint events onto ledger awards and badge rechecks."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = Ledger(db)
        self.badges = BadgeEngine(db)

    # =========================================================================
    # EVENTS
    # =========================================================================

    def on_complaint_submitted(self, user_id: str, complaint_id: str, has_photo: bool) -> List[Dict[str, Any]]:
        """
        Submission, photo evidence, first-complaint and milestone awards.

        First/milestone are decided by the user's total complaint count at
        the moment of this submission.
        """
        reasons = [RewardReason.COMPLAINT_SUBMITTED]
        if has_photo:
            reasons.append(RewardReason.PHOTO_EVIDENCE)

        total = self._complaint_count(user_id)
        if total == 1:
            reasons.append(RewardReason.FIRST_COMPLAINT)
        if total in COMPLAINT_MILESTONES:
            reasons.append(COMPLAINT_MILESTONES[total])

        awarded = self._award_all(user_id, reasons, complaint_id)
        self._recheck_badges(user_id)
        return awarded

    def on_complaint_resolved(self, complaint: ComplaintDB) -> List[Dict[str, Any]]:
        """Resolution award, plus the SLA bonus when resolved at or before the deadline."""
        reasons = [RewardReason.COMPLAINT_RESOLVED]
        if complaint.resolved_at is not None and complaint.resolved_at <= complaint.sla_deadline:
            reasons.append(RewardReason.SLA_RESOLVED)

        user_id = complaint.citizen_id
        awarded = self._award_all(user_id, reasons, complaint.id)
        self._recheck_badges(user_id)
        return awarded

    def on_sla_breached(self, complaint: ComplaintDB) -> bool:
        """Breach bonus for the citizen whose complaint went overdue."""
        user_id = complaint.citizen_id
        awarded = self._safe_award(user_id, RewardReason.SLA_BREACH_CITIZEN, complaint.id)
        self._recheck_badges(user_id)
        return awarded is not None

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _award_all(self, user_id: str, reasons: List[str], reference_id: str) -> List[Dict[str, Any]]:
        awarded = []
        for reason in reasons:
            result = self._safe_award(user_id, reason, reference_id)
            if result is not None:
                awarded.append(result)
        return awarded

    def _safe_award(self, user_id: str, reason: str, reference_id: str) -> Optional[Dict[str, Any]]:
        amount = COIN_RULES[reason]
        try:
            self.ledger.award_coins(user_id, amount, reason, reference_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Coin award {reason} for user {user_id} (ref {reference_id}) failed: {e}")
            return None
        return {"reason": reason, "amount": amount}

    def _complaint_count(self, user_id: str) -> Optional[int]:
        try:
            return self.db.query(ComplaintDB).filter(ComplaintDB.citizen_id == user_id).count()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Complaint count for user {user_id} failed, skipping first/milestone awards: {e}")
            return None

    def _recheck_badges(self, user_id: str) -> None:
        try:
            self.badges.recheck(user_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Badge recheck for user {user_id} failed: {e}")
