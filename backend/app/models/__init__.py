"""CiviLens Accountability Engine - Data Models"""
from .db_models import (
    # Enums
    UserRole, Severity, ComplaintStatus, BadgeTier, RewardCategory,
    TERMINAL_STATUSES, SYSTEM_ACTOR, utcnow,
    # Users & configuration
    UserDB, DepartmentDB, SLARuleDB, CriticalZoneDB,
    # Complaints
    ComplaintDB, StatusHistoryDB,
    # Ledger, badges, rewards
    CoinWalletDB, CoinTransactionDB, BadgeDB, UserBadgeDB, RewardDB, RedemptionDB,
)

__all__ = [
    "UserRole", "Severity", "ComplaintStatus", "BadgeTier", "RewardCategory",
    "TERMINAL_STATUSES", "SYSTEM_ACTOR", "utcnow",
    "UserDB", "DepartmentDB", "SLARuleDB", "CriticalZoneDB",
    "ComplaintDB", "StatusHistoryDB",
    "CoinWalletDB", "CoinTransactionDB", "BadgeDB", "UserBadgeDB", "RewardDB", "RedemptionDB",
]
