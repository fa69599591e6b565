"""
Accountability Economy Services

Append-only coin ledger, badge qualification, reward redemption and the
scoped leaderboard.

- Ledger: wallet + transaction log, the only coin mutation primitives
- AccountabilityRewards: best-effort awards for complaint events
- BadgeEngine: criteria evaluation, one award per (user, badge)
- RedemptionService: coins -> partner coupon codes
- LeaderboardService: ranking by lifetime coins
"""

from .ledger import (
    Ledger,
    LedgerError,
    InsufficientBalance,
    RewardReason,
    COIN_RULES,
)
from .badges import BadgeEngine, BadgeCriterion, CRITERIA_REGISTRY, build_criterion
from .hooks import AccountabilityRewards
from .redemption import (
    RedemptionService,
    RedemptionError,
    RewardNotFound,
    RewardInactive,
    OutOfStock,
)
from .leaderboard import LeaderboardService, LeaderboardScopeError, clamp_pagination
from .profile import ProfileService

__all__ = [
    'Ledger',
    'LedgerError',
    'InsufficientBalance',
    'RewardReason',
    'COIN_RULES',
    'BadgeEngine',
    'BadgeCriterion',
    'CRITERIA_REGISTRY',
    'build_criterion',
    'AccountabilityRewards',
    'RedemptionService',
    'RedemptionError',
    'RewardNotFound',
    'RewardInactive',
    'OutOfStock',
    'LeaderboardService',
    'LeaderboardScopeError',
    'clamp_pagination',
    'ProfileService',
]
