"""
CiviLens Accountability Engine - SQLAlchemy ORM Models
Persistent storage for complaints, SLA configuration, and the coin ledger
"""
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum,
    Boolean, UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from ..database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    """Roles supplied by the authentication layer."""
    CITIZEN = "CITIZEN"
    AUTHORITY = "AUTHORITY"
    ADMIN = "ADMIN"


class Severity(str, Enum):
    """Citizen-reported severity of a complaint."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ComplaintStatus(str, Enum):
    """States in the complaint lifecycle."""
    SUBMITTED = "SUBMITTED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    BREACHED = "BREACHED"


# Statuses that end the resolution clock
TERMINAL_STATUSES = (ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED)


class BadgeTier(str, Enum):
    """Badge tiers, lowest first."""
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class RewardCategory(str, Enum):
    """Reward catalog categories."""
    FOOD = "FOOD"
    ENTERTAINMENT = "ENTERTAINMENT"
    SHOPPING = "SHOPPING"
    TRAVEL = "TRAVEL"
    OTHER = "OTHER"


# Actor id recorded on status history written by the sweep
SYSTEM_ACTOR = "system"


# =============================================================================
# USERS & CONFIGURATION
# =============================================================================

class UserDB(Base):
    """
    User known to the core.

    Identity and credentials are owned by the authentication layer; the
    core only needs the id, role, and the geography used by leaderboards.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(150), nullable=True)
    phone = Column(String(20), unique=True, nullable=True, index=True)
    email = Column(String(255), unique=True, nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.CITIZEN, index=True)

    # Leaderboard scope
    city = Column(String(100), nullable=True, index=True)
    state = Column(String(100), nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    wallet = relationship("CoinWalletDB", back_populates="user", uselist=False)
    badges = relationship("UserBadgeDB", back_populates="user", order_by=lambda: UserBadgeDB.awarded_at.desc())


class DepartmentDB(Base):
    """Municipal department that owns a class of complaints."""
    __tablename__ = "departments"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    sla_rules = relationship("SLARuleDB", back_populates="department", cascade="all, delete-orphan")


class SLARuleDB(Base):
    """Configured resolution time for a (category, severity, department) triple."""
    __tablename__ = "sla_rules"
    __table_args__ = (
        UniqueConstraint("department_id", "category", "severity", name="uq_sla_rule_dept_category_severity"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    department_id = Column(String(36), ForeignKey("departments.id", ondelete="CASCADE"), nullable=True, index=True)
    category = Column(String(100), nullable=False)
    severity = Column(SQLEnum(Severity), nullable=False)
    hours_allowed = Column(Integer, nullable=False)

    department = relationship("DepartmentDB", back_populates="sla_rules")


class CriticalZoneDB(Base):
    """High-sensitivity area (hospital, school, market) used by priority scoring."""
    __tablename__ = "critical_zones"

    id = Column(String(36), primary_key=True)  # UUID
    label = Column(String(150), nullable=False)
    zone_type = Column(String(30), nullable=True)  # hospital, school, market
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius_km = Column(Float, nullable=False)


# =============================================================================
# COMPLAINTS
# =============================================================================

class ComplaintDB(Base):
    """
    A citizen complaint.

    priority_score / priority_breakdown are written once at submission.
    sla_breached only ever moves False -> True (set by the sweep).
    """
    __tablename__ = "complaints"
    __table_args__ = (
        Index("ix_complaints_sweep", "sla_breached", "sla_deadline"),
        Index("ix_complaints_duplicates", "category", "created_at"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    citizen_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=True, index=True)
    assigned_authority_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    duplicate_of = Column(String(36), ForeignKey("complaints.id"), nullable=True)

    # Intake
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)  # Photo evidence
    proof_image_url = Column(String(500), nullable=True)  # Proof of resolution
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    location_label = Column(String(255), nullable=True)
    severity = Column(SQLEnum(Severity), nullable=False)

    # Prioritization (immutable once set)
    priority_score = Column(Integer, nullable=False, default=0)
    priority_breakdown = Column(JSON, nullable=True)

    # Lifecycle
    status = Column(SQLEnum(ComplaintStatus), nullable=False, default=ComplaintStatus.SUBMITTED, index=True)
    sla_hours = Column(Integer, nullable=False)
    sla_deadline = Column(DateTime, nullable=False)
    sla_breached = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    department = relationship("DepartmentDB")
    status_history = relationship(
        "StatusHistoryDB",
        back_populates="complaint",
        order_by="StatusHistoryDB.created_at",
    )


class StatusHistoryDB(Base):
    """
    Append-only record of complaint status transitions.
    One entry per transition; never updated or deleted.
    """
    __tablename__ = "status_history"

    id = Column(String(36), primary_key=True)  # UUID
    complaint_id = Column(String(36), ForeignKey("complaints.id"), nullable=False, index=True)
    status = Column(SQLEnum(ComplaintStatus), nullable=False)
    note = Column(Text, nullable=True)
    actor_id = Column(String(36), nullable=False)  # User id, or SYSTEM_ACTOR for the sweep
    created_at = Column(DateTime, default=utcnow)

    complaint = relationship("ComplaintDB", back_populates="status_history")


# =============================================================================
# COIN LEDGER
# =============================================================================

class CoinWalletDB(Base):
    """
    Per-user coin wallet.

    balance == sum(transactions.amount); total_earned == sum of positive amounts.
    Both are maintained only through the Ledger service.
    """
    __tablename__ = "coin_wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
        CheckConstraint("total_earned >= 0", name="ck_wallet_total_earned_non_negative"),
        Index("ix_coin_wallets_total_earned", "total_earned"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    balance = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("UserDB", back_populates="wallet")
    transactions = relationship("CoinTransactionDB", back_populates="wallet")


class CoinTransactionDB(Base):
    """Immutable ledger line. Positive amounts are awards, negative are debits."""
    __tablename__ = "coin_transactions"

    id = Column(String(36), primary_key=True)  # UUID
    wallet_id = Column(String(36), ForeignKey("coin_wallets.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    reason = Column(String(50), nullable=False)
    reference_id = Column(String(36), nullable=True, index=True)  # Complaint or reward id
    created_at = Column(DateTime, default=utcnow)

    wallet = relationship("CoinWalletDB", back_populates="transactions")


# =============================================================================
# BADGES
# =============================================================================

class BadgeDB(Base):
    """
    Badge catalog entry.

    criteria is a descriptor: {"type": "<criterion kind>", "threshold": <int>}
    """
    __tablename__ = "badges"

    id = Column(String(36), primary_key=True)  # UUID
    slug = Column(String(64), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    icon = Column(String(16), nullable=True)
    tier = Column(SQLEnum(BadgeTier), nullable=False, default=BadgeTier.BRONZE)
    criteria = Column(JSON, nullable=False)


class UserBadgeDB(Base):
    """Badge award. At most one per (user, badge); never revoked."""
    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    badge_id = Column(String(36), ForeignKey("badges.id"), nullable=False)
    awarded_at = Column(DateTime, default=utcnow)

    user = relationship("UserDB", back_populates="badges")
    badge = relationship("BadgeDB")


# =============================================================================
# REWARDS
# =============================================================================

class RewardDB(Base):
    """Redeemable reward. stock == -1 means unlimited."""
    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("stock >= -1", name="ck_reward_stock_valid"),
        CheckConstraint("coin_cost > 0", name="ck_reward_cost_positive"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    partner = Column(String(100), nullable=False)
    coin_cost = Column(Integer, nullable=False)
    category = Column(SQLEnum(RewardCategory), nullable=False, default=RewardCategory.OTHER)
    stock = Column(Integer, nullable=False, default=-1)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)


class RedemptionDB(Base):
    """Coupon issued in exchange for coins. Created atomically with the ledger debit."""
    __tablename__ = "redemptions"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    reward_id = Column(String(36), ForeignKey("rewards.id"), nullable=False)
    coins_spent = Column(Integer, nullable=False)
    code = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    reward = relationship("RewardDB")
