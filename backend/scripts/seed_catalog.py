#!/usr/bin/env python3
"""
Catalog Seed Script
Upserts the configuration the engine reads: departments, SLA rules,
critical zones, badges and rewards. Safe to re-run.

Usage:
    python -m scripts.seed_catalog
"""
import sys
import os
from typing import Dict
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.database import SessionLocal, init_db
from app.models.db_models import (
    BadgeDB, BadgeTier, CriticalZoneDB, DepartmentDB, RewardCategory, RewardDB,
    Severity, SLARuleDB,
)
from app.services.prioritization import DEFAULT_CRITICAL_ZONES


DEPARTMENTS = [
    "Water",
    "Roads",
    "Sanitation",
    "Electrical",
    "Public Safety",
    "Parks",
    "Animal Control",
    "General",
]

# (department, category, {severity: hours})
SLA_RULES = [
    ("Water", "Water Leakage", {"CRITICAL": 2, "HIGH": 6, "MEDIUM": 24, "LOW": 48}),
    ("Roads", "Road Damage", {"CRITICAL": 4, "HIGH": 12, "MEDIUM": 48, "LOW": 72}),
    ("Sanitation", "Garbage", {"CRITICAL": 2, "HIGH": 8, "MEDIUM": 24, "LOW": 48}),
    ("Electrical", "Streetlight", {"CRITICAL": 2, "HIGH": 12, "MEDIUM": 24, "LOW": 48}),
    ("Public Safety", "Public Safety", {"CRITICAL": 1, "HIGH": 4, "MEDIUM": 12, "LOW": 24}),
    ("Parks", "Park / Open Space", {"HIGH": 24, "MEDIUM": 48, "LOW": 72}),
    ("Animal Control", "Stray Animals", {"CRITICAL": 2, "HIGH": 8, "MEDIUM": 24, "LOW": 48}),
]

BADGES = [
    ("first-reporter", "First Reporter", "Submitted your very first complaint", "🌱", "BRONZE", "complaints_submitted", 1),
    ("active-citizen", "Active Citizen", "Submitted 5 verified complaints", "📢", "BRONZE", "complaints_submitted", 5),
    ("civic-champion", "Civic Champion", "Submitted 10 verified complaints", "🏅", "SILVER", "complaints_submitted", 10),
    ("city-hero", "City Hero", "25 of your complaints have been resolved", "🦸", "GOLD", "complaints_resolved", 25),
    ("impact-maker", "Impact Maker", "5 complaints resolved within SLA deadline", "⚡", "SILVER", "sla_resolved", 5),
    ("streak-master", "Streak Master", "Filed 5 complaints in a single week", "🔥", "SILVER", "streak_7d", 5),
    ("coin-collector", "Coin Collector", "Earned 100+ App Coins in total", "💰", "BRONZE", "total_coins", 100),
    ("platinum-citizen", "Platinum Citizen", "Earned 500+ App Coins", "💎", "PLATINUM", "total_coins", 500),
    ("watchdog", "Watchdog", "Submitted 25 verified complaints", "🐕", "GOLD", "complaints_submitted", 25),
    ("problem-solver", "Problem Solver", "10 complaints resolved successfully", "🧩", "SILVER", "complaints_resolved", 10),
]

REWARDS = [
    ("Swiggy 20% Off", "Get 20% off on your next Swiggy order (max ₹100 discount)", "Swiggy", 150, "FOOD", -1),
    ("Swiggy 30% Off", "Get 30% off on your next Swiggy order (max ₹200 discount)", "Swiggy", 300, "FOOD", 50),
    ("Zomato Free Delivery", "Free delivery on your next 3 Zomato orders", "Zomato", 100, "FOOD", -1),
    ("Spotify Premium 1 Month", "One month of Spotify Premium subscription", "Spotify", 500, "ENTERTAINMENT", 20),
    ("YouTube Premium 1 Week", "One week of ad-free YouTube", "YouTube", 200, "ENTERTAINMENT", -1),
    ("Amazon ₹100 Voucher", "₹100 Amazon Gift Card", "Amazon", 400, "SHOPPING", 30),
    ("Myntra 15% Off", "15% off on Myntra (max ₹300)", "Myntra", 250, "SHOPPING", -1),
    ("BookMyShow ₹50 Off", "₹50 off on any movie ticket", "BookMyShow", 200, "ENTERTAINMENT", -1),
]


def seed_departments(db: Session) -> Dict[str, str]:
    """Returns name -> id."""
    ids = {}
    for name in DEPARTMENTS:
        dept = db.query(DepartmentDB).filter(DepartmentDB.name == name).first()
        if dept is None:
            dept = DepartmentDB(id=str(uuid4()), name=name)
            db.add(dept)
        ids[name] = dept.id
    db.flush()
    return ids


def seed_sla_rules(db: Session, dept_ids: Dict[str, str]) -> int:
    count = 0
    for dept_name, category, hours_by_severity in SLA_RULES:
        for severity, hours in hours_by_severity.items():
            rule = db.query(SLARuleDB).filter(
                SLARuleDB.department_id == dept_ids[dept_name],
                SLARuleDB.category == category,
                SLARuleDB.severity == Severity(severity),
            ).first()
            if rule is None:
                db.add(SLARuleDB(
                    id=str(uuid4()),
                    department_id=dept_ids[dept_name],
                    category=category,
                    severity=Severity(severity),
                    hours_allowed=hours,
                ))
            else:
                rule.hours_allowed = hours
            count += 1
    return count


def seed_critical_zones(db: Session) -> int:
    count = 0
    for zone in DEFAULT_CRITICAL_ZONES:
        row = db.query(CriticalZoneDB).filter(CriticalZoneDB.label == zone.label).first()
        if row is None:
            row = CriticalZoneDB(id=str(uuid4()), label=zone.label)
            db.add(row)
        row.zone_type = zone.zone_type
        row.latitude = zone.latitude
        row.longitude = zone.longitude
        row.radius_km = zone.radius_km
        count += 1
    return count


def seed_badges(db: Session) -> int:
    for slug, name, description, icon, tier, criterion, threshold in BADGES:
        badge = db.query(BadgeDB).filter(BadgeDB.slug == slug).first()
        if badge is None:
            badge = BadgeDB(id=str(uuid4()), slug=slug)
            db.add(badge)
        badge.name = name
        badge.description = description
        badge.icon = icon
        badge.tier = BadgeTier(tier)
        badge.criteria = {"type": criterion, "threshold": threshold}
    return len(BADGES)


def seed_rewards(db: Session) -> int:
    """Creates missing rewards. Existing rows keep their stock."""
    for name, description, partner, cost, category, stock in REWARDS:
        reward = db.query(RewardDB).filter(RewardDB.name == name).first()
        if reward is None:
            db.add(RewardDB(
                id=str(uuid4()),
                name=name,
                description=description,
                partner=partner,
                coin_cost=cost,
                category=RewardCategory(category),
                stock=stock,
                active=True,
            ))
        else:
            reward.description = description
            reward.coin_cost = cost
    return len(REWARDS)


def seed_catalog(db: Session) -> Dict[str, int]:
    """Upsert the full catalog in one transaction."""
    try:
        dept_ids = seed_departments(db)
        counts = {
            "departments": len(dept_ids),
            "sla_rules": seed_sla_rules(db, dept_ids),
            "critical_zones": seed_critical_zones(db),
            "badges": seed_badges(db),
            "rewards": seed_rewards(db),
        }
        db.commit()
    except Exception:
        db.rollback()
        raise
    return counts


def main():
    init_db()

    db: Session = SessionLocal()
    try:
        counts = seed_catalog(db)
    except Exception as e:
        print(f"Error seeding catalog: {e}")
        sys.exit(1)
    finally:
        db.close()

    print("Catalog seeded successfully!")
    for table, count in counts.items():
        print(f"  {table}: {count}")


if __name__ == "__main__":
    main()
