"""
Priority Scorer

Computes the deterministic 0-100 urgency score assigned to a complaint at
submission time, with an auditable breakdown.

Four additive components, each capped independently:
- Severity     (max 40)  fixed mapping from the reported severity
- Zone         (max 25)  proximity to hospitals / schools / markets
- Population   (max 20)  density proxy derived from the coordinates
- Duplicates   (max 15)  recent same-category complaints nearby

The score is computed once and stored; it is never recomputed.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ...models.db_models import ComplaintDB, utcnow
from .zones import GeoZoneIndex


# =============================================================================
# WEIGHT CONFIGURATION (sums to 100)
# =============================================================================

SEVERITY_MAX = 40
ZONE_MAX = 25
POPULATION_MAX = 20
DUPLICATE_MAX = 15
TOTAL_MAX = 100

SEVERITY_POINTS = {
    "CRITICAL": 40,
    "HIGH": 30,
    "MEDIUM": 20,
    "LOW": 10,
}
UNKNOWN_SEVERITY_POINTS = 10

ZONE_PARTIAL_RADIUS_KM = 2.0

DUPLICATE_WINDOW = timedelta(days=7)
DUPLICATE_DELTA_DEGREES = 0.005  # ~500 m
DUPLICATE_POINTS_EACH = 5
DUPLICATE_COUNT_CAP = 3


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# COMPONENT SCORES
# =============================================================================

def severity_score(severity: Any) -> int:
    """Points for the reported severity; anything unrecognised scores as LOW."""
    key = getattr(severity, "value", severity)
    return SEVERITY_POINTS.get(key, UNKNOWN_SEVERITY_POINTS)


def zone_score(index: GeoZoneIndex, lat: float, lng: float) -> Tuple[int, Optional[str]]:
    """
    Full points inside any zone radius; linear decay to 0 at 2 km from the
    nearest zone center; nothing (and no label) beyond that.

    Returns (points, zone_label)
    """
    zone = index.containing_zone(lat, lng)
    if zone is not None:
        return ZONE_MAX, zone.label

    nearest, distance = index.nearest_zone(lat, lng)
    if nearest is not None and distance <= ZONE_PARTIAL_RADIUS_KM:
        points = _round_half_up(ZONE_MAX * (1 - distance / ZONE_PARTIAL_RADIUS_KM))
        return points, f"Near {nearest.label}"

    return 0, None


def population_score(lat: float, lng: float) -> int:
    """
    Population-density proxy in [0, 20].

    Deterministic hash of the coordinates. Replace with a real density grid
    lookup; keep the signature and range.
    """
    raw = abs(math.sin(lat * 1000 + lng * 3000)) * POPULATION_MAX
    return min(_round_half_up(raw), POPULATION_MAX)


def duplicate_score(count: int) -> int:
    """5 points per nearby recent duplicate, counting at most 3."""
    return min(max(count, 0), DUPLICATE_COUNT_CAP) * DUPLICATE_POINTS_EACH


# =============================================================================
# SCORER
# =============================================================================

@dataclass
class PriorityResult:
    """Score plus the per-component breakdown stored on the complaint."""
    total: int
    breakdown: Dict[str, Any] = field(default_factory=dict)


class PriorityScorer:
    """
    Combines the four components into a capped total.

    The only store access is the duplicate count; everything else is a pure
    function of (severity, lat, lng).
    """

    def __init__(self, db: Session, zone_index: Optional[GeoZoneIndex] = None):
        self.db = db
        self.zone_index = zone_index or GeoZoneIndex()

    def count_nearby_duplicates(
        self,
        category: str,
        lat: float,
        lng: float,
        now: Optional[datetime] = None,
    ) -> int:
        """Same-category complaints from the last 7 days inside a ~500 m box."""
        now = now or utcnow()
        since = now - DUPLICATE_WINDOW

        return self.db.query(ComplaintDB).filter(
            ComplaintDB.category == category,
            ComplaintDB.created_at >= since,
            ComplaintDB.latitude >= lat - DUPLICATE_DELTA_DEGREES,
            ComplaintDB.latitude <= lat + DUPLICATE_DELTA_DEGREES,
            ComplaintDB.longitude >= lng - DUPLICATE_DELTA_DEGREES,
            ComplaintDB.longitude <= lng + DUPLICATE_DELTA_DEGREES,
        ).count()

    def score(
        self,
        severity: Any,
        lat: float,
        lng: float,
        category: str,
        now: Optional[datetime] = None,
    ) -> PriorityResult:
        """Compute the priority score and breakdown for a new complaint."""
        sev_points = severity_score(severity)
        zone_points, zone_label = zone_score(self.zone_index, lat, lng)
        pop_points = population_score(lat, lng)
        dup_count = self.count_nearby_duplicates(category, lat, lng, now=now)
        dup_points = duplicate_score(dup_count)

        total = min(sev_points + zone_points + pop_points + dup_points, TOTAL_MAX)

        return PriorityResult(
            total=max(total, 0),
            breakdown={
                "severity": {
                    "points": sev_points,
                    "max": SEVERITY_MAX,
                    "label": getattr(severity, "value", severity),
                },
                "zone": {"points": zone_points, "max": ZONE_MAX, "label": zone_label},
                "population": {"points": pop_points, "max": POPULATION_MAX},
                "duplicates": {"points": dup_points, "max": DUPLICATE_MAX, "count": dup_count},
            },
        )
