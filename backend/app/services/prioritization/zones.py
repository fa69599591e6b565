"""
Geo Zone Index

Static table of high-sensitivity zones (hospitals, schools, markets) and the
proximity queries priority scoring needs.

Zones are configuration: loaded from the critical_zones table when it has
rows, otherwise the built-in defaults below are used.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ...models.db_models import CriticalZoneDB


EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class CriticalZone:
    """A named circle around a sensitive location."""
    label: str
    latitude: float
    longitude: float
    radius_km: float
    zone_type: Optional[str] = None


# =============================================================================
# DEFAULT ZONES
# =============================================================================
# Stand-in until a municipal GIS source is wired up.

DEFAULT_CRITICAL_ZONES: Tuple[CriticalZone, ...] = (
    CriticalZone("Hospital Zone - AIIMS", 28.5672, 77.2100, 0.5, "hospital"),
    CriticalZone("School Zone - DPS RK Puram", 28.5631, 77.1727, 0.3, "school"),
    CriticalZone("Hospital Zone - Safdarjung", 28.5685, 77.2065, 0.5, "hospital"),
    CriticalZone("Market Zone - Connaught Place", 28.6315, 77.2167, 0.4, "market"),
    CriticalZone("School Zone - Modern School", 28.5832, 77.2259, 0.3, "school"),
)


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in km between two points given in decimal degrees."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


class GeoZoneIndex:
    """
    Answers "is this point inside a critical zone?" and
    "which zone is nearest, and how far?".
    """

    def __init__(self, zones: Optional[List[CriticalZone]] = None):
        self.zones: List[CriticalZone] = list(zones) if zones else list(DEFAULT_CRITICAL_ZONES)

    @classmethod
    def from_db(cls, db: Session) -> "GeoZoneIndex":
        """Build the index from the critical_zones table, falling back to defaults."""
        rows = db.query(CriticalZoneDB).all()
        zones = [
            CriticalZone(
                label=row.label,
                latitude=row.latitude,
                longitude=row.longitude,
                radius_km=row.radius_km,
                zone_type=row.zone_type,
            )
            for row in rows
        ]
        return cls(zones or None)

    def containing_zone(self, lat: float, lng: float) -> Optional[CriticalZone]:
        """First zone whose radius contains the point, in table order."""
        for zone in self.zones:
            if haversine_distance(lat, lng, zone.latitude, zone.longitude) <= zone.radius_km:
                return zone
        return None

    def nearest_zone(self, lat: float, lng: float) -> Tuple[Optional[CriticalZone], float]:
        """Nearest zone center and its distance in km (inf when the index is empty)."""
        nearest = None
        nearest_dist = math.inf

        for zone in self.zones:
            dist = haversine_distance(lat, lng, zone.latitude, zone.longitude)
            if dist < nearest_dist:
                nearest = zone
                nearest_dist = dist

        return nearest, nearest_dist
