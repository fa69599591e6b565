"""
Complaint Prioritization Services

Deterministic urgency scoring for incoming complaints.
"""

from .zones import GeoZoneIndex, CriticalZone, DEFAULT_CRITICAL_ZONES, haversine_distance
from .scorer import PriorityScorer, PriorityResult
from .classifier import classify_text

__all__ = [
    'GeoZoneIndex',
    'CriticalZone',
    'DEFAULT_CRITICAL_ZONES',
    'haversine_distance',
    'PriorityScorer',
    'PriorityResult',
    'classify_text',
]
