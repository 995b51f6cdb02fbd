"""
Distance ranking for the dispatch desk.

Ambulance and hospital positions are stored as ``{"lat": .., "lng": ..}``
JSON; rows without a usable position are left out of any ranking.
"""
import math
from typing import Iterable, Optional

EARTH_RADIUS_KM = 6371.0

ADVANCED_AMBULANCE_TYPES = {'ADVANCED_LIFE_SUPPORT', 'AIR'}
# Emergency types that need advanced equipment when the caller asks for it
EQUIPMENT_SENSITIVE_TYPES = {'CARDIAC', 'RESPIRATORY', 'TRAUMA'}
ADVANCED_SEVERITIES = {'MAJOR', 'CATASTROPHIC'}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def point(value) -> Optional[tuple]:
    if not isinstance(value, dict):
        return None
    lat, lng = value.get('lat'), value.get('lng')
    if isinstance(lat, (int, float)) and isinstance(lng, (int, float)):
        return float(lat), float(lng)
    return None


def needs_advanced(emergency_type: Optional[str], severity: Optional[str], required_equipment: bool) -> bool:
    if severity in ADVANCED_SEVERITIES:
        return True
    return bool(required_equipment and emergency_type in EQUIPMENT_SENSITIVE_TYPES)


def rank_by_distance(rows: Iterable, lat: float, lng: float, position) -> list:
    """``(distance_km, row)`` pairs nearest first; ``position(row)`` returns the stored JSON."""
    ranked = []
    for row in rows:
        p = point(position(row))
        if p is None:
            continue
        ranked.append((haversine_km(lat, lng, p[0], p[1]), row))
    ranked.sort(key=lambda pair: pair[0])
    return ranked
