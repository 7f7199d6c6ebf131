"""Calcul de distance géographique (formule de haversine)."""
import math
from functools import lru_cache
from typing import Any

EARTH_RADIUS_MILES = 3959.0


@lru_cache(maxsize=4096)
def _haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def distance_miles(a: Any, b: Any) -> float:
    """
    Distance orthodromique entre deux coordonnées.

    Args:
        a: Objet exposant `latitude` et `longitude` (degrés)
        b: Idem

    Returns:
        Distance en miles. NaN si une coordonnée n'est pas finie.
    """
    return _haversine(a.latitude, a.longitude, b.latitude, b.longitude)


def format_distance(miles: float) -> str:
    """Formate une distance pour l'affichage."""
    if miles < 0.1:
        return "Less than 0.1 miles"
    return f"{miles:.1f} miles"
