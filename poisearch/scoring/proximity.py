"""Appariement de proximité entre deux ensembles de POI."""
from typing import List, Sequence, Tuple

from poisearch.logger import logger
from poisearch.models import POI, NearbyMatch, ProximityGroup
from poisearch.scoring.distance import distance_miles

DISTANCE_PRECISION = 2


def find_nearby(
        targets: Sequence[POI],
        candidates: Sequence[POI],
        threshold_miles: float) -> List[ProximityGroup]:
    """
    Regroupe, pour chaque cible, les candidats situés à moins du seuil.

    Calcul exhaustif O(T x C) : suffisant pour un jeu de données local,
    au-delà il faudrait un index spatial.

    Args:
        targets: POI cibles (l'ordre de sortie suit cet ordre)
        candidates: POI voisins potentiels
        threshold_miles: Distance maximale, bornes incluses

    Returns:
        Groupes non vides, voisins triés par distance croissante
        (ordre d'entrée conservé en cas d'égalité)
    """
    groups: List[ProximityGroup] = []

    for target in targets:
        kept: List[Tuple[float, POI]] = []
        for candidate in candidates:
            distance = distance_miles(target.location, candidate.location)
            if distance <= threshold_miles:
                kept.append((distance, candidate))

        if not kept:
            continue

        # sorted() est stable : égalités dans l'ordre d'entrée
        kept = sorted(kept, key=lambda pair: pair[0])
        groups.append(ProximityGroup(
            poi=target,
            nearby=[
                NearbyMatch(poi=poi, distance_miles=round(distance, DISTANCE_PRECISION))
                for distance, poi in kept
            ],
        ))

    logger.debug(
        "Proximité : {groups}/{targets} cibles avec voisins (seuil {threshold} mi, "
        "{candidates} candidats)",
        groups=len(groups), targets=len(targets),
        threshold=threshold_miles, candidates=len(candidates),
    )
    return groups
