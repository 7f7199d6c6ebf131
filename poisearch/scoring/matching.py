"""Correspondance permissive entre termes de requête, catégories et attributs."""
from typing import Iterable, List, Sequence

from poisearch.models import POI


def _singular(word: str) -> str:
    """Retire un 's' final (pluriel naïf)."""
    return word[:-1] if word.endswith("s") else word


def normalize_category(category: str) -> str:
    """'coffee_shop' -> 'coffee shop'."""
    return category.lower().replace("_", " ")


def matches_category(token: str, category: str) -> bool:
    """
    Vérifie si un terme désigne une catégorie.

    Égalité (forme brute ou normalisée), égalité des singuliers, ou inclusion
    d'une chaîne dans l'autre. La règle d'inclusion accepte des faux positifs
    connus : 'park' correspond à 'parking'.
    """
    term = token.strip().lower()
    if not term:
        return False

    raw = category.lower()
    normalized = normalize_category(category)
    if not normalized:
        return False

    if term in (raw, normalized):
        return True
    if _singular(term) == _singular(normalized):
        return True
    return term in normalized or normalized in term


def is_category_term(token: str, categories: Iterable[str]) -> bool:
    """
    Le terme désigne-t-il l'une des catégories, ou l'un de ses mots ?

    'shops' est un terme de catégorie pour 'coffee_shop'.
    """
    term = _singular(token.strip().lower())
    for category in categories:
        if matches_category(token, category):
            return True
        if any(term == _singular(word) for word in normalize_category(category).split()):
            return True
    return False


def match_types(nouns: Sequence[str], supported_types: Sequence[str]) -> List[str]:
    """
    Associe chaque nom extrait à la première catégorie qui lui correspond.

    Returns:
        Catégories dédoublonnées, dans l'ordre de première correspondance
    """
    matched: List[str] = []
    for noun in nouns:
        for category in supported_types:
            if matches_category(noun, category):
                if category not in matched:
                    matched.append(category)
                break
    return matched


def attribute_matches(poi_attribute: str, requested: str) -> bool:
    """Inclusion mutuelle, insensible à la casse."""
    poi_lower = poi_attribute.lower()
    req_lower = requested.lower()
    return req_lower in poi_lower or poi_lower in req_lower


def filter_by_attributes(pois: Sequence[POI], attributes: Sequence[str]) -> List[POI]:
    """
    Garde les POI dont au moins un attribut correspond à un attribut demandé.

    Sans attribut demandé, aucun filtrage. Un POI sans attribut est écarté
    dès qu'un filtre s'applique.
    """
    requested = [a for a in attributes if a and a.strip()]
    if not requested:
        return list(pois)

    return [
        poi for poi in pois
        if any(
            attribute_matches(poi_attr, req)
            for req in requested
            for poi_attr in poi.attributes
            if poi_attr
        )
    ]


def any_has_attributes(pois: Iterable[POI]) -> bool:
    """Au moins un POI porte-t-il des attributs ?"""
    return any(poi.attributes for poi in pois)
