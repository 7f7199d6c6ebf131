"""Extraction d'intention : texte libre -> intention structurée."""
import re
from typing import Any, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from poisearch.errors import AnalysisError
from poisearch.logger import logger
from poisearch.models import (
    Intent,
    Phrase,
    ProximityQuery,
    SimpleQuery,
    TypeListRequest,
    Unrecognized,
)
from poisearch.nlp.analyzers import QUERY_VERBS, STOP_WORDS, TextAnalyzer
from poisearch.scoring.matching import is_category_term, match_types

TYPE_REQUEST_PATTERNS = [
    re.compile(r"what.*types.*supported", re.IGNORECASE),
    re.compile(r"list.*types", re.IGNORECASE),
    re.compile(r"show.*types", re.IGNORECASE),
    re.compile(r"valid.*types", re.IGNORECASE),
    re.compile(r"available.*types", re.IGNORECASE),
    re.compile(r"which.*types", re.IGNORECASE),
    re.compile(r"what.*can.*search", re.IGNORECASE),
    re.compile(r"what.*poi", re.IGNORECASE),
]

# Essayés dans l'ordre : le premier motif qui correspond est le seul retenu
PROXIMITY_PATTERNS = [
    re.compile(r"(.+?)\s+(?:with|having|that have)\s+nearby\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+near\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+close to\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+around\s+(.+)", re.IGNORECASE),
]

# Mots de remplissage qui ne qualifient pas un POI
FILLER_WORDS = frozenset({
    "open", "late", "now", "today", "tonight", "here", "local", "area",
    "city", "town", "downtown", "neighborhood",
})

IGNORED_ADJECTIVES = QUERY_VERBS | STOP_WORDS | FILLER_WORDS

_WORD_RE = re.compile(r"[a-z0-9']+")

TypeRegistry = Any  # tout objet exposant supported_types() -> List[str]


def location_terms(*names: str) -> FrozenSet[str]:
    """'Richmond', 'Richmond, VA' -> {'richmond', 'va'}"""
    return frozenset(
        word for name in names for word in _WORD_RE.findall((name or "").lower())
    )


class IntentExtractor:
    """
    Analyse une requête et produit une intention.

    Ordre de priorité : demande de liste des types, requête de proximité,
    puis extraction simple sur toute la requête.
    """

    def __init__(self, analyzer: TextAnalyzer, registry: TypeRegistry,
                 ignored_terms: Iterable[str] = ()):
        self.analyzer = analyzer
        self.registry = registry
        # Nom de la ville et mots de localisation : jamais des attributs
        self.ignored_terms = frozenset(t.lower() for t in ignored_terms)

    def is_ready(self) -> bool:
        """Délègue à l'analyseur."""
        return self.analyzer.ready()

    def is_type_request(self, query: str) -> bool:
        """La requête demande-t-elle la liste des types supportés ?"""
        return any(pattern.search(query) for pattern in TYPE_REQUEST_PATTERNS)

    async def _extract(self, segment: str) -> Phrase:
        """Extraction noms/adjectifs ; analyseur indisponible = rien d'extrait."""
        if not self.analyzer.ready():
            logger.debug("Analyseur non prêt, aucune extraction pour '{segment}'", segment=segment)
            return Phrase()
        try:
            return await self.analyzer.extract_phrase(segment)
        except Exception as e:
            raise AnalysisError(f"Phrase extraction failed for '{segment}': {e}") from e

    def _attributes(self, adjectives: Sequence[str], supported_types: Sequence[str]) -> Tuple[str, ...]:
        """Adjectifs qui ne sont ni une catégorie ni un mot de requête."""
        attributes: List[str] = []
        for adjective in adjectives:
            term = adjective.strip().lower()
            if not term or term in IGNORED_ADJECTIVES or term in self.ignored_terms:
                continue
            if is_category_term(term, supported_types):
                continue
            if term not in attributes:
                attributes.append(term)
        return tuple(attributes)

    async def _detect_proximity(
            self,
            query: str,
            supported_types: Sequence[str]) -> Optional[ProximityQuery]:
        for pattern in PROXIMITY_PATTERNS:
            match = pattern.search(query)
            if not match:
                continue

            target_part = await self._extract(match.group(1))
            nearby_part = await self._extract(match.group(2))
            target_types = match_types(target_part.nouns, supported_types)
            nearby_types = match_types(nearby_part.nouns, supported_types)

            logger.debug(
                "Proximité détectée ('{left}' / '{right}') : cibles={targets} voisins={nearby}",
                left=match.group(1), right=match.group(2),
                targets=target_types, nearby=nearby_types,
            )
            if not target_types or not nearby_types:
                return None

            return ProximityQuery(
                target_type=target_types[0],
                nearby_type=nearby_types[0],
                target_attributes=self._attributes(target_part.adjectives, supported_types),
                nearby_attributes=self._attributes(nearby_part.adjectives, supported_types),
            )
        return None

    async def analyze(self, query: str) -> Intent:
        """
        Transforme une requête en intention.

        Args:
            query: Texte saisi par l'utilisateur

        Returns:
            TypeListRequest, ProximityQuery, SimpleQuery ou Unrecognized

        Raises:
            AnalysisError: Si l'analyseur lève une exception
        """
        if not query or not query.strip():
            return Unrecognized()

        if self.is_type_request(query):
            return TypeListRequest()

        supported_types = self.registry.supported_types()

        proximity = await self._detect_proximity(query, supported_types)
        if proximity is not None:
            return proximity

        phrase = await self._extract(query)
        types = match_types(phrase.nouns, supported_types)
        attributes = self._attributes(phrase.adjectives, supported_types)
        logger.debug(
            "Noms={nouns} adjectifs={adjectives} -> types={types} attributs={attributes}",
            nouns=phrase.nouns, adjectives=phrase.adjectives,
            types=types, attributes=attributes,
        )

        if not types:
            return Unrecognized()
        return SimpleQuery(types=tuple(types), attributes=attributes)
