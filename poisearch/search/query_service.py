"""Module contenant le service de requête principal."""
import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional

import psutil

from poisearch.config import settings
from poisearch.errors import AnalysisError, PoiSearchError, QueryTimeoutError
from poisearch.logger import logger
from poisearch.models import (
    ErrorResult,
    GroupedResult,
    Intent,
    ProximityQuery,
    QueryResult,
    SimpleQuery,
    SuccessResult,
    SuggestionsResult,
    TypeListRequest,
    TypesListResult,
)
from poisearch.nlp.extractor import IntentExtractor
from poisearch.scoring.matching import any_has_attributes, filter_by_attributes
from poisearch.scoring.proximity import find_nearby
from poisearch.search.repository import PoiRepository

INITIALIZING_MESSAGE = "AI service is still initializing. Please wait a moment and try again."
EMPTY_QUERY_MESSAGE = "Please enter a query to search for POIs."
UNRECOGNIZED_MESSAGE = "I couldn't identify any valid POI types in your query."
GENERIC_ERROR_MESSAGE = "An error occurred while processing your query. Please try again."


def display_type(poi_type: str) -> str:
    """'coffee_shop' -> 'coffee shop'."""
    return poi_type.replace("_", " ")


def format_threshold(miles: float) -> str:
    """'1.5 miles', '1 mile'."""
    return f"{miles:g} mile{'' if miles == 1 else 's'}"


@dataclass
class QueryContext:
    """Contexte partagé pour le traitement d'une requête."""
    query: str
    start_time: float
    intent: Optional[Intent] = None


class QueryService:
    """Orchestre extraction d'intention, dépôt de POI et appariement de proximité."""

    def __init__(
            self,
            repository: PoiRepository,
            extractor: IntentExtractor,
            threshold_miles: float = settings.NEARBY_DISTANCE_MILES,
            timeout_ms: int = settings.QUERY_TIMEOUT_MS,
            city: str = settings.LOCATION_CITY,
            display_name: str = settings.LOCATION_DISPLAY_NAME,
            enable_metrics: bool = settings.ENABLE_METRICS):
        self.repository = repository
        self.extractor = extractor
        self.threshold_miles = threshold_miles
        self.timeout_ms = timeout_ms
        self.city = city
        self.display_name = display_name
        self.enable_metrics = enable_metrics

    # -----------------------------------------------------------------
    # Suggestions
    # -----------------------------------------------------------------
    def default_examples(self) -> List[str]:
        """Exemples de requêtes construits à partir des trois premiers types."""
        types = [display_type(t) for t in self.repository.supported_types()[:3]]
        fallback = ["museums", "restaurants", "parks"]
        examples = types + fallback[len(types):]
        threshold = format_threshold(self.threshold_miles)
        return [
            f'Try: "Find {examples[0]} in {self.city}"',
            f'Try: "Show me {examples[1]}"',
            f'Try: "Where are the {examples[2]}?"',
            f'Try: "Parks with nearby restaurants" (within {threshold})',
            'Try: "Parks with nearby asian restaurants" (specify attributes for nearby POIs)',
            'Try: "Museums near coffee shops" (finds POIs with nearby POIs of another type)',
            'Or ask: "What types are supported?"',
        ]

    def _no_groups_suggestions(self, intent: ProximityQuery) -> SuggestionsResult:
        target = display_type(intent.target_type)
        nearby = display_type(intent.nearby_type)
        target_attrs = f" {', '.join(intent.target_attributes)}" if intent.target_attributes else ""
        nearby_attrs = f" {', '.join(intent.nearby_attributes)}" if intent.nearby_attributes else ""
        return SuggestionsResult(
            message=(
                f"No{target_attrs} {target}s found with{nearby_attrs} {nearby}s "
                f"within {format_threshold(self.threshold_miles)} in {self.display_name}."
            ),
            examples=[
                f'Try: "Find {target}s in {self.city}"',
                f'Try: "Show me {nearby}s"',
                "Try increasing the search distance or searching for different POI types or attributes",
            ],
        )

    # -----------------------------------------------------------------
    # Extraction avec délai
    # -----------------------------------------------------------------
    async def _analyze_with_timeout(self, query: str) -> Intent:
        """
        Extraction bornée par `timeout_ms`.

        À l'expiration, la tâche d'extraction n'est pas annulée : son résultat
        est simplement ignoré.

        Raises:
            QueryTimeoutError: Délai dépassé
        """
        task = asyncio.ensure_future(self.extractor.analyze(query))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            task.add_done_callback(_discard_late_result)
            raise QueryTimeoutError(
                f"Query validation exceeded timeout ({self.timeout_ms} ms)"
            ) from e

    # -----------------------------------------------------------------
    # Traitement par intention
    # -----------------------------------------------------------------
    def _handle_proximity(self, intent: ProximityQuery) -> QueryResult:
        targets = self.repository.query_by_types([intent.target_type])
        candidates = self.repository.query_by_types([intent.nearby_type])
        logger.debug(
            "{t} {target} / {c} {nearby} avant filtrage des attributs",
            t=len(targets), target=intent.target_type,
            c=len(candidates), nearby=intent.nearby_type,
        )

        targets = filter_by_attributes(targets, intent.target_attributes)
        candidates = filter_by_attributes(candidates, intent.nearby_attributes)

        groups = find_nearby(targets, candidates, self.threshold_miles)
        if not groups:
            return self._no_groups_suggestions(intent)

        return GroupedResult(
            groups=groups,
            target_type=intent.target_type,
            nearby_type=intent.nearby_type,
            threshold_miles=self.threshold_miles,
        )

    def _handle_simple(self, intent: SimpleQuery) -> QueryResult:
        pois = self.repository.query_by_types(list(intent.types))

        if intent.attributes:
            # Filtrage seulement si au moins un POI porte des attributs
            if any_has_attributes(pois):
                pois = filter_by_attributes(pois, intent.attributes)
                logger.debug("{count} POI après filtrage {attrs}", count=len(pois), attrs=intent.attributes)
            else:
                logger.debug("Aucun POI n'a d'attributs, filtrage ignoré")

        if not pois:
            types = " or ".join(display_type(t) for t in intent.types)
            return SuggestionsResult(
                message=f"No {types} found in {self.display_name}.",
                examples=self.default_examples(),
            )
        return SuccessResult(pois=pois)

    async def _execute_query(self, ctx: QueryContext) -> QueryResult:
        """Exécute la requête ; les erreurs de chargement et de délai remontent."""
        if not ctx.query or not ctx.query.strip():
            return SuggestionsResult(message=EMPTY_QUERY_MESSAGE, examples=self.default_examples())

        if not self.extractor.is_ready():
            return ErrorResult(message=INITIALIZING_MESSAGE)

        # Le registre des catégories est le jeu de données chargé
        await self.repository.load()

        try:
            ctx.intent = await self._analyze_with_timeout(ctx.query)
        except QueryTimeoutError:
            raise
        except AnalysisError as e:
            logger.error("Échec de l'analyse de '{query}' : {error}", query=ctx.query, error=e.message)
            return SuggestionsResult(message=UNRECOGNIZED_MESSAGE, examples=self.default_examples())
        except Exception: # pylint: disable=broad-except
            logger.exception("Erreur pendant l'extraction de '{query}'", query=ctx.query)
            return SuggestionsResult(message=UNRECOGNIZED_MESSAGE, examples=self.default_examples())

        logger.debug("Intention : {intent}", intent=ctx.intent)

        if isinstance(ctx.intent, TypeListRequest):
            return TypesListResult(types=self.repository.supported_types())
        if isinstance(ctx.intent, ProximityQuery):
            return self._handle_proximity(ctx.intent)
        if isinstance(ctx.intent, SimpleQuery):
            return self._handle_simple(ctx.intent)
        return SuggestionsResult(message=UNRECOGNIZED_MESSAGE, examples=self.default_examples())

    async def process_query(self, query: str) -> QueryResult:
        """
        Point d'entrée : texte libre -> résultat typé.

        Ne lève jamais : toute erreur devient un ErrorResult.

        Args:
            query: Texte saisi par l'utilisateur

        Returns:
            SuccessResult, GroupedResult, SuggestionsResult, TypesListResult ou ErrorResult
        """
        ctx = QueryContext(query=query or "", start_time=time.time())
        try:
            result = await self._execute_query(ctx)
        except PoiSearchError as e:
            logger.error("[QueryService.process_query] {code} : {error}", code=e.code.value, error=e.message)
            result = ErrorResult(message=e.user_message)
        except Exception: # pylint: disable=broad-except
            logger.exception("Erreur inattendue pendant le traitement de la requête")
            result = ErrorResult(message=GENERIC_ERROR_MESSAGE)

        self._log_outcome(ctx, result)
        return result

    def _log_outcome(self, ctx: QueryContext, result: QueryResult) -> None:
        duration = time.time() - ctx.start_time
        if self.enable_metrics:
            memory_mb = psutil.Process().memory_info().rss / 1024 / 1024
            logger.info(
                "Requête '{query}' -> {type} : Durée = {duration:.4f}s | RAM = {memory:.2f} Mo",
                query=ctx.query, type=result.type, duration=duration, memory=memory_mb,
            )
        else:
            logger.info(
                "Requête '{query}' -> {type} : Durée = {duration:.4f}s",
                query=ctx.query, type=result.type, duration=duration,
            )


def _discard_late_result(task: "asyncio.Task") -> None:
    """Récupère le résultat d'une extraction arrivée après le délai."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("Extraction tardive en échec, ignorée : {error}", error=error)
