"""Main module for the FastAPI application."""
import json
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, status

from .config import Settings, settings
from .db.postgres_connector import PostgresConnector
from .errors import ModelLoadError, PoiSearchError
from .logger import logger
from .models import QueryRequest, QueryResult
from .nlp.analyzers import RemoteLLMAnalyzer, RuleBasedAnalyzer, TextAnalyzer
from .nlp.extractor import IntentExtractor, location_terms
from .search.query_service import QueryService
from .search.repository import PoiRepository
from .search.sources import DatasetSource, JsonFileDatasetSource, PostgresDatasetSource


# --- Construction du graphe de services ---

def build_analyzer(cfg: Settings) -> TextAnalyzer:
    """Analyseur choisi par configuration."""
    if cfg.ANALYZER == "remote":
        return RemoteLLMAnalyzer(
            api_url=cfg.LLM_API_URL,
            health_url=cfg.LLM_HEALTH_URL,
            max_tokens=cfg.LLM_MAX_TOKENS,
            temperature=cfg.LLM_TEMPERATURE,
            request_timeout_s=cfg.LLM_REQUEST_TIMEOUT_S,
        )
    return RuleBasedAnalyzer()


def build_source(cfg: Settings, connector: Optional[PostgresConnector]) -> DatasetSource:
    """Source de données choisie par configuration."""
    if cfg.DATA_SOURCE == "postgres":
        return PostgresDatasetSource(connector)
    return JsonFileDatasetSource(cfg.POIS_JSON_PATH)


def build_query_service(cfg: Settings, analyzer: TextAnalyzer,
                        connector: Optional[PostgresConnector]) -> QueryService:
    """Assemble dépôt, extracteur et service de requête."""
    repository = PoiRepository(build_source(cfg, connector))
    extractor = IntentExtractor(
        analyzer, repository,
        ignored_terms=location_terms(cfg.LOCATION_CITY, cfg.LOCATION_DISPLAY_NAME),
    )
    return QueryService(
        repository=repository,
        extractor=extractor,
        threshold_miles=cfg.NEARBY_DISTANCE_MILES,
        timeout_ms=cfg.QUERY_TIMEOUT_MS,
        city=cfg.LOCATION_CITY,
        display_name=cfg.LOCATION_DISPLAY_NAME,
        enable_metrics=cfg.ENABLE_METRICS,
    )


# Connecteur PostgreSQL (utilisé seulement avec DATA_SOURCE=postgres)
db_connector: Optional[PostgresConnector] = (
    PostgresConnector(settings.DATABASE_URL) if settings.DATA_SOURCE == "postgres" else None
)
analyzer: TextAnalyzer = build_analyzer(settings)
query_service: QueryService = build_query_service(settings, analyzer, db_connector)
# Alias `service` : les tests remplacent `main.service`
service = query_service


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Handle FastAPI startup and shutdown events."""
    logger.info("Starting up POI search API...")

    if db_connector is not None:
        try:
            await db_connector.connect()
            logger.info("PostgreSQL connection pool established successfully.")
        except (ConnectionError, OSError) as e:
            logger.error("Failed to connect to PostgreSQL: {error}", error=e)

    # L'API répond "still initializing" tant que l'analyseur n'est pas prêt
    try:
        await analyzer.initialize()
    except ModelLoadError as e:
        logger.error("Analyzer initialization failed: {error}", error=e.message)

    yield

    logger.info("Shutting down POI search API...")
    if db_connector is not None:
        await db_connector.close()
        logger.info("PostgreSQL connection pool closed.")


app = FastAPI(
    title="POI Search - Natural language points of interest",
    lifespan=lifespan
)


def get_service() -> QueryService:
    """Dépendance FastAPI pour obtenir l'instance du service de requête."""
    return service


@app.post("/query", response_model=QueryResult)
async def query(req: QueryRequest, svc: QueryService = Depends(get_service)):
    """
    POST /query endpoint.

    Les erreurs récupérables sont renvoyées comme résultat `type="error"`.
    """
    pretty_request_body = json.dumps(req.model_dump(), indent=2, ensure_ascii=False)
    logger.info("Received request:\n{request_body}", request_body=pretty_request_body)
    return await svc.process_query(req.query or "")


@app.get("/types")
async def types(svc: QueryService = Depends(get_service)):
    """Liste des catégories supportées."""
    try:
        await svc.repository.load()
    except PoiSearchError as e:
        logger.error("Failed to load POI data: {error}", error=e.message)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": e.user_message},
        ) from e
    return {"types": svc.repository.supported_types()}


@app.get("/")
def root():
    """Root endpoint to check API status."""
    return {"status": "ok", "message": "POI search API is running 🚀"}


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Monitoring"])
async def health_check(svc: QueryService = Depends(get_service)):
    """
    Health check endpoint.

    Reports analyzer readiness and whether the dataset is loaded.
    """
    return {
        "analyzer": "ok" if svc.extractor.is_ready() else "initializing",
        "dataset": "loaded" if svc.repository.is_loaded else "pending",
    }
