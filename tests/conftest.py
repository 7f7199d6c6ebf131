# tests/conftest.py
import pytest
from unittest.mock import MagicMock, AsyncMock

from poisearch.models import POI
from poisearch.nlp.analyzers import RuleBasedAnalyzer
from poisearch.nlp.extractor import IntentExtractor, location_terms
from poisearch.search.query_service import QueryService
from poisearch.search.repository import PoiRepository


def poi_dict(poi_id, poi_type, lat, lng, name=None, attributes=None):
    """POI brut tel qu'il apparaît dans le JSON."""
    data = {
        "id": poi_id,
        "name": name or poi_id,
        "type": poi_type,
        "location": {"latitude": lat, "longitude": lng},
        "address": f"{poi_id} street",
    }
    if attributes is not None:
        data["attributes"] = attributes
    return data


def make_poi(poi_id, poi_type, lat, lng, name=None, attributes=None):
    """POI validé."""
    return POI.model_validate(poi_dict(poi_id, poi_type, lat, lng, name, attributes))


@pytest.fixture
def sample_dataset():
    """Petit jeu de données : un parc, un restaurant à ~0.69 mi, un musée éloigné."""
    return {
        "supportedTypes": ["park", "restaurant", "museum", "coffee_shop"],
        "pois": [
            poi_dict("p1", "park", 0.0, 0.0, name="A"),
            poi_dict("r1", "restaurant", 0.0, 0.01, name="B", attributes=["asian", "thai"]),
            poi_dict("r2", "restaurant", 0.0, 0.015, name="C", attributes=["italian"]),
            poi_dict("m1", "museum", 10.0, 10.0, name="M"),
            poi_dict("c1", "coffee_shop", 0.0, 0.002, name="Cafe"),
        ],
    }


# --- Mocks des collaborateurs de bas niveau ---

@pytest.fixture
def mock_source(sample_dataset):
    """Fixture pour une source de données mockée."""
    source = MagicMock()
    source.load = AsyncMock(return_value=sample_dataset)
    return source


@pytest.fixture
def mock_db_connector():
    """Fixture pour un mock du connecteur PostgreSQL."""
    db_conn = MagicMock()
    db_conn.execute_query = AsyncMock(return_value=[])
    return db_conn


# --- Services réels branchés sur les mocks ---

@pytest.fixture
def repository(mock_source):
    return PoiRepository(mock_source)


@pytest.fixture
def extractor(repository):
    return IntentExtractor(
        RuleBasedAnalyzer(), repository,
        ignored_terms=location_terms("Testville", "Testville, TS"),
    )


@pytest.fixture
def query_service(repository, extractor):
    """
    Fixture qui fournit un QueryService complet sur le jeu de données
    d'exemple, seuil 1.5 mi, métriques désactivées.
    """
    return QueryService(
        repository=repository,
        extractor=extractor,
        threshold_miles=1.5,
        timeout_ms=3000,
        city="Testville",
        display_name="Testville, TS",
        enable_metrics=False,
    )
