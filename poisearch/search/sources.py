"""Sources du jeu de données : fichier JSON ou base PostgreSQL."""
import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Union

import asyncpg

from poisearch.db.postgres_connector import PostgresConnector
from poisearch.errors import DataFetchError, DataValidationError, ErrorCode
from poisearch.logger import logger


SQL_SUPPORTED_TYPES = "SELECT type_name FROM poi_types ORDER BY type_id"

SQL_POIS = """
    SELECT p.id, p.name, t.type_name AS type, p.address, p.latitude, p.longitude,
           COALESCE(
               array_agg(a.attribute_name ORDER BY a.attribute_id)
                   FILTER (WHERE a.attribute_id IS NOT NULL),
               '{}'
           ) AS attributes
    FROM pois p
    JOIN poi_types t ON t.type_id = p.type_id
    LEFT JOIN poi_attributes pa ON pa.poi_id = p.id
    LEFT JOIN attributes a ON a.attribute_id = pa.attribute_id
    GROUP BY p.id, t.type_name
    ORDER BY p.id
"""


class DatasetSource(ABC):
    """Fournit le jeu de données brut `{supportedTypes, pois}`."""

    @abstractmethod
    async def load(self) -> Dict[str, Any]:
        """Charge le jeu de données (la validation revient au dépôt)."""


class JsonFileDatasetSource(DatasetSource):
    """Jeu de données stocké dans un fichier JSON."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def load(self) -> Dict[str, Any]:
        """
        Lit et décode le fichier hors de la boucle d'événements.

        Raises:
            DataFetchError: Fichier absent ou illisible
            DataValidationError: JSON invalide
        """
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except OSError as e:
            raise DataFetchError(f"Failed to read POI data from {self.path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DataValidationError(
                f"Invalid JSON in {self.path}: {e}",
                code=ErrorCode.DATA_PARSE_ERROR,
            ) from e

        logger.debug("Jeu de données lu depuis {path}", path=self.path)
        return data


class PostgresDatasetSource(DatasetSource):
    """Jeu de données normalisé en base (voir db/schema.sql)."""

    def __init__(self, db_connector: PostgresConnector):
        self.db = db_connector

    def _row_to_poi(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "name": row["name"],
            "type": row["type"],
            "address": row["address"],
            "location": {
                "latitude": row["latitude"],
                "longitude": row["longitude"],
            },
            "attributes": list(row.get("attributes") or []),
        }

    async def load(self) -> Dict[str, Any]:
        """
        Lit les types et les POI (attributs agrégés) en parallèle.

        Raises:
            DataFetchError: Base injoignable ou requête en échec
        """
        try:
            type_rows, poi_rows = await asyncio.gather(
                self.db.execute_query(SQL_SUPPORTED_TYPES),
                self.db.execute_query(SQL_POIS),
            )
        except (ConnectionError, OSError, asyncpg.PostgresError) as e:
            raise DataFetchError(f"Failed to load POI data from PostgreSQL: {e}") from e

        supported_types: List[str] = [row["type_name"] for row in type_rows]
        pois = [self._row_to_poi(row) for row in poi_rows]
        logger.debug(
            "PostgreSQL : {types} types, {pois} POI",
            types=len(supported_types), pois=len(pois),
        )
        return {"supportedTypes": supported_types, "pois": pois}
