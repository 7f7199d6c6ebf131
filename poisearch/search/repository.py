"""Dépôt de POI : chargement mémoïsé et requêtes par type."""
import asyncio
from typing import List, Optional

from pydantic import ValidationError

from poisearch.errors import DataValidationError
from poisearch.logger import logger
from poisearch.models import POI, Dataset
from poisearch.search.sources import DatasetSource


class PoiRepository:
    """
    Contient le jeu de données chargé.

    Le chargement est paresseux et mémoïsé : les appels concurrents partagent
    le chargement en cours, un échec laisse le dépôt vide pour un nouvel essai.
    """

    def __init__(self, source: DatasetSource):
        self.source = source
        self._pois: List[POI] = []
        self._supported_types: List[str] = []
        self._loaded = False
        self._load_task: Optional[asyncio.Task] = None

    @property
    def is_loaded(self) -> bool:
        """Le jeu de données est-il disponible ?"""
        return self._loaded

    async def load(self) -> None:
        """
        Charge le jeu de données depuis la source injectée.

        Raises:
            DataValidationError: Jeu de données mal formé (rien n'est chargé)
            DataFetchError: Source inaccessible
        """
        if self._loaded:
            return
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load_internal())
        # shield : l'annulation d'un appelant n'annule pas le chargement partagé
        await asyncio.shield(self._load_task)

    async def _load_internal(self) -> None:
        try:
            raw = await self.source.load()
            dataset = self._validate(raw)
        except Exception:
            self._load_task = None
            raise

        self._warn_unknown_types(dataset)
        self._supported_types = list(dataset.supported_types)
        self._pois = list(dataset.pois)
        self._loaded = True
        logger.info(
            "Jeu de données chargé : {pois} POI, {types} types",
            pois=len(self._pois), types=len(self._supported_types),
        )

    def _validate(self, raw) -> Dataset:
        if not isinstance(raw, dict):
            raise DataValidationError(
                f"Invalid data structure: expected an object, got {type(raw).__name__}"
            )
        try:
            return Dataset.model_validate(raw)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise DataValidationError(f"Invalid POI data: {errors}") from e

    def _warn_unknown_types(self, dataset: Dataset) -> None:
        """Signale les POI dont le type est absent de supportedTypes."""
        known = {t.lower() for t in dataset.supported_types}
        unknown = sorted({poi.type for poi in dataset.pois if poi.type.lower() not in known})
        if unknown:
            logger.warning(
                "Qualité des données : types absents de supportedTypes : {types}",
                types=unknown,
            )

    def query_by_types(self, types: List[str]) -> List[POI]:
        """
        POI dont le type correspond exactement (casse ignorée) à l'un des types.

        Returns:
            Liste vide si le jeu n'est pas chargé ou si `types` est vide
        """
        if not types:
            return []
        if not self._loaded:
            logger.warning("query_by_types appelé avant le chargement des données")
            return []

        wanted = {t.lower() for t in types}
        pois = [poi for poi in self._pois if poi.type.lower() in wanted]
        logger.debug("query_by_types({types}) -> {count} POI", types=types, count=len(pois))
        return pois

    def supported_types(self) -> List[str]:
        """Copie de la liste canonique des catégories."""
        return list(self._supported_types)
