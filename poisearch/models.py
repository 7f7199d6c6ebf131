"""Modèles Pydantic : POI, intentions et résultats de requête."""
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    computed_field,
    field_validator,
)

from poisearch.scoring.distance import format_distance

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]


# ---------------------------------------------------------------------
# Données
# ---------------------------------------------------------------------
class Location(BaseModel): # pylint: disable=too-few-public-methods
    """Coordonnées en degrés décimaux (nombres uniquement, bornés)."""
    model_config = ConfigDict(strict=True)

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)


class POI(BaseModel): # pylint: disable=too-few-public-methods
    """Point d'intérêt."""
    id: NonEmptyStr
    name: NonEmptyStr
    # Vocabulaire ouvert : validé à l'exécution contre supportedTypes
    type: NonEmptyStr
    location: Location
    address: NonEmptyStr
    attributes: List[StrictStr] = Field(default_factory=list)

    @field_validator("attributes", mode="before")
    @classmethod
    def _null_attributes(cls, value):
        return [] if value is None else value


class Dataset(BaseModel): # pylint: disable=too-few-public-methods
    """Jeu de données complet tel que renvoyé par une source."""
    model_config = ConfigDict(populate_by_name=True)

    supported_types: List[NonEmptyStr] = Field(alias="supportedTypes", min_length=1)
    pois: List[POI]


class Phrase(BaseModel): # pylint: disable=too-few-public-methods
    """Sortie de l'analyseur de texte pour un segment."""
    nouns: List[str] = Field(default_factory=list)
    adjectives: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------
# Intentions (immuables)
# ---------------------------------------------------------------------
class TypeListRequest(BaseModel): # pylint: disable=too-few-public-methods
    """L'utilisateur demande la liste des types supportés."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["type_list"] = "type_list"


class SimpleQuery(BaseModel): # pylint: disable=too-few-public-methods
    """Une ou plusieurs catégories cibles, filtres d'attributs optionnels."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["simple"] = "simple"
    types: Tuple[str, ...]
    attributes: Tuple[str, ...] = ()


class ProximityQuery(BaseModel): # pylint: disable=too-few-public-methods
    """Deux catégories reliées par une relation de proximité."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["proximity"] = "proximity"
    target_type: str
    nearby_type: str
    target_attributes: Tuple[str, ...] = ()
    nearby_attributes: Tuple[str, ...] = ()


class Unrecognized(BaseModel): # pylint: disable=too-few-public-methods
    """Aucune catégorie reconnue."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["unrecognized"] = "unrecognized"


Intent = Union[TypeListRequest, SimpleQuery, ProximityQuery, Unrecognized]


# ---------------------------------------------------------------------
# Proximité
# ---------------------------------------------------------------------
class NearbyMatch(BaseModel): # pylint: disable=too-few-public-methods
    """POI voisin et sa distance (miles, 2 décimales)."""
    poi: POI
    distance_miles: float

    @computed_field
    @property
    def distance_label(self) -> str:
        """Distance lisible, ex. '0.7 miles'."""
        return format_distance(self.distance_miles)


class ProximityGroup(BaseModel): # pylint: disable=too-few-public-methods
    """POI cible avec ses voisins, du plus proche au plus lointain."""
    poi: POI
    nearby: List[NearbyMatch]


# ---------------------------------------------------------------------
# Résultats de requête
# ---------------------------------------------------------------------
class SuccessResult(BaseModel): # pylint: disable=too-few-public-methods
    type: Literal["success"] = "success"
    pois: List[POI]


class GroupedResult(BaseModel): # pylint: disable=too-few-public-methods
    type: Literal["grouped"] = "grouped"
    groups: List[ProximityGroup]
    target_type: str
    nearby_type: str
    threshold_miles: float


class SuggestionsResult(BaseModel): # pylint: disable=too-few-public-methods
    type: Literal["suggestions"] = "suggestions"
    message: str
    examples: List[str] = Field(default_factory=list)


class TypesListResult(BaseModel): # pylint: disable=too-few-public-methods
    type: Literal["types"] = "types"
    types: List[str]


class ErrorResult(BaseModel): # pylint: disable=too-few-public-methods
    type: Literal["error"] = "error"
    message: str


QueryResult = Annotated[
    Union[SuccessResult, GroupedResult, SuggestionsResult, TypesListResult, ErrorResult],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------
# API
# ---------------------------------------------------------------------
class QueryRequest(BaseModel): # pylint: disable=too-few-public-methods
    """Requête en langage naturel."""
    query: Optional[str] = ""
