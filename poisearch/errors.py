"""Erreurs applicatives du service de recherche de POI."""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Codes de catégorisation des erreurs."""
    MODEL_LOAD_FAILED = "MODEL_LOAD_FAILED"
    MODEL_INFERENCE_FAILED = "MODEL_INFERENCE_FAILED"

    DATA_FETCH_ERROR = "DATA_FETCH_ERROR"
    DATA_PARSE_ERROR = "DATA_PARSE_ERROR"
    DATA_VALIDATION_ERROR = "DATA_VALIDATION_ERROR"

    QUERY_PROCESSING_ERROR = "QUERY_PROCESSING_ERROR"
    QUERY_TIMEOUT = "QUERY_TIMEOUT"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


USER_MESSAGES = {
    ErrorCode.MODEL_LOAD_FAILED: "Failed to load AI model. Please try again later.",
    ErrorCode.MODEL_INFERENCE_FAILED: "Unable to process query. Please try rephrasing.",
    ErrorCode.DATA_FETCH_ERROR: "Failed to load POI data. Please refresh the page.",
    ErrorCode.DATA_PARSE_ERROR: "POI data is malformed. Please contact support.",
    ErrorCode.DATA_VALIDATION_ERROR: "POI data is malformed. Please contact support.",
    ErrorCode.QUERY_PROCESSING_ERROR: (
        "An error occurred while processing your query. Please try again."
    ),
    ErrorCode.QUERY_TIMEOUT: "Query processing timed out. Please try again.",
    ErrorCode.UNKNOWN_ERROR: "An unexpected error occurred. Please try again.",
}


def get_user_friendly_message(code: str) -> str:
    """Retourne le message destiné à l'utilisateur pour un code d'erreur."""
    try:
        return USER_MESSAGES[ErrorCode(code)]
    except ValueError:
        return USER_MESSAGES[ErrorCode.UNKNOWN_ERROR]


class PoiSearchError(Exception):
    """
    Erreur de base du service.

    Args:
        message: Message technique (logs)
        code: Code de catégorisation
        user_message: Message affichable (par défaut celui associé au code)
    """

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
            self,
            message: str,
            code: Optional[ErrorCode] = None,
            user_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.user_message = user_message or get_user_friendly_message(self.code)


class DataValidationError(PoiSearchError):
    """Jeu de données mal formé : le chargement est abandonné."""
    default_code = ErrorCode.DATA_VALIDATION_ERROR


class DataFetchError(PoiSearchError):
    """Jeu de données inaccessible (fichier, base, réseau)."""
    default_code = ErrorCode.DATA_FETCH_ERROR


class QueryTimeoutError(PoiSearchError):
    """L'extraction d'intention a dépassé le délai imparti."""
    default_code = ErrorCode.QUERY_TIMEOUT


class AnalysisError(PoiSearchError):
    """Le mécanisme d'analyse du texte a échoué."""
    default_code = ErrorCode.MODEL_INFERENCE_FAILED


class ModelLoadError(PoiSearchError):
    """L'initialisation de l'analyseur a échoué."""
    default_code = ErrorCode.MODEL_LOAD_FAILED
