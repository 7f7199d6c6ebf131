"""
Analyseurs de texte interchangeables.

Un analyseur expose `ready()` et `extract_phrase(segment)` ; l'extracteur
d'intention ne dépend que de cette interface.
"""
import asyncio
import re
from abc import ABC, abstractmethod
from typing import List, Optional

import aiohttp

from poisearch.config import settings
from poisearch.errors import ModelLoadError
from poisearch.logger import logger
from poisearch.models import Phrase

QUERY_VERBS = frozenset({
    "show", "find", "get", "list", "display", "search", "locate", "give", "tell",
})

STOP_WORDS = frozenset({
    "a", "an", "the", "me", "my", "i", "we", "us", "you", "some", "any", "all",
    "is", "are", "be", "there", "where", "what", "which", "who", "how",
    "in", "on", "at", "of", "for", "to", "from", "by", "with", "and", "or",
    "near", "nearby", "around", "close", "having", "have", "that", "this",
    "please", "can", "could", "would", "want", "looking", "look", "see",
    "places", "place", "good", "best",
})

_TOKEN_RE = re.compile(r"[a-z0-9']+")
_SPLIT_RE = re.compile(r",|\sand\s")


def split_generated_list(text: str) -> List[str]:
    """'parks, museums and cafes' -> ['parks', 'museums', 'cafes']"""
    return [item.strip().lower() for item in _SPLIT_RE.split(text or "") if item.strip()]


class TextAnalyzer(ABC):
    """Capacité d'analyse : extraction de noms et d'adjectifs d'un segment."""

    async def initialize(self) -> None:
        """Prépare l'analyseur (no-op par défaut)."""

    @abstractmethod
    def ready(self) -> bool:
        """L'analyseur peut-il traiter des requêtes ?"""

    @abstractmethod
    async def extract_phrase(self, segment: str) -> Phrase:
        """Extrait les noms et adjectifs candidats d'un segment de requête."""


class RuleBasedAnalyzer(TextAnalyzer):
    """
    Analyseur à règles, sans dépendance externe.

    Chaque mot porteur de sens est proposé à la fois comme nom et comme
    adjectif ; l'extracteur sépare ensuite catégories et attributs.
    """

    def ready(self) -> bool:
        return True

    def tokenize(self, segment: str) -> List[str]:
        """Mots porteurs de sens, en minuscules, dans l'ordre."""
        tokens = _TOKEN_RE.findall(segment.lower())
        return [
            t for t in tokens
            if t not in STOP_WORDS and t not in QUERY_VERBS and len(t) > 1
        ]

    async def extract_phrase(self, segment: str) -> Phrase:
        tokens = self.tokenize(segment)
        return Phrase(nouns=list(tokens), adjectives=list(tokens))


class RemoteLLMAnalyzer(TextAnalyzer):
    """Analyseur s'appuyant sur un serveur LLM distant (génération texte-à-texte)."""

    NOUN_PROMPT = "Extract only the nouns from this query: {query}"
    ADJECTIVE_PROMPT = "Extract only the adjectives from this query: {query}"

    def __init__(
            self,
            api_url: str = settings.LLM_API_URL,
            health_url: str = settings.LLM_HEALTH_URL,
            max_tokens: int = settings.LLM_MAX_TOKENS,
            temperature: float = settings.LLM_TEMPERATURE,
            request_timeout_s: float = settings.LLM_REQUEST_TIMEOUT_S):
        self.api_url = api_url
        self.health_url = health_url
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = aiohttp.ClientTimeout(total=request_timeout_s)
        self._ready = False
        self._init_task: Optional[asyncio.Task] = None

    def ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        """
        Vérifie la disponibilité du serveur LLM.

        Les appels concurrents partagent la même tentative ; un échec libère
        la place pour une nouvelle tentative.

        Raises:
            ModelLoadError: Si le serveur est injoignable ou répond en erreur
        """
        if self._ready:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize_internal())
        await asyncio.shield(self._init_task)

    async def _initialize_internal(self) -> None:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self.health_url) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        raise ModelLoadError(
                            f"LLM health check failed: {resp.status} - {error_text}"
                        )
            self._ready = True
            logger.info("Serveur LLM disponible ({url})", url=self.api_url)
        except ModelLoadError:
            self._init_task = None
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._init_task = None
            raise ModelLoadError(f"Failed to reach LLM server: {e}") from e

    async def _generate(self, session: aiohttp.ClientSession, prompt: str) -> str:
        payload = {
            "prompt": prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        async with session.post(self.api_url, json=payload) as resp:
            if resp.status != 200:
                error_text = await resp.text()
                raise RuntimeError(f"LLM Service Error: {resp.status} - {error_text}")
            data = await resp.json()
            return data.get("response", "")

    async def extract_phrase(self, segment: str) -> Phrase:
        if not self._ready:
            logger.debug("LLM non prêt, extraction vide")
            return Phrase()

        # Minuscules : le modèle gère mal la casse
        query = segment.lower()
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            noun_text = await self._generate(session, self.NOUN_PROMPT.format(query=query))
            adjective_text = await self._generate(
                session, self.ADJECTIVE_PROMPT.format(query=query)
            )

        phrase = Phrase(
            nouns=split_generated_list(noun_text),
            adjectives=split_generated_list(adjective_text),
        )
        logger.debug(
            "LLM : noms={nouns} adjectifs={adjectives}",
            nouns=phrase.nouns, adjectives=phrase.adjectives,
        )
        return phrase
