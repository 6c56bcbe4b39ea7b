"""HTTP client for an Ollama-compatible enrichment service.

Asks a local language model for etymology and definitions using fixed
"KEY: value" prompt formats and parses the free-text answers tolerantly.
Every failure is recovered locally: callers always receive usable data.
"""

from collections import OrderedDict
from time import perf_counter
from typing import Optional

import httpx
import orjson

from conlang.config import get_settings
from conlang.core.contracts import IEnrichmentClient
from conlang.core.types import Definitions, Etymology, EtymologyMorpheme
from conlang.errors import EnrichmentServiceError, ErrorCode
from conlang.observ import get_logger, log_service_call

logger = get_logger(__name__)


GENERATION_OPTIONS = {
    "temperature": 0.3,
    "top_k": 10,
    "top_p": 0.9,
}

ETYMOLOGY_PROMPT = """Provide detailed etymology for the word "{word}". Include:
1. Original language and root
2. Historical development and changes
3. Related words in the same language family
4. Key morphemes and their meanings
5. Approximate time periods of major changes

Format your response as structured data that can be parsed:
ORIGIN: [language]
ROOT: [original form]
DEVELOPMENT: [historical changes]
RELATED: [related words]
MORPHEMES: [morpheme breakdown]
PERIODS: [time periods]"""

DEFINITION_PROMPT = """Provide comprehensive definitions for "{word}". Include:
1. Primary meanings (numbered)
2. Secondary meanings
3. Technical or specialized uses
4. Part of speech variations
5. Example usage contexts

Format as:
PRIMARY: [main definitions]
SECONDARY: [other meanings]
TECHNICAL: [specialized uses]
POS: [parts of speech]
EXAMPLES: [usage examples]"""


# ═════════════════════════════════════════════════════════════════════════════
# Response parsing
# ═════════════════════════════════════════════════════════════════════════════

def iter_fields(text: str):
    """Yield (KEY, value) for every "key: value" line with a non-empty value."""
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip().upper(), value.strip()
        if key and value:
            yield key, value


def split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def split_definitions(value: str) -> list[str]:
    return [item.strip() for item in value.replace(";", ",").split(",") if item.strip()]


def parse_morphemes(value: str) -> list[EtymologyMorpheme]:
    """Parse "value:meaning" pairs; a missing meaning becomes "unknown"."""
    morphemes = []
    for part in value.split(","):
        head, _, meaning = part.strip().partition(":")
        head = head.strip()
        if not head:
            continue
        morphemes.append(
            EtymologyMorpheme(value=head, meaning=meaning.strip() or "unknown")
        )
    return morphemes


def parse_etymology(text: str) -> Etymology:
    fields = {}
    for key, value in iter_fields(text):
        if key == "ORIGIN":
            fields["origin"] = value
        elif key == "ROOT":
            fields["root"] = value
        elif key == "DEVELOPMENT":
            fields["development"] = value
        elif key == "RELATED":
            fields["related_words"] = split_list(value)
        elif key == "MORPHEMES":
            fields["morphemes"] = parse_morphemes(value)
        elif key == "PERIODS":
            fields["periods"] = split_list(value)
    return Etymology(**fields)


def parse_definitions(text: str) -> Definitions:
    fields = {}
    for key, value in iter_fields(text):
        if key == "PRIMARY":
            fields["primary"] = split_definitions(value)
        elif key == "SECONDARY":
            fields["secondary"] = split_definitions(value)
        elif key == "TECHNICAL":
            fields["technical"] = split_definitions(value)
        elif key == "POS":
            fields["part_of_speech"] = split_list(value)
        elif key == "EXAMPLES":
            fields["examples"] = split_definitions(value)
    return Definitions(**fields)


# ═════════════════════════════════════════════════════════════════════════════
# Client
# ═════════════════════════════════════════════════════════════════════════════

class OllamaClient(IEnrichmentClient):
    """Async enrichment client with a bounded response cache.

    The cache evicts the oldest entry once ``cache_size`` is reached.
    Fallback data is never cached, so a later call can still succeed.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.ollama_url).rstrip("/")
        self.model = model or settings.ollama_model
        self.timeout = timeout if timeout is not None else settings.enrichment_timeout
        self.cache_size = cache_size if cache_size is not None else settings.enrichment_cache_size

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._cache: OrderedDict[str, Etymology | Definitions] = OrderedDict()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def test_connection(self) -> bool:
        """Probe the service's model listing endpoint."""
        try:
            response = await self._http().get("/api/tags")
        except httpx.HTTPError as e:
            logger.warning("enrichment_connection_failed", url=self.base_url, error=str(e))
            return False
        return response.status_code == 200

    async def generate(self, prompt: str) -> str:
        """Send one non-streaming generation request and return its text.

        Raises:
            EnrichmentServiceError: Transport failure, timeout, non-2xx
                status or malformed response body
        """
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": GENERATION_OPTIONS,
        }

        start = perf_counter()
        try:
            response = await self._http().post("/api/generate", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            log_service_call(
                logger, "ollama", "generate",
                (perf_counter() - start) * 1000,
                success=False, error=str(e),
            )
            raise EnrichmentServiceError("generate", str(e) or type(e).__name__) from e

        log_service_call(logger, "ollama", "generate", (perf_counter() - start) * 1000)

        try:
            text = orjson.loads(response.content)["response"]
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            raise EnrichmentServiceError(
                "generate",
                f"malformed response: {e}",
                code=ErrorCode.ENRICHMENT_PARSE_FAILED,
            ) from e

        if not isinstance(text, str):
            raise EnrichmentServiceError(
                "generate",
                "response field is not text",
                code=ErrorCode.ENRICHMENT_PARSE_FAILED,
            )
        return text

    async def get_etymology(self, word: str) -> Etymology:
        key = f"etymology:{word}"
        if key in self._cache:
            return self._cache[key]

        try:
            text = await self.generate(ETYMOLOGY_PROMPT.format(word=word))
        except EnrichmentServiceError as e:
            logger.warning("etymology_fallback", word=word, error=e.message)
            return Etymology.unavailable(word)

        etymology = parse_etymology(text)
        self._remember(key, etymology)
        return etymology

    async def get_definitions(self, word: str) -> Definitions:
        key = f"definitions:{word}"
        if key in self._cache:
            return self._cache[key]

        try:
            text = await self.generate(DEFINITION_PROMPT.format(word=word))
        except EnrichmentServiceError as e:
            logger.warning("definitions_fallback", word=word, error=e.message)
            return Definitions.unavailable(word)

        definitions = parse_definitions(text)
        self._remember(key, definitions)
        return definitions

    # ─────────────────────────────────────────────────────────────────────────
    # Cache
    # ─────────────────────────────────────────────────────────────────────────

    def _remember(self, key: str, value: Etymology | Definitions) -> None:
        if self.cache_size <= 0:
            return
        while len(self._cache) >= self.cache_size:
            self._cache.popitem(last=False)
        self._cache[key] = value

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> dict:
        return {
            "size": len(self._cache),
            "max_size": self.cache_size,
        }
