"""Single-word derivation: decompose, transform, enrich.

Shared by the batch orchestrator and the language builder so both produce
entries the same way.
"""

import asyncio
from typing import Optional

from conlang.core.contracts import IEnrichmentClient
from conlang.core.types import Definitions, WordEntry
from conlang.errors import ConlangError, EnrichmentServiceError, PerWordProcessingError
from conlang.observ import get_logger
from conlang.services.decomposer import Decomposer
from conlang.services.transform import TransformationEngine

logger = get_logger(__name__)


class EntryDeriver:
    """Builds a complete WordEntry for one source word."""

    def __init__(
        self,
        decomposer: Decomposer,
        engine: TransformationEngine,
        enrichment: Optional[IEnrichmentClient] = None,
        timeout: Optional[float] = None,
    ):
        self.decomposer = decomposer
        self.engine = engine
        self._enrichment = enrichment
        self._timeout = timeout

    async def definitions(self, word: str) -> Definitions:
        """Enrichment definitions; never fails."""
        if self._enrichment is None:
            return Definitions.placeholder(word)

        try:
            return await asyncio.wait_for(
                self._enrichment.get_definitions(word),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("definitions_timeout", word=word, timeout=self._timeout)
        except EnrichmentServiceError as e:
            logger.warning("definitions_unavailable", word=word, error=e.message)
        except Exception as e:
            logger.warning(
                "definitions_failed",
                word=word,
                error=str(e),
                error_type=type(e).__name__,
            )
        return Definitions.unavailable(word)

    async def derive(self, word: str) -> WordEntry:
        """Run the full pipeline for word.

        Raises:
            PerWordProcessingError: Any failure while deriving this word
        """
        try:
            decomposition = await self.decomposer.analyze(word)
            definitions = await self.definitions(decomposition.word)
            return self.engine.build_entry(decomposition, definitions=definitions)
        except PerWordProcessingError:
            raise
        except ConlangError as e:
            raise PerWordProcessingError(word, e.message) from e
        except Exception as e:
            raise PerWordProcessingError(word, str(e) or type(e).__name__) from e
