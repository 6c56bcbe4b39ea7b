"""Service contracts and interfaces.

Defines protocols for dependency injection and testing.
"""

from typing import Optional, Protocol

from .types import BatchCheckpoint, Definitions, Etymology


class IEnrichmentClient(Protocol):
    """Contract for the external etymology/definition service.

    Implementations recover from their own failures and always return
    usable data.
    """

    async def get_etymology(self, word: str) -> Etymology:
        """Etymology of a word, or fixed defaults when unavailable."""
        ...

    async def get_definitions(self, word: str) -> Definitions:
        """Definitions of a word, or fixed defaults when unavailable."""
        ...


class ICheckpointStore(Protocol):
    """Contract for batch checkpoint persistence."""

    async def save(self, checkpoint: BatchCheckpoint) -> None:
        """Persist checkpoint, overwriting any earlier one."""
        ...

    async def load(self) -> Optional[BatchCheckpoint]:
        """Return the stored checkpoint, if any."""
        ...

    async def discard(self) -> None:
        """Remove the stored checkpoint after a completed run."""
        ...


class IDictionarySink(Protocol):
    """Contract for flushing lookup tables."""

    async def flush(self, vocabulary, stats: dict) -> None:
        """Write all lookup tables and metadata for vocabulary."""
        ...
