"""Shared fixtures: in-memory collaborators and entry factories."""

import pytest

from conlang.core.types import (
    BatchCheckpoint,
    Definitions,
    Etymology,
    Morpheme,
    MorphemeType,
    WordEntry,
)
from conlang.errors import CheckpointIOError
from conlang.services.decomposer import phonetic_structure


class FakeEnrichment:
    """Enrichment client that answers instantly and records requests.

    ``hooks`` maps a word to a callable run while its definitions are being
    fetched, which lets tests act "while a word is in flight". Setting
    ``error`` makes every request raise it.
    """

    def __init__(self, origin: str = "unknown"):
        self.origin = origin
        self.etymology_calls: list[str] = []
        self.definition_calls: list[str] = []
        self.hooks = {}
        self.error = None

    async def get_etymology(self, word: str) -> Etymology:
        self.etymology_calls.append(word)
        if self.error is not None:
            raise self.error
        return Etymology(origin=self.origin, root=word, development="attested")

    async def get_definitions(self, word: str) -> Definitions:
        self.definition_calls.append(word)
        hook = self.hooks.get(word)
        if hook is not None:
            hook()
        if self.error is not None:
            raise self.error
        return Definitions(primary=[f"meaning of {word}"], part_of_speech=["noun"])


class MemoryCheckpointStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved: list[BatchCheckpoint] = []
        self.discarded = 0

    async def save(self, checkpoint: BatchCheckpoint) -> None:
        if self.fail:
            raise CheckpointIOError("save", "disk full")
        self.saved.append(checkpoint)

    async def load(self):
        return self.saved[-1] if self.saved else None

    async def discard(self) -> None:
        self.discarded += 1


class MemorySink:
    def __init__(self):
        self.flushes: list[dict] = []

    async def flush(self, vocabulary, stats=None) -> None:
        self.flushes.append({"size": len(vocabulary), "stats": dict(stats or {})})


@pytest.fixture
def fake_enrichment():
    return FakeEnrichment()


@pytest.fixture
def checkpoint_store():
    return MemoryCheckpointStore()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def make_entry():
    """Factory for hand-built entries with a fixed constructed form."""

    def _make(source: str, constructed: str, **fields) -> WordEntry:
        return WordEntry(
            source=source,
            constructed=constructed,
            pronunciation=f"/{constructed}/",
            morphemes=[Morpheme(type=MorphemeType.ROOT, value=source, meaning="core meaning")],
            phonetic_structure=phonetic_structure(constructed),
            **fields,
        )

    return _make
