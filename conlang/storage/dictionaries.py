"""Dictionary flushing.

Writes the three lookup tables, a metadata record and a full vocabulary
snapshot as plain JSON files:

    <dir>/<Language>_to_source.json       constructed -> source
    <dir>/<Language>_to_<Language>.json   constructed -> constructed
    <dir>/source_to_<Language>.json       source -> constructed
    <dir>/<Language>_metadata.json        size, phonetic inventory, stats
    <dir>/<Language>_vocabulary.json      full entries for reloading
"""

import asyncio
from pathlib import Path
from typing import Optional

import orjson

from conlang.config import get_settings
from conlang.core.contracts import IDictionarySink
from conlang.core.types import utc_now
from conlang.core.vocabulary import Vocabulary
from conlang.errors import DictionaryIOError
from conlang.observ import get_logger, timer
from conlang.storage.checkpoint import slugify, write_atomic

logger = get_logger(__name__)


class DictionaryWriter(IDictionarySink):
    """Flushes lookup tables for one language into a directory."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else get_settings().output_dir

    def paths(self, language: str) -> dict[str, Path]:
        name = slugify(language)
        return {
            "constructed_to_source": self.directory / f"{name}_to_source.json",
            "constructed_to_constructed": self.directory / f"{name}_to_{name}.json",
            "source_to_constructed": self.directory / f"source_to_{name}.json",
            "metadata": self.directory / f"{name}_metadata.json",
            "vocabulary": self.directory / f"{name}_vocabulary.json",
        }

    def build(self, vocabulary: Vocabulary, stats: Optional[dict] = None) -> dict[str, dict]:
        """All tables keyed like ``paths``."""
        return {
            "constructed_to_source": vocabulary.constructed_to_source_table(),
            "constructed_to_constructed": vocabulary.constructed_to_constructed_table(),
            "source_to_constructed": vocabulary.source_to_constructed_table(),
            "metadata": {
                "language": vocabulary.name,
                "style": vocabulary.style.value if vocabulary.style else None,
                "vocabularySize": len(vocabulary),
                "phoneticSystem": vocabulary.phonetic_inventory(),
                "generationStats": dict(stats or {}),
                "collisions": vocabulary.collisions(),
                "createdAt": min(
                    (entry.created_at for entry in vocabulary),
                    default=utc_now(),
                ).isoformat(),
                "updatedAt": utc_now().isoformat(),
            },
            "vocabulary": vocabulary.to_snapshot(),
        }

    def write(self, vocabulary: Vocabulary, stats: Optional[dict] = None) -> dict[str, Path]:
        """Synchronously write every table; returns the written paths."""
        paths = self.paths(vocabulary.name)
        tables = self.build(vocabulary, stats)

        for key, path in paths.items():
            try:
                write_atomic(path, orjson.dumps(tables[key], option=orjson.OPT_INDENT_2))
            except OSError as e:
                raise DictionaryIOError(str(path), str(e)) from e
        return paths

    async def flush(self, vocabulary: Vocabulary, stats: Optional[dict] = None) -> None:
        with timer(logger, "dictionary_flush", language=vocabulary.name, size=len(vocabulary)):
            await asyncio.to_thread(self.write, vocabulary, stats)

    def read(self, language: str, table: str) -> dict:
        """Load one previously written table."""
        path = self.paths(language)[table]
        try:
            with open(path, "rb") as f:
                return orjson.loads(f.read())
        except (OSError, orjson.JSONDecodeError) as e:
            raise DictionaryIOError(str(path), str(e)) from e

    def languages(self) -> list[dict]:
        """Metadata of every language flushed into the directory, by name."""
        found = []
        for path in sorted(self.directory.glob("*_metadata.json")):
            try:
                with open(path, "rb") as f:
                    found.append(orjson.loads(f.read()))
            except (OSError, orjson.JSONDecodeError) as e:
                logger.warning("metadata_unreadable", path=str(path), error=str(e))
        return found

    def load_vocabulary(self, language: str) -> Optional[Vocabulary]:
        """Rebuild a vocabulary from its snapshot; None when never flushed."""
        path = self.paths(language)["vocabulary"]
        if not path.exists():
            return None

        data = self.read(language, "vocabulary")
        try:
            vocabulary = Vocabulary.from_snapshot(data)
        except (KeyError, ValueError) as e:
            raise DictionaryIOError(str(path), f"corrupt snapshot: {e}") from e

        logger.info("vocabulary_loaded", path=str(path), size=len(vocabulary))
        return vocabulary
