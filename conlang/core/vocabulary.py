"""Vocabulary accumulator and bidirectional lookup tables.

The Vocabulary is an explicit object owned by whoever drives processing
(the batch orchestrator, the reconstruction engine, tests). It is never
module-level state.
"""

import heapq
import re
from collections import Counter
from typing import Callable, Iterable, Iterator, Optional

from .types import AddOutcome, SearchDirection, Style, WordEntry


VOWELS = frozenset("aeiou")
MAX_RELATED = 5

_PLAIN_WORD = re.compile(r"\w+")


class Vocabulary:
    """Mapping from source word to WordEntry.

    A second add for an existing source word is a no-op reported as
    ``AddOutcome.SKIPPED``.
    """

    def __init__(
        self,
        name: str,
        entries: Optional[Iterable[WordEntry]] = None,
        style: Optional[Style] = None,
    ):
        self.name = name
        self.style = style
        self._entries: dict[str, WordEntry] = {}
        for entry in entries or ():
            self.add(entry)

    def add(self, entry: WordEntry) -> AddOutcome:
        """Insert entry unless its source word is already present."""
        if entry.source in self._entries:
            return AddOutcome.SKIPPED
        self._entries[entry.source] = entry
        return AddOutcome.ADDED

    def replace_all(self, entries: Iterable[WordEntry]) -> None:
        """Swap in a fully re-derived set of entries."""
        self._entries = {entry.source: entry for entry in entries}

    def get(self, source: str) -> Optional[WordEntry]:
        return self._entries.get(source)

    def sources(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[WordEntry]:
        return list(self._entries.values())

    def copy(self) -> "Vocabulary":
        return Vocabulary(self.name, self._entries.values(), style=self.style)

    def __contains__(self, source: object) -> bool:
        return source in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WordEntry]:
        return iter(self._entries.values())

    def __repr__(self) -> str:
        return f"Vocabulary({self.name!r}, {len(self)} entries)"

    # ─────────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────────

    def translate(self, source: str) -> Optional[str]:
        """Source word to constructed word."""
        entry = self._entries.get(source)
        return entry.constructed if entry else None

    def reverse_index(self) -> dict[str, str]:
        """Constructed word to source word; the first source claims a collision."""
        index: dict[str, str] = {}
        for entry in self._entries.values():
            index.setdefault(entry.constructed, entry.source)
        return index

    def lookup_source(self, constructed: str) -> Optional[str]:
        """Constructed word to source word."""
        return self.reverse_index().get(constructed)

    def search(
        self,
        term: str,
        direction: SearchDirection | str = SearchDirection.BOTH,
    ) -> list[dict]:
        """Case-insensitive substring search over source and/or constructed words.

        Source matches come first, then constructed matches; a word matching on
        both sides is listed once per side.
        """
        direction = SearchDirection(direction)
        needle = term.strip().lower()
        results = []

        if direction in (SearchDirection.SOURCE, SearchDirection.BOTH):
            for entry in self._entries.values():
                if needle in entry.source.lower():
                    results.append({
                        "source": entry.source,
                        "constructed": entry.constructed,
                        "match": SearchDirection.SOURCE.value,
                    })

        if direction in (SearchDirection.CONSTRUCTED, SearchDirection.BOTH):
            for constructed, source in self.reverse_index().items():
                if needle in constructed.lower():
                    results.append({
                        "source": source,
                        "constructed": constructed,
                        "match": SearchDirection.CONSTRUCTED.value,
                    })
        return results

    def constructed_definitions(self, constructed: str) -> Optional[list[str]]:
        """Definitions of a constructed word, written in the constructed language."""
        source = self.lookup_source(constructed)
        if source is None:
            return None
        translator = self._translator()
        return [translator(d) for d in self._entries[source].definitions.primary]

    def collisions(self) -> dict[str, list[str]]:
        """Constructed forms shared by more than one source word."""
        groups: dict[str, list[str]] = {}
        for entry in self._entries.values():
            groups.setdefault(entry.constructed, []).append(entry.source)
        return {k: v for k, v in groups.items() if len(v) > 1}

    # ─────────────────────────────────────────────────────────────────────────
    # Lookup tables
    # ─────────────────────────────────────────────────────────────────────────

    def constructed_to_source_table(self) -> dict[str, dict]:
        table = {}
        for entry in self._entries.values():
            if entry.constructed in table:
                continue
            table[entry.constructed] = {
                "source": entry.source,
                "definitions": list(entry.definitions.primary),
                "pronunciation": entry.pronunciation,
                "partOfSpeech": entry.part_of_speech,
                "etymology": {
                    "origin": entry.etymology.origin or "unknown",
                    "development": entry.etymology.development,
                },
            }
        return table

    def constructed_to_constructed_table(self) -> dict[str, dict]:
        translator = self._translator()
        relations = _RelationIndex(self._entries.values())
        table = {}
        for entry in self._entries.values():
            if entry.constructed in table:
                continue
            table[entry.constructed] = {
                "definitions": [translator(d) for d in entry.definitions.primary],
                "pronunciation": entry.pronunciation,
                "partOfSpeech": entry.part_of_speech,
                "relatedWords": relations.related(entry),
            }
        return table

    def source_to_constructed_table(self) -> dict[str, dict]:
        return {
            entry.source: {
                "constructed": entry.constructed,
                "pronunciation": entry.pronunciation,
                "definitions": list(entry.definitions.primary),
                "partOfSpeech": entry.part_of_speech,
                "phoneticStructure": entry.phonetic_structure.model_dump(
                    mode="json", by_alias=True
                ),
            }
            for entry in self._entries.values()
        }

    def translate_text(self, text: str) -> str:
        """Replace every known source word in text with its constructed form.

        Matching is whole-word and case-insensitive; replaced text is never
        translated a second time.
        """
        return self._translator()(text)

    def _translator(self) -> Callable[[str], str]:
        """Single-pass substitution over every source word.

        Plain word sources are matched as ``\\w+`` tokens and looked up; sources
        holding other characters (hyphens, apostrophes, spaces) go into a
        longest-first alternation tried ahead of the token branch.
        """
        forms: dict[str, str] = {}
        for entry in self._entries.values():
            forms.setdefault(entry.source.lower(), entry.constructed)
        if not forms:
            return lambda text: text

        compound = sorted(
            (s for s in forms if not _PLAIN_WORD.fullmatch(s)),
            key=len,
            reverse=True,
        )
        branches = [r"\b\w+\b"]
        if compound:
            branches.insert(0, r"\b(?:" + "|".join(map(re.escape, compound)) + r")\b")
        pattern = re.compile("|".join(branches), re.IGNORECASE)

        def substitute(match: re.Match) -> str:
            found = match.group(0)
            return forms.get(found.lower(), found)

        return lambda text: pattern.sub(substitute, text)

    def related_constructed(self, target: WordEntry) -> list[str]:
        """Constructed words sharing a known origin or an overlapping root."""
        return _RelationIndex(self._entries.values()).related(target)

    # ─────────────────────────────────────────────────────────────────────────
    # Snapshot
    # ─────────────────────────────────────────────────────────────────────────

    def to_snapshot(self) -> dict:
        """Full entries, enough to rebuild the vocabulary in a new process."""
        return {
            "language": self.name,
            "style": self.style.value if self.style else None,
            "entries": [
                entry.model_dump(mode="json", by_alias=True)
                for entry in self._entries.values()
            ],
        }

    @classmethod
    def from_snapshot(cls, data: dict) -> "Vocabulary":
        style = data.get("style")
        return cls(
            data["language"],
            (WordEntry.model_validate(raw) for raw in data.get("entries", [])),
            style=Style(style) if style else None,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Phonetic inventory
    # ─────────────────────────────────────────────────────────────────────────

    def phonetic_inventory(self) -> dict:
        """Aggregate sound inventory and structure counts of constructed words."""
        vowels: set[str] = set()
        consonants: set[str] = set()
        patterns: Counter = Counter()
        syllables: Counter = Counter()
        stresses: set[str] = set()

        for entry in self._entries.values():
            structure = entry.phonetic_structure
            patterns[structure.pattern] += 1
            syllables[str(structure.syllable_count)] += 1
            stresses.add("-".join(s.value for s in structure.stress_pattern))

            for char in entry.constructed.lower():
                if char in VOWELS:
                    vowels.add(char)
                elif "a" <= char <= "z":
                    consonants.add(char)

        return {
            "vowelInventory": sorted(vowels),
            "consonantInventory": sorted(consonants),
            "phoneticPatterns": dict(patterns),
            "syllableStructures": dict(syllables),
            "stressPatterns": sorted(stresses),
        }


def _substrings(text: str) -> set[str]:
    return {
        text[i:j]
        for i in range(len(text))
        for j in range(i + 1, len(text) + 1)
    }


class _RelationIndex:
    """Entry positions keyed by origin and by etymological root.

    Two entries are related when they share an origin other than "unknown",
    or when one root contains the other. Lookups merge the matching position
    lists in vocabulary order and stop after ``limit`` hits.
    """

    def __init__(self, entries: Iterable[WordEntry]):
        self._entries = list(entries)
        self._by_origin: dict[str, list[int]] = {}
        self._by_root: dict[str, list[int]] = {}
        self._by_root_part: dict[str, list[int]] = {}

        for position, entry in enumerate(self._entries):
            origin = entry.etymology.origin
            if origin != "unknown":
                self._by_origin.setdefault(origin, []).append(position)

            root = entry.etymology.root
            if root:
                self._by_root.setdefault(root, []).append(position)
                for part in _substrings(root):
                    self._by_root_part.setdefault(part, []).append(position)

    def related(self, target: WordEntry, limit: int = MAX_RELATED) -> list[str]:
        candidates = []
        origin = target.etymology.origin
        if origin != "unknown":
            candidates.append(self._by_origin.get(origin, []))

        root = target.etymology.root
        if root:
            # roots containing this one, then roots contained in it
            candidates.append(self._by_root_part.get(root, []))
            candidates.extend(self._by_root.get(part, []) for part in _substrings(root))

        related = []
        previous = -1
        for position in heapq.merge(*candidates):
            if position == previous:
                continue
            previous = position
            entry = self._entries[position]
            if entry.source == target.source:
                continue
            related.append(entry.constructed)
            if len(related) >= limit:
                break
        return related
