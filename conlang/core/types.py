"""Core type definitions for the constructed-language system.

Provides immutable domain models with strict typing.
All entities are Pydantic models for validation and serialization; persisted
records use camelCase aliases so the on-disk JSON matches the checkpoint and
dictionary formats.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Record(BaseModel):
    """Frozen base model with camelCase aliases."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Enumerations
# ═════════════════════════════════════════════════════════════════════════════

class Style(str, Enum):
    """Transformation rule set, fixed per language at creation time."""
    DEFAULT = "default"
    CONSONANT_SHIFT = "consonant_shift"
    VOWEL_HARMONY = "vowel_harmony"
    MORPHEME_EMPHASIS = "morpheme_emphasis"
    PHONETIC_LOGIC = "phonetic_logic"


class PronunciationMode(str, Enum):
    """How pronunciations are rendered."""
    SYMBOLIC = "symbolic"
    PLAIN = "plain"


class MorphemeType(str, Enum):
    PREFIX = "prefix"
    ROOT = "root"
    SUFFIX = "suffix"


class Stress(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    UNSTRESSED = "unstressed"


class FrequencyClass(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AddOutcome(str, Enum):
    """Result of adding a word to the vocabulary."""
    ADDED = "added"
    SKIPPED = "skipped"


class SearchDirection(str, Enum):
    """Which side of the vocabulary a substring search scans."""
    SOURCE = "source"
    CONSTRUCTED = "constructed"
    BOTH = "both"


class BatchOutcome(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"


# ═════════════════════════════════════════════════════════════════════════════
# Decomposition
# ═════════════════════════════════════════════════════════════════════════════

class Morpheme(Record):
    """A recognized prefix, root or suffix segment of a word."""

    type: MorphemeType
    value: str
    meaning: str


class PhoneticStructure(Record):
    """Vowel/consonant skeleton with syllable and stress estimates."""

    pattern: str  # one of C, V, X per character
    syllable_count: int = Field(ge=1)
    stress_pattern: list[Stress]


class SemanticComponent(Record):
    """Weighted conceptual reading of a morpheme."""

    component: str
    semantic_weight: float = Field(ge=0.0, le=1.0)
    conceptual_category: str


class EtymologyMorpheme(Record):
    value: str
    meaning: str = "unknown"


class Etymology(Record):
    """Etymological data, from the enrichment service or fixed defaults."""

    origin: str = "unknown"
    root: str = ""
    development: str = ""
    related_words: list[str] = Field(default_factory=list)
    morphemes: list[EtymologyMorpheme] = Field(default_factory=list)
    periods: list[str] = Field(default_factory=list)

    @classmethod
    def unavailable(cls, word: str) -> "Etymology":
        """Fixed etymology used when the enrichment service cannot answer."""
        return cls(
            origin="unknown",
            root=word,
            development="etymology unavailable",
            morphemes=[EtymologyMorpheme(value=word, meaning="unknown")],
            periods=["modern"],
        )


class Definitions(Record):
    """Definitions, from the enrichment service or a placeholder."""

    primary: list[str] = Field(default_factory=list)
    secondary: list[str] = Field(default_factory=list)
    technical: list[str] = Field(default_factory=list)
    part_of_speech: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)

    @classmethod
    def unavailable(cls, word: str) -> "Definitions":
        """Fixed definitions used when the enrichment service cannot answer."""
        return cls(
            primary=[f"Definition of {word} unavailable"],
            part_of_speech=["unknown"],
        )

    @classmethod
    def placeholder(cls, word: str) -> "Definitions":
        """Definitions for words processed without an enrichment service."""
        return cls(primary=[f"Definition of {word}"])


class Decomposition(Record):
    """Decomposer output for one word."""

    word: str
    morphemes: list[Morpheme]
    phonetic_structure: PhoneticStructure
    semantic_components: list[SemanticComponent] = Field(default_factory=list)
    etymology: Optional[Etymology] = None

    def find(self, kind: MorphemeType) -> Optional[Morpheme]:
        return next((m for m in self.morphemes if m.type == kind), None)

    @property
    def root(self) -> Optional[Morpheme]:
        return self.find(MorphemeType.ROOT)

    @property
    def prefix(self) -> Optional[Morpheme]:
        return self.find(MorphemeType.PREFIX)

    @property
    def suffix(self) -> Optional[Morpheme]:
        return self.find(MorphemeType.SUFFIX)


# ═════════════════════════════════════════════════════════════════════════════
# Transformation
# ═════════════════════════════════════════════════════════════════════════════

class Transformation(Record):
    """Transformation engine output for one word."""

    source: str
    constructed: str = Field(min_length=1)
    pronunciation: str
    phonetic_structure: PhoneticStructure
    applied_rules: list[str] = Field(default_factory=list)


class WordEntry(Record):
    """Lexical entry pairing a source word with its constructed form."""

    source: str
    constructed: str = Field(min_length=1)
    pronunciation: str
    morphemes: list[Morpheme]
    phonetic_structure: PhoneticStructure
    applied_rules: list[str] = Field(default_factory=list)
    part_of_speech: str = "unknown"
    frequency_class: FrequencyClass = FrequencyClass.LOW
    definitions: Definitions = Field(default_factory=Definitions)
    etymology: Etymology = Field(default_factory=Etymology)
    created_at: datetime = Field(default_factory=utc_now)


# ═════════════════════════════════════════════════════════════════════════════
# Analysis & Reconstruction
# ═════════════════════════════════════════════════════════════════════════════

class ConsistencyReport(Record):
    """How deterministically source characters map to constructed ones."""

    vowel_transforms: dict[str, dict[str, int]] = Field(default_factory=dict)
    consonant_transforms: dict[str, dict[str, int]] = Field(default_factory=dict)
    consistency_score: float = Field(default=0.0, ge=0.0, le=100.0)
    conflict_count: int = Field(default=0, ge=0)
    conflicted_characters: list[str] = Field(default_factory=list)
    pattern_conflict: bool = False


class ReconstructionRecommendation(Record):
    should_reconstruct: bool
    current_consistency: float
    reasons: list[str] = Field(default_factory=list)
    report: ConsistencyReport


class WordChange(Record):
    """Diff for one entry whose constructed form changed."""

    source: str
    old_constructed: str
    new_constructed: str
    old_pronunciation: str
    new_pronunciation: str


class ReconstructionResult(Record):
    committed: bool
    reconstructed_words: int = 0
    changed_words: int = 0
    changes: list[WordChange] = Field(default_factory=list)
    before: float
    after: float

    @property
    def improvement(self) -> float:
        return self.after - self.before


# ═════════════════════════════════════════════════════════════════════════════
# Batch
# ═════════════════════════════════════════════════════════════════════════════

class BatchCheckpoint(Record):
    """Persisted snapshot of batch progress enabling resume."""

    current_index: int = Field(ge=0)
    total_words: int = Field(ge=0)
    processed_words: set[str] = Field(default_factory=set)
    timestamp: datetime = Field(default_factory=utc_now)
    language_name: str
    vocabulary_size: int = Field(default=0, ge=0)

    @field_serializer("processed_words")
    def _sorted_words(self, words: set[str]) -> list[str]:
        return sorted(words)
