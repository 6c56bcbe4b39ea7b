"""Morpheme decomposition and phonetic structure analysis.

Single-affix stripping with fixed priority lists: at most one prefix, at most
one suffix, and exactly one root made of whatever remains. This is a known
limitation ("unhappiness" yields un + happi + ness, "disestablishment" only
loses "dis" and "ment").
"""

import asyncio
from typing import Optional

from conlang.config import get_settings
from conlang.core.contracts import IEnrichmentClient
from conlang.core.types import (
    Decomposition,
    Etymology,
    Morpheme,
    MorphemeType,
    PhoneticStructure,
    SemanticComponent,
    Stress,
)
from conlang.errors import EnrichmentServiceError
from conlang.observ import get_logger

logger = get_logger(__name__)


VOWELS = frozenset("aeiou")
CONSONANTS = frozenset("bcdfghjklmnpqrstvwxyz")

# Priority order matters: the first matching entry wins.
PREFIX_MEANINGS = {
    "un": "not, opposite of",
    "re": "again, back",
    "pre": "before",
    "dis": "not, opposite",
    "mis": "wrongly, badly",
    "over": "too much, above",
    "under": "too little, below",
    "out": "beyond, more than",
    "up": "upward, increase",
    "anti": "against",
    "de": "remove, reverse",
    "non": "not",
}

SUFFIX_MEANINGS = {
    "ing": "action, process",
    "ed": "past action, completed",
    "er": "one who does",
    "est": "most, superlative",
    "ly": "in the manner of",
    "tion": "action, state",
    "sion": "action, state",
    "ness": "quality, state",
    "ment": "action, result",
    "ful": "full of",
    "less": "without",
    "able": "capable of",
    "ible": "capable of",
}

ROOT_MEANING = "core meaning"

SEMANTIC_WEIGHTS = {
    MorphemeType.ROOT: 1.0,
    MorphemeType.PREFIX: 0.6,
    MorphemeType.SUFFIX: 0.4,
}
DEFAULT_SEMANTIC_WEIGHT = 0.3

# (category, prefixes, suffixes); first match wins
SEMANTIC_CATEGORIES = (
    ("action", (), ("ing", "tion", "sion", "ment")),
    ("quality", (), ("ness", "ful", "less")),
    ("agent", (), ("er", "or")),
    ("degree", ("over", "under"), ("est", "er")),
    ("negation", ("un", "dis", "non"), ("less",)),
    ("temporal", ("re", "pre"), ("ed",)),
    ("spatial", ("over", "under", "out", "up"), ()),
)
DEFAULT_CATEGORY = "conceptual"


# ═════════════════════════════════════════════════════════════════════════════
# Pure analysis functions
# ═════════════════════════════════════════════════════════════════════════════

def split_morphemes(word: str) -> list[Morpheme]:
    """Strip at most one prefix and one suffix; the remainder is the root.

    An affix is only stripped when something is left over, so the result
    always holds exactly one root.
    """
    remaining = word.lower()
    prefix: Optional[Morpheme] = None
    suffix: Optional[Morpheme] = None

    for value, meaning in PREFIX_MEANINGS.items():
        if remaining.startswith(value) and len(remaining) > len(value):
            prefix = Morpheme(type=MorphemeType.PREFIX, value=value, meaning=meaning)
            remaining = remaining[len(value):]
            break

    for value, meaning in SUFFIX_MEANINGS.items():
        if remaining.endswith(value) and len(remaining) > len(value):
            suffix = Morpheme(type=MorphemeType.SUFFIX, value=value, meaning=meaning)
            remaining = remaining[:-len(value)]
            break

    root = Morpheme(type=MorphemeType.ROOT, value=remaining, meaning=ROOT_MEANING)
    return [m for m in (prefix, root, suffix) if m is not None]


def count_syllables(word: str) -> int:
    """Number of maximal vowel runs, at least 1."""
    runs = 0
    in_vowel = False
    for char in word.lower():
        if char in VOWELS:
            if not in_vowel:
                runs += 1
            in_vowel = True
        else:
            in_vowel = False
    return max(runs, 1)


def stress_pattern(syllables: int) -> list[Stress]:
    if syllables <= 1:
        return [Stress.PRIMARY]
    if syllables == 2:
        return [Stress.PRIMARY, Stress.SECONDARY]

    pattern = [Stress.UNSTRESSED] * syllables
    pattern[0] = Stress.PRIMARY
    pattern[-2] = Stress.SECONDARY
    return pattern


def phonetic_structure(word: str) -> PhoneticStructure:
    """Classify every character as V, C or X and estimate syllables and stress."""
    pattern = []
    for char in word.lower():
        if char in VOWELS:
            pattern.append("V")
        elif char in CONSONANTS:
            pattern.append("C")
        else:
            pattern.append("X")

    syllables = count_syllables(word)
    return PhoneticStructure(
        pattern="".join(pattern),
        syllable_count=syllables,
        stress_pattern=stress_pattern(syllables),
    )


def categorize(morpheme: Morpheme) -> str:
    for category, prefixes, suffixes in SEMANTIC_CATEGORIES:
        if morpheme.type == MorphemeType.PREFIX and morpheme.value in prefixes:
            return category
        if morpheme.type == MorphemeType.SUFFIX and morpheme.value in suffixes:
            return category
    return DEFAULT_CATEGORY


def semantic_components(morphemes: list[Morpheme]) -> list[SemanticComponent]:
    return [
        SemanticComponent(
            component=m.value,
            semantic_weight=SEMANTIC_WEIGHTS.get(m.type, DEFAULT_SEMANTIC_WEIGHT),
            conceptual_category=categorize(m),
        )
        for m in morphemes
    ]



# ═════════════════════════════════════════════════════════════════════════════
# Decomposer service
# ═════════════════════════════════════════════════════════════════════════════

class Decomposer:
    """Splits words into morphemes, optionally enriched with etymology.

    Enriched analyses are cached per word for the lifetime of the instance.
    """

    def __init__(
        self,
        enrichment: Optional[IEnrichmentClient] = None,
        timeout: Optional[float] = None,
    ):
        self._enrichment = enrichment
        self._timeout = timeout if timeout is not None else get_settings().enrichment_timeout
        self._cache: dict[str, Decomposition] = {}

    @property
    def enriched(self) -> bool:
        return self._enrichment is not None

    def decompose(self, word: str) -> Decomposition:
        """Synchronous decomposition without etymology.

        Whitespace-only input comes back as a single root holding the raw text.
        """
        normalized = word.strip().lower()
        if not normalized:
            root = Morpheme(type=MorphemeType.ROOT, value=word, meaning=ROOT_MEANING)
            return Decomposition(
                word=word,
                morphemes=[root],
                phonetic_structure=phonetic_structure(word),
                semantic_components=semantic_components([root]),
            )

        morphemes = split_morphemes(normalized)
        return Decomposition(
            word=normalized,
            morphemes=morphemes,
            phonetic_structure=phonetic_structure(normalized),
            semantic_components=semantic_components(morphemes),
        )

    async def analyze(self, word: str) -> Decomposition:
        """Decompose and attach etymology from the enrichment service."""
        decomposition = self.decompose(word)
        if self._enrichment is None:
            return decomposition

        cached = self._cache.get(decomposition.word)
        if cached is not None:
            return cached

        etymology = await self._fetch_etymology(decomposition.word)
        analysis = decomposition.model_copy(update={"etymology": etymology})
        self._cache[decomposition.word] = analysis
        return analysis

    async def _fetch_etymology(self, word: str) -> Etymology:
        try:
            return await asyncio.wait_for(
                self._enrichment.get_etymology(word),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("etymology_timeout", word=word, timeout=self._timeout)
        except EnrichmentServiceError as e:
            logger.warning("etymology_unavailable", word=word, error=e.message)
        except Exception as e:
            logger.warning(
                "etymology_failed",
                word=word,
                error=str(e),
                error_type=type(e).__name__,
            )
        return Etymology.unavailable(word)

    def clear_cache(self) -> None:
        self._cache.clear()
