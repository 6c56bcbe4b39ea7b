"""Rule-based transformation engine.

Turns a source word plus its decomposition into a constructed word using one
of five style rule sets, then renders a pronunciation and records which
character positions changed.

Randomized rules (default vowel variation, vowel harmony) draw from a
per-word generator seeded from (seed, word), so a fixed seed gives the same
output for a word regardless of processing order. ``seed=None`` requests
fresh variety on every call.
"""

import random
import re
from datetime import datetime
from typing import Callable, Optional

from conlang.core.types import (
    Decomposition,
    Definitions,
    Etymology,
    FrequencyClass,
    PronunciationMode,
    Style,
    Transformation,
    WordEntry,
)
from conlang.errors import InvalidStyleError
from conlang.observ import get_logger
from conlang.services.pronunciation import render as render_pronunciation
from conlang.services.decomposer import phonetic_structure

logger = get_logger(__name__)


VOWELS = frozenset("aeiou")

MILD_SHIFTS = {"c": "k", "k": "c", "f": "ph"}
MILD_DIGRAPHS = {"ph": "f"}

CONSONANT_SHIFTS = {
    "b": "p", "p": "b",
    "d": "t", "t": "d",
    "g": "k", "k": "g",
    "v": "f", "f": "v",
    "z": "s", "s": "z",
    "j": "y",
    "w": "v",
}

FRONT_VOWELS = ("e", "i")
BACK_VOWELS = ("a", "o", "u")

# Applied in this order
CLUSTER_TRANSFORMS = (
    ("th", "th"),
    ("ch", "kh"),
    ("sh", "zh"),
    ("ph", "f"),
    ("gh", "g"),
    ("ck", "k"),
    ("ng", "ng"),
)

MILD_SHIFT_THRESHOLD = 0.3
VOWEL_VARIATION_THRESHOLD = 0.6
NEUTRAL_WEIGHT = 0.5

SUFFIX_PARTS_OF_SPEECH = {
    "ing": "verb/noun",
    "ed": "verb",
    "er": "noun",
    "est": "adjective",
    "ly": "adverb",
    "tion": "noun",
    "ness": "noun",
    "ful": "adjective",
    "less": "adjective",
}

COMMON_WORDS = frozenset({
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "i",
    "it", "for", "not", "on", "with", "he", "as", "you", "do", "at",
})

_QUAD_RUN = re.compile(r"(.)\1{3,}")
_TRIPLE_RUN = re.compile(r"(.)\1{2,}")
_LEADING_RUN = re.compile(r"^(.)\1+")
_TRAILING_RUN = re.compile(r"(.)\1+$")

Strategy = Callable[[str, Decomposition, random.Random], str]


# ═════════════════════════════════════════════════════════════════════════════
# Post-processing & diagnostics
# ═════════════════════════════════════════════════════════════════════════════

def parse_style(style: Style | str) -> Style:
    try:
        return Style(style)
    except ValueError:
        raise InvalidStyleError(str(style)) from None


def collapse_edges(word: str) -> str:
    """Collapse a repeated run at either end of the word to one character."""
    word = _LEADING_RUN.sub(r"\1", word)
    return _TRAILING_RUN.sub(r"\1", word)


def post_process(word: str, source: str) -> str:
    """Common phonetic consistency pass; never returns an empty string."""
    result = _QUAD_RUN.sub(r"\1\1", word)
    result = collapse_edges(result)
    return result or source.lower()


def applied_rules(source: str, constructed: str) -> list[str]:
    """Diagnostics describing how the constructed word differs from source."""
    rules = []
    if len(source) != len(constructed):
        rules.append("length_modification")

    for i, (a, b) in enumerate(zip(source, constructed)):
        if a != b:
            rules.append(f"char_{i}_{a}_to_{b}")
    return rules


def part_of_speech(
    decomposition: Decomposition,
    definitions: Optional[Definitions] = None,
) -> str:
    """Part of speech from the suffix, else the enrichment POS list."""
    suffix = decomposition.suffix
    if suffix is not None and suffix.value in SUFFIX_PARTS_OF_SPEECH:
        return SUFFIX_PARTS_OF_SPEECH[suffix.value]

    if definitions is not None and definitions.part_of_speech:
        return "/".join(definitions.part_of_speech)
    return "unknown"


def frequency_class(word: str) -> FrequencyClass:
    word = word.lower()
    if word in COMMON_WORDS:
        return FrequencyClass.HIGH
    if len(word) <= 4:
        return FrequencyClass.MEDIUM
    return FrequencyClass.LOW


def root_span(word: str, decomposition: Decomposition) -> tuple[int, int]:
    """Index range of the root in word, offset by the stripped prefix.

    The whole word when the root does not sit at that offset.
    """
    root = decomposition.root
    if root is None or not root.value:
        return 0, len(word)

    prefix = decomposition.prefix
    start = len(prefix.value) if prefix else 0
    end = start + len(root.value)
    if word[start:end] != root.value:
        return 0, len(word)
    return start, end


# ═════════════════════════════════════════════════════════════════════════════
# Style strategies
# ═════════════════════════════════════════════════════════════════════════════

def mild_shift(word: str) -> str:
    """Paired c/k and f/ph substitution, reading "ph" as one unit."""
    out = []
    i = 0
    while i < len(word):
        pair = word[i:i + 2]
        if pair in MILD_DIGRAPHS:
            out.append(MILD_DIGRAPHS[pair])
            i += 2
            continue
        out.append(MILD_SHIFTS.get(word[i], word[i]))
        i += 1
    return "".join(out)


def vowel_variation(word: str, rng: random.Random) -> str:
    return "".join(
        rng.choice((char, char * 2)) if char in VOWELS else char
        for char in word
    )


def average_weight(decomposition: Decomposition) -> float:
    components = decomposition.semantic_components
    if not components:
        return NEUTRAL_WEIGHT
    return sum(c.semantic_weight for c in components) / len(components)


def default_style(word: str, decomposition: Decomposition, rng: random.Random) -> str:
    weight = average_weight(decomposition)
    result = word
    if weight > MILD_SHIFT_THRESHOLD:
        result = mild_shift(result)
    if weight > VOWEL_VARIATION_THRESHOLD:
        result = vowel_variation(result, rng)
    return result


def consonant_shift(word: str, decomposition: Decomposition, rng: random.Random) -> str:
    start, end = root_span(word, decomposition)
    return "".join(
        CONSONANT_SHIFTS.get(char, char) if start <= i < end else char
        for i, char in enumerate(word)
    )


def vowel_harmony(word: str, decomposition: Decomposition, rng: random.Random) -> str:
    front = sum(1 for char in word if char in FRONT_VOWELS)
    back = sum(1 for char in word if char in BACK_VOWELS)
    dominant, recessive = (
        (FRONT_VOWELS, BACK_VOWELS) if front > back else (BACK_VOWELS, FRONT_VOWELS)
    )
    return "".join(
        rng.choice(dominant) if char in recessive else char
        for char in word
    )


def morpheme_emphasis(word: str, decomposition: Decomposition, rng: random.Random) -> str:
    root = decomposition.root
    if root is None or len(root.value) <= 3:
        return word

    start, end = root_span(word, decomposition)
    value = word[start:end]
    mid = len(value) // 2
    emphasized = value[:mid] + value[mid] + value[mid:]
    return word[:start] + emphasized + word[end:]


def phonetic_logic(word: str, decomposition: Decomposition, rng: random.Random) -> str:
    result = word
    for cluster, replacement in CLUSTER_TRANSFORMS:
        result = result.replace(cluster, replacement)
    result = _TRIPLE_RUN.sub(r"\1\1", result)
    return collapse_edges(result)


STRATEGIES: dict[Style, Strategy] = {
    Style.DEFAULT: default_style,
    Style.CONSONANT_SHIFT: consonant_shift,
    Style.VOWEL_HARMONY: vowel_harmony,
    Style.MORPHEME_EMPHASIS: morpheme_emphasis,
    Style.PHONETIC_LOGIC: phonetic_logic,
}


# ═════════════════════════════════════════════════════════════════════════════
# Engine
# ═════════════════════════════════════════════════════════════════════════════

class TransformationEngine:
    """Applies one style's rules to decomposed words.

    Args:
        style: Rule set, fixed for the lifetime of the engine
        seed: Base seed for randomized rules; None for unseeded variety
        mode: Pronunciation rendering
    """

    def __init__(
        self,
        style: Style | str = Style.DEFAULT,
        seed: Optional[int] = 0,
        mode: PronunciationMode = PronunciationMode.SYMBOLIC,
    ):
        self.style = parse_style(style)

        self.seed = seed
        self.mode = mode
        self._strategy = STRATEGIES[self.style]

        logger.debug(
            "transformation_engine_initialized",
            style=self.style.value,
            seed=seed,
            mode=mode.value,
        )

    def _rng_for(self, word: str) -> random.Random:
        if self.seed is None:
            return random.Random()
        return random.Random(f"{self.seed}:{word}")

    def transform(self, source: str, decomposition: Decomposition) -> Transformation:
        """Derive constructed spelling, pronunciation and diagnostics."""
        word = source.strip().lower()
        shifted = self._strategy(word, decomposition, self._rng_for(word))
        constructed = post_process(shifted, word)

        return Transformation(
            source=word,
            constructed=constructed,
            pronunciation=render_pronunciation(constructed, self.mode),
            phonetic_structure=phonetic_structure(constructed),
            applied_rules=applied_rules(word, constructed),
        )

    def build_entry(
        self,
        decomposition: Decomposition,
        definitions: Optional[Definitions] = None,
        etymology: Optional[Etymology] = None,
        created_at: Optional[datetime] = None,
    ) -> WordEntry:
        """Transform a decomposed word into a complete vocabulary entry."""
        result = self.transform(decomposition.word, decomposition)
        fields = dict(
            source=result.source,
            constructed=result.constructed,
            pronunciation=result.pronunciation,
            morphemes=decomposition.morphemes,
            phonetic_structure=result.phonetic_structure,
            applied_rules=result.applied_rules,
            part_of_speech=part_of_speech(decomposition, definitions),
            frequency_class=frequency_class(result.source),
            definitions=definitions or Definitions(),
            etymology=etymology or decomposition.etymology or Etymology(),
        )
        if created_at is not None:
            fields["created_at"] = created_at
        return WordEntry(**fields)
