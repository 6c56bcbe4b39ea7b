"""Test suite for morpheme decomposition and phonetic structure."""

import asyncio

from conlang.core.types import Etymology, MorphemeType, Stress
from conlang.errors import EnrichmentServiceError
from conlang.services.decomposer import (
    Decomposer,
    count_syllables,
    phonetic_structure,
    split_morphemes,
)


def values(morphemes):
    return [(m.type, m.value) for m in morphemes]


class TestSplitMorphemes:
    """Single-affix stripping with fixed priority."""

    def test_prefix_root_suffix(self):
        assert values(split_morphemes("unhappiness")) == [
            (MorphemeType.PREFIX, "un"),
            (MorphemeType.ROOT, "happi"),
            (MorphemeType.SUFFIX, "ness"),
        ]

    def test_suffix_only(self):
        assert values(split_morphemes("computer")) == [
            (MorphemeType.ROOT, "comput"),
            (MorphemeType.SUFFIX, "er"),
        ]

    def test_prefix_priority_picks_first_match(self):
        # "over" is listed before "out" and "up"
        morphemes = split_morphemes("overdoing")
        assert values(morphemes) == [
            (MorphemeType.PREFIX, "over"),
            (MorphemeType.ROOT, "do"),
            (MorphemeType.SUFFIX, "ing"),
        ]

    def test_lowercases_input(self):
        assert values(split_morphemes("REDO")) == [
            (MorphemeType.PREFIX, "re"),
            (MorphemeType.ROOT, "do"),
        ]

    def test_affix_equal_to_word_is_root(self):
        assert values(split_morphemes("re")) == [(MorphemeType.ROOT, "re")]
        assert values(split_morphemes("ing")) == [(MorphemeType.ROOT, "ing")]

    def test_always_exactly_one_root(self):
        for word in ["a", "un", "less", "unless", "preing", "x", "disable"]:
            roots = [m for m in split_morphemes(word) if m.type == MorphemeType.ROOT]
            assert len(roots) == 1
            assert roots[0].value

    def test_meanings(self):
        prefix, root, suffix = split_morphemes("unhappiness")
        assert prefix.meaning == "not, opposite of"
        assert root.meaning == "core meaning"
        assert suffix.meaning == "quality, state"


class TestPhoneticStructure:
    """Vowel/consonant skeleton, syllables and stress."""

    def test_pattern(self):
        assert phonetic_structure("water").pattern == "CVCVC"
        assert phonetic_structure("a1b").pattern == "VXC"
        assert phonetic_structure("Eye").pattern == "VCV"

    def test_syllables_count_vowel_runs(self):
        assert count_syllables("beautiful") == 3
        assert count_syllables("water") == 2
        assert count_syllables("rhythm") == 1
        assert count_syllables("") == 1

    def test_stress_patterns(self):
        assert phonetic_structure("cat").stress_pattern == [Stress.PRIMARY]
        assert phonetic_structure("water").stress_pattern == [Stress.PRIMARY, Stress.SECONDARY]
        assert phonetic_structure("banana").stress_pattern == [
            Stress.PRIMARY, Stress.SECONDARY, Stress.UNSTRESSED,
        ]
        assert phonetic_structure("abracadabra").stress_pattern == [
            Stress.PRIMARY, Stress.UNSTRESSED, Stress.UNSTRESSED,
            Stress.SECONDARY, Stress.UNSTRESSED,
        ]


class TestDecomposer:
    """Decomposer service, with and without enrichment."""

    def setup_method(self):
        self.decomposer = Decomposer()

    def test_semantic_components(self):
        result = self.decomposer.decompose("unhappiness")
        components = [
            (c.component, c.semantic_weight, c.conceptual_category)
            for c in result.semantic_components
        ]
        assert components == [
            ("un", 0.6, "negation"),
            ("happi", 1.0, "conceptual"),
            ("ness", 0.4, "quality"),
        ]

    def test_over_is_degree_before_spatial(self):
        result = self.decomposer.decompose("overdoing")
        assert result.semantic_components[0].conceptual_category == "degree"

    def test_root_accessors(self):
        result = self.decomposer.decompose("Computer")
        assert result.word == "computer"
        assert result.root.value == "comput"
        assert result.suffix.value == "er"
        assert result.prefix is None

    def test_whitespace_word_is_pure_root(self):
        result = self.decomposer.decompose(" ")
        assert values(result.morphemes) == [(MorphemeType.ROOT, " ")]
        assert result.phonetic_structure.pattern == "X"
        assert result.phonetic_structure.syllable_count == 1

    async def test_analyze_without_enrichment_has_no_etymology(self):
        result = await self.decomposer.analyze("water")
        assert result.etymology is None

    async def test_analyze_caches_enriched_result(self, fake_enrichment):
        decomposer = Decomposer(fake_enrichment)

        first = await decomposer.analyze("water")
        second = await decomposer.analyze("WATER")

        assert first.etymology.development == "attested"
        assert second is first
        assert fake_enrichment.etymology_calls == ["water"]

    async def test_enrichment_failure_uses_fallback(self):
        class Broken:
            async def get_etymology(self, word):
                raise EnrichmentServiceError("generate", "connection refused")

        result = await Decomposer(Broken()).analyze("water")
        assert result.etymology == Etymology.unavailable("water")
        assert result.etymology.periods == ["modern"]
        assert result.etymology.root == "water"

    async def test_unexpected_enrichment_error_uses_fallback(self):
        class Exploding:
            async def get_etymology(self, word):
                raise RuntimeError("service exploded")

        result = await Decomposer(Exploding()).analyze("water")
        assert result.etymology == Etymology.unavailable("water")

    async def test_enrichment_timeout_uses_fallback(self):
        class Slow:
            async def get_etymology(self, word):
                await asyncio.sleep(1)

        result = await Decomposer(Slow(), timeout=0.01).analyze("water")
        assert result.etymology.origin == "unknown"
        assert result.etymology.morphemes[0].value == "water"
