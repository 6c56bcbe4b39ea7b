"""Consistency analysis of character-level mappings.

Measures how deterministically each source character maps to a constructed
character across the whole vocabulary, and recommends a reconstruction pass
when the mappings have drifted.
"""

from collections import Counter

from conlang.core.types import ConsistencyReport, ReconstructionRecommendation
from conlang.core.vocabulary import Vocabulary
from conlang.observ import get_logger

logger = get_logger(__name__)


VOWELS = frozenset("aeiou")
CONSONANTS = frozenset("bcdfghjklmnpqrstvwxyz")

MAX_VOWEL_TARGETS = 3
MAX_CONSONANT_TARGETS = 2
PATTERN_CONFLICT_THRESHOLD = 3

LOW_CONSISTENCY_THRESHOLD = 70.0
GROWTH_RATIO_THRESHOLD = 0.10
LARGE_VOCABULARY_THRESHOLD = 50


class ConsistencyAnalyzer:
    """Scores a vocabulary and decides whether it should be reconstructed."""

    def analyze(self, vocabulary: Vocabulary) -> ConsistencyReport:
        vowel_map: dict[str, Counter] = {}
        consonant_map: dict[str, Counter] = {}

        for entry in vocabulary:
            source = entry.source.lower()
            constructed = entry.constructed
            for src, dst in zip(source, constructed):
                if src in VOWELS:
                    vowel_map.setdefault(src, Counter())[dst] += 1
                elif src in CONSONANTS:
                    consonant_map.setdefault(src, Counter())[dst] += 1

        ratios = [
            max(targets.values()) / sum(targets.values()) * 100.0
            for targets in (*vowel_map.values(), *consonant_map.values())
        ]
        score = sum(ratios) / len(ratios) if ratios else 0.0

        conflicted = sorted(
            [c for c, t in vowel_map.items() if len(t) > MAX_VOWEL_TARGETS]
            + [c for c, t in consonant_map.items() if len(t) > MAX_CONSONANT_TARGETS]
        )

        report = ConsistencyReport(
            vowel_transforms={k: dict(v) for k, v in vowel_map.items()},
            consonant_transforms={k: dict(v) for k, v in consonant_map.items()},
            consistency_score=min(max(score, 0.0), 100.0),
            conflict_count=len(conflicted),
            conflicted_characters=conflicted,
            pattern_conflict=len(conflicted) > PATTERN_CONFLICT_THRESHOLD,
        )

        logger.debug(
            "consistency_analyzed",
            vocabulary_size=len(vocabulary),
            score=round(report.consistency_score, 2),
            conflicts=report.conflict_count,
        )
        return report

    def recommend(
        self,
        vocabulary: Vocabulary,
        new_word_count: int = 0,
    ) -> ReconstructionRecommendation:
        """Decide whether the vocabulary should be reconstructed.

        Any one of the following triggers a recommendation:
        - consistency score below 70
        - new words exceed 10% of the vocabulary
        - vocabulary larger than 50 entries
        - more than three conflicted characters
        """
        report = self.analyze(vocabulary)
        size = len(vocabulary)
        reasons = []

        if report.consistency_score < LOW_CONSISTENCY_THRESHOLD:
            reasons.append(
                f"Low phonetic consistency ({report.consistency_score:.1f}%)"
            )
        if size and new_word_count > size * GROWTH_RATIO_THRESHOLD:
            reasons.append(
                f"Significant vocabulary growth ({new_word_count} new words)"
            )
        if size > LARGE_VOCABULARY_THRESHOLD:
            reasons.append(f"Large vocabulary size ({size} words)")
        if report.pattern_conflict:
            reasons.append(
                f"Conflicting phonetic patterns ({report.conflict_count} characters)"
            )

        recommendation = ReconstructionRecommendation(
            should_reconstruct=bool(reasons),
            current_consistency=report.consistency_score,
            reasons=reasons,
            report=report,
        )

        logger.info(
            "reconstruction_recommendation",
            should_reconstruct=recommendation.should_reconstruct,
            consistency=round(report.consistency_score, 2),
            reasons=reasons,
        )
        return recommendation
