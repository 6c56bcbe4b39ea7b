"""Vocabulary-wide reconstruction.

Re-derives every entry from a clean slate with the style in force, keeps the
enrichment data of the old entries, and commits the rebuilt vocabulary only
when at least one word made it through.
"""

from typing import Optional

from conlang.core.types import ReconstructionResult, WordChange, WordEntry
from conlang.core.vocabulary import Vocabulary
from conlang.errors import ConlangError, PerWordProcessingError
from conlang.observ import get_logger, timed
from conlang.services.consistency import ConsistencyAnalyzer
from conlang.services.decomposer import Decomposer
from conlang.services.transform import TransformationEngine

logger = get_logger(__name__)


class ReconstructionEngine:
    """Single-pass re-derivation of a whole vocabulary."""

    def __init__(
        self,
        decomposer: Decomposer,
        engine: TransformationEngine,
        analyzer: Optional[ConsistencyAnalyzer] = None,
    ):
        self._decomposer = decomposer
        self._engine = engine
        self._analyzer = analyzer or ConsistencyAnalyzer()

    def _rederive(self, old: WordEntry) -> WordEntry:
        try:
            decomposition = self._decomposer.decompose(old.source)
            return self._engine.build_entry(
                decomposition,
                definitions=old.definitions,
                etymology=old.etymology,
                created_at=old.created_at,
            )
        except ConlangError as e:
            raise PerWordProcessingError(old.source, e.message) from e
        except ValueError as e:
            raise PerWordProcessingError(old.source, str(e)) from e

    @timed(logger)
    def reconstruct(
        self,
        vocabulary: Vocabulary,
        previous_score: Optional[float] = None,
    ) -> ReconstructionResult:
        """Rebuild vocabulary in place and report what changed.

        Args:
            vocabulary: Vocabulary to rebuild
            previous_score: Score measured before reconstruction; computed
                fresh when omitted

        Returns:
            ReconstructionResult with per-word diffs and before/after scores
        """
        before = (
            previous_score
            if previous_score is not None
            else self._analyzer.analyze(vocabulary).consistency_score
        )

        logger.info(
            "reconstruction_started",
            vocabulary=vocabulary.name,
            words=len(vocabulary),
            style=self._engine.style.value,
            before=round(before, 2),
        )

        rebuilt: list[WordEntry] = []
        changes: list[WordChange] = []
        reprocessed = 0

        for old in vocabulary.entries():
            try:
                new = self._rederive(old)
            except PerWordProcessingError as e:
                logger.warning("reconstruction_word_failed", word=old.source, error=e.message)
                rebuilt.append(old)
                continue

            reprocessed += 1
            rebuilt.append(new)
            if new.constructed != old.constructed:
                changes.append(
                    WordChange(
                        source=old.source,
                        old_constructed=old.constructed,
                        new_constructed=new.constructed,
                        old_pronunciation=old.pronunciation,
                        new_pronunciation=new.pronunciation,
                    )
                )

        committed = reprocessed > 0
        if committed:
            vocabulary.replace_all(rebuilt)

        after = self._analyzer.analyze(vocabulary).consistency_score
        result = ReconstructionResult(
            committed=committed,
            reconstructed_words=reprocessed,
            changed_words=len(changes),
            changes=changes,
            before=before,
            after=after,
        )

        logger.info(
            "reconstruction_completed",
            vocabulary=vocabulary.name,
            committed=committed,
            reconstructed=reprocessed,
            changed=len(changes),
            before=round(before, 2),
            after=round(after, 2),
            improvement=round(result.improvement, 2),
        )
        return result
