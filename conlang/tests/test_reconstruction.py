"""Test suite for vocabulary-wide reconstruction."""

from datetime import datetime, timezone

import pytest

from conlang.core.types import Definitions, Etymology, Style
from conlang.core.vocabulary import Vocabulary
from conlang.errors import ErrorCode, ValidationError
from conlang.services.consistency import ConsistencyAnalyzer
from conlang.services.decomposer import Decomposer
from conlang.services.reconstruction import ReconstructionEngine
from conlang.services.transform import TransformationEngine


class RejectingDecomposer(Decomposer):
    def __init__(self, rejected):
        super().__init__(timeout=1.0)
        self.rejected = set(rejected)

    def decompose(self, word):
        if word in self.rejected:
            raise ValidationError("rejected", code=ErrorCode.INVALID_WORD, word=word)
        return super().decompose(word)


class TestReconstruction:

    def setup_method(self):
        self.analyzer = ConsistencyAnalyzer()
        self.engine = TransformationEngine(Style.CONSONANT_SHIFT)
        self.created = datetime(2024, 5, 1, tzinfo=timezone.utc)

    def vocabulary(self, make_entry):
        return Vocabulary("Kethri", [
            make_entry(
                "computer",
                "xyz",
                definitions=Definitions(primary=["a machine"]),
                etymology=Etymology(origin="Latin", root="computare"),
                created_at=self.created,
            ),
            make_entry("disband", "dispant"),
        ])

    def test_changes_and_carry_over(self, make_entry):
        vocab = self.vocabulary(make_entry)
        reconstruction = ReconstructionEngine(Decomposer(timeout=1.0), self.engine, self.analyzer)

        result = reconstruction.reconstruct(vocab, previous_score=65.0)

        assert result.committed
        assert result.reconstructed_words == 2
        assert result.changed_words == 1
        assert [(c.source, c.old_constructed, c.new_constructed) for c in result.changes] == [
            ("computer", "xyz", "combuder"),
        ]
        assert result.before == 65.0
        assert result.after == pytest.approx(self.analyzer.analyze(vocab).consistency_score)
        assert result.improvement == pytest.approx(result.after - 65.0)

        entry = vocab.get("computer")
        assert entry.constructed == "combuder"
        assert entry.definitions.primary == ["a machine"]
        assert entry.etymology.origin == "Latin"
        assert entry.created_at == self.created

    def test_before_measured_when_not_given(self, make_entry):
        vocab = self.vocabulary(make_entry)
        expected = self.analyzer.analyze(vocab).consistency_score

        result = ReconstructionEngine(Decomposer(timeout=1.0), self.engine).reconstruct(vocab)
        assert result.before == pytest.approx(expected)

    def test_failed_word_keeps_old_entry(self, make_entry):
        vocab = self.vocabulary(make_entry)
        reconstruction = ReconstructionEngine(RejectingDecomposer({"computer"}), self.engine)

        result = reconstruction.reconstruct(vocab)

        assert result.committed
        assert result.reconstructed_words == 1
        assert vocab.get("computer").constructed == "xyz"
        assert len(vocab) == 2

    def test_nothing_committed_when_every_word_fails(self, make_entry):
        vocab = self.vocabulary(make_entry)
        reconstruction = ReconstructionEngine(
            RejectingDecomposer({"computer", "disband"}), self.engine
        )

        result = reconstruction.reconstruct(vocab, previous_score=50.0)

        assert not result.committed
        assert result.reconstructed_words == 0
        assert result.changes == []
        assert vocab.get("computer").constructed == "xyz"
