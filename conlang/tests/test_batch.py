"""Test suite for the resumable batch orchestrator.

Covers resume from checkpoint, pause at the commit gate, graceful stop,
per-word failure isolation and periodic persistence.
"""

import asyncio
from itertools import product

from conlang.core.types import (
    BatchCheckpoint,
    BatchOutcome,
    Definitions,
    Etymology,
    Style,
)
from conlang.core.vocabulary import Vocabulary
from conlang.errors import ErrorCode, PerWordProcessingError
from conlang.observ import language_var, run_id_var
from conlang.services.decomposer import Decomposer
from conlang.services.derivation import EntryDeriver
from conlang.services.transform import TransformationEngine
from conlang.storage.batch import (
    BatchConfig,
    BatchOrchestrator,
    RunControl,
    RunState,
)


WORDS = ["".join(p) for p in product("bdgkmnprst", "aeiou", "lmnr")][:100]


def make_deriver(enrichment=None):
    decomposer = Decomposer(enrichment, timeout=1.0)
    engine = TransformationEngine(Style.PHONETIC_LOGIC)
    return EntryDeriver(decomposer, engine, enrichment, timeout=1.0)


class FailingDeriver(EntryDeriver):
    def __init__(self, failing):
        base = make_deriver()
        super().__init__(base.decomposer, base.engine)
        self.failing = set(failing)

    async def derive(self, word):
        if word in self.failing:
            raise PerWordProcessingError(word, "decomposition exploded")
        return await super().derive(word)


async def wait_for_state(orchestrator, state, timeout=5.0):
    async def _poll():
        while orchestrator.state != state:
            await asyncio.sleep(0)
    await asyncio.wait_for(_poll(), timeout=timeout)


async def test_processes_every_word(checkpoint_store, sink):
    vocab = Vocabulary("Kethri")
    orchestrator = BatchOrchestrator(
        vocab,
        make_deriver(),
        checkpoints=checkpoint_store,
        sink=sink,
        config=BatchConfig(save_interval=100),
    )

    result = await orchestrator.run(["shock", "church", "thoughtful"])

    assert result.outcome == BatchOutcome.COMPLETED
    assert result.completed
    assert result.words_processed == 3
    assert result.last_index == 2
    assert vocab.translate("shock") == "zhok"
    assert orchestrator.state == RunState.COMPLETED
    assert result.recommendation is not None
    # growth of 3 words on a 3-word vocabulary
    assert result.recommendation.should_reconstruct


async def test_resume_skips_checkpointed_words(fake_enrichment):
    enrichment = fake_enrichment
    checkpoint = BatchCheckpoint(
        current_index=2,
        total_words=4,
        processed_words={"apple", "bread"},
        language_name="Kethri",
    )
    orchestrator = BatchOrchestrator(
        Vocabulary("Kethri"),
        make_deriver(enrichment),
        config=BatchConfig(resume=checkpoint),
    )

    result = await orchestrator.run(["apple", "bread", "cheese", "dates"])

    assert enrichment.definition_calls == ["cheese", "dates"]
    assert result.words_processed == 2
    assert result.progress.resumed == 2


async def test_resume_drops_words_outside_input(checkpoint_store):
    checkpoint = BatchCheckpoint(
        current_index=2,
        total_words=2,
        processed_words={"old1", "old2", "water"},
        language_name="Kethri",
    )
    orchestrator = BatchOrchestrator(
        Vocabulary("Kethri"),
        make_deriver(),
        checkpoints=checkpoint_store,
        config=BatchConfig(resume=checkpoint, save_interval=1),
    )

    result = await orchestrator.run(["Water", "fire"])

    assert result.words_processed == 1
    assert result.progress.resumed == 1
    assert checkpoint_store.saved[-1].processed_words == {"water", "fire"}


async def test_progress_callback_sees_every_position():
    seen = []
    orchestrator = BatchOrchestrator(
        Vocabulary("Kethri"),
        make_deriver(),
        on_progress=lambda p: seen.append((p.current_index, p.processed)),
    )

    await orchestrator.run(["water", "", "fire"])

    assert seen == [(1, 1), (2, 1), (3, 2)]


async def test_log_context_bound_only_during_run():
    seen = []
    orchestrator = BatchOrchestrator(
        Vocabulary("Kethri"),
        make_deriver(),
        on_progress=lambda p: seen.append((run_id_var.get(), language_var.get())),
    )

    await orchestrator.run(["water", "fire"])

    assert seen[0][0] is not None
    assert seen[0] == seen[1]
    assert seen[0][1] == "Kethri"
    assert run_id_var.get() is None
    assert language_var.get() is None


async def test_duplicates_and_blanks_skipped():
    vocab = Vocabulary("Kethri")
    orchestrator = BatchOrchestrator(vocab, make_deriver())

    result = await orchestrator.run(["Water", "", "  ", "water", "fire"])

    assert result.words_processed == 2
    assert result.skipped == 1
    assert vocab.sources() == ["water", "fire"]


async def test_pause_during_word_blocks_commit(fake_enrichment):
    control = RunControl()
    enrichment = fake_enrichment
    enrichment.hooks[WORDS[10]] = control.pause

    vocab = Vocabulary("Kethri")
    orchestrator = BatchOrchestrator(
        vocab,
        make_deriver(enrichment),
        config=BatchConfig(pause_poll_interval=0.01, save_interval=1000),
        control=control,
    )
    task = asyncio.create_task(orchestrator.run(WORDS))

    await wait_for_state(orchestrator, RunState.PAUSED)
    assert len(vocab) == 10
    assert WORDS[10] not in vocab
    assert enrichment.definition_calls[-1] == WORDS[10]

    # still parked after several poll intervals
    await asyncio.sleep(0.05)
    assert orchestrator.state == RunState.PAUSED
    assert len(vocab) == 10

    control.resume()
    result = await asyncio.wait_for(task, timeout=10)

    assert result.outcome == BatchOutcome.COMPLETED
    assert len(vocab) == 100
    assert vocab.sources() == WORDS


async def test_pause_before_start_waits():
    control = RunControl()
    control.pause()
    vocab = Vocabulary("Kethri")
    orchestrator = BatchOrchestrator(
        vocab,
        make_deriver(),
        config=BatchConfig(pause_poll_interval=0.01),
        control=control,
    )
    task = asyncio.create_task(orchestrator.run(["water", "fire"]))

    await wait_for_state(orchestrator, RunState.PAUSED)
    assert len(vocab) == 0

    control.resume()
    result = await asyncio.wait_for(task, timeout=5)
    assert result.words_processed == 2


async def test_stop_commits_inflight_word_then_resumes(fake_enrichment, checkpoint_store, sink):
    control = RunControl()
    enrichment = fake_enrichment
    enrichment.hooks[WORDS[4]] = control.request_stop
    store = checkpoint_store
    vocab = Vocabulary("Kethri")
    words = WORDS[:10]

    orchestrator = BatchOrchestrator(
        vocab,
        make_deriver(enrichment),
        checkpoints=store,
        sink=sink,
        control=control,
    )
    result = await orchestrator.run(words)

    assert result.outcome == BatchOutcome.STOPPED
    assert result.recommendation is None
    assert result.words_processed == 5
    assert result.last_index == 4
    assert len(vocab) == 5
    assert orchestrator.state == RunState.STOPPED

    checkpoint = store.saved[-1]
    assert checkpoint.current_index == 5
    assert checkpoint.processed_words == set(words[:5])
    assert checkpoint.vocabulary_size == 5
    assert sink.flushes[-1]["size"] == 5
    assert store.discarded == 0

    resumed = BatchOrchestrator(
        vocab,
        make_deriver(enrichment),
        checkpoints=store,
        sink=sink,
        config=BatchConfig(resume=checkpoint),
    )
    result = await resumed.run(words)

    assert result.outcome == BatchOutcome.COMPLETED
    assert result.words_processed == 5
    assert vocab.sources() == words
    assert store.discarded == 1


async def test_stop_while_paused(fake_enrichment):
    control = RunControl()
    enrichment = fake_enrichment
    enrichment.hooks["fire"] = control.pause
    vocab = Vocabulary("Kethri")
    orchestrator = BatchOrchestrator(
        vocab,
        make_deriver(enrichment),
        config=BatchConfig(pause_poll_interval=0.01),
        control=control,
    )
    task = asyncio.create_task(orchestrator.run(["water", "fire", "earth"]))

    await wait_for_state(orchestrator, RunState.PAUSED)
    control.request_stop()
    result = await asyncio.wait_for(task, timeout=5)

    assert result.outcome == BatchOutcome.STOPPED
    assert vocab.sources() == ["water", "fire"]


async def test_word_failure_does_not_abort():
    vocab = Vocabulary("Kethri")
    orchestrator = BatchOrchestrator(vocab, FailingDeriver({"bad"}))

    result = await orchestrator.run(["good", "bad", "fine"])

    assert result.outcome == BatchOutcome.COMPLETED
    assert result.words_processed == 2
    assert [e.word for e in result.errors] == ["bad"]
    assert result.errors[0].code == ErrorCode.WORD_PROCESSING_FAILED
    assert "bad" not in vocab
    assert result.progress.failed == 1


async def test_unexpected_enrichment_error_keeps_word(fake_enrichment):
    fake_enrichment.error = RuntimeError("service exploded")
    vocab = Vocabulary("Kethri")
    orchestrator = BatchOrchestrator(vocab, make_deriver(fake_enrichment))

    result = await orchestrator.run(["water"])

    assert result.errors == []
    assert result.words_processed == 1
    entry = vocab.get("water")
    assert entry.etymology == Etymology.unavailable("water")
    assert entry.definitions == Definitions.unavailable("water")


async def test_periodic_checkpoint_and_flush(checkpoint_store, sink):
    orchestrator = BatchOrchestrator(
        Vocabulary("Kethri"),
        make_deriver(),
        checkpoints=checkpoint_store,
        sink=sink,
        config=BatchConfig(save_interval=2),
    )

    await orchestrator.run(["water", "fire", "earth", "air", "stone"])

    assert [c.current_index for c in checkpoint_store.saved] == [2, 4]
    assert checkpoint_store.saved[0].processed_words == {"water", "fire"}
    assert [f["size"] for f in sink.flushes] == [2, 4, 5]
    assert sink.flushes[-1]["stats"]["wordsProcessed"] == 5
    assert checkpoint_store.discarded == 1


async def test_checkpoint_failure_is_not_fatal(checkpoint_store, sink):
    checkpoint_store.fail = True
    orchestrator = BatchOrchestrator(
        Vocabulary("Kethri"),
        make_deriver(),
        checkpoints=checkpoint_store,
        sink=sink,
        config=BatchConfig(save_interval=1),
    )

    result = await orchestrator.run(["water", "fire"])

    assert result.outcome == BatchOutcome.COMPLETED
    assert result.words_processed == 2


class TestRunControl:

    def test_pause_resume(self):
        control = RunControl()
        assert not control.paused
        control.pause()
        assert control.paused
        control.resume()
        assert not control.paused

    def test_stop_releases_pause(self):
        control = RunControl()
        control.pause()
        control.request_stop()
        assert control.stop_requested
        assert not control.paused

        control.pause()
        assert not control.paused

    def test_config_overrides(self):
        config = BatchConfig.from_settings(save_interval=3)
        assert config.save_interval == 3
        assert config.resume is None
