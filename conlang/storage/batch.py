"""Batch processing of large word lists.

Processes words strictly one at a time, skips duplicates and words already
recorded in a resume checkpoint, persists a checkpoint and flushes the
dictionaries every ``save_interval`` committed words, and honours
cooperative pause/stop requests through a RunControl token.

Pause and stop are observed at word boundaries only:
- before a word starts
- at the commit gate, after the in-flight word has been derived and before
  it is inserted into the vocabulary

A pause raised while word N is being derived therefore leaves exactly N-1
words committed while paused; word N is committed right after resume.
A stop lets the in-flight word commit, then persists a checkpoint, flushes
the dictionaries and ends the run as stopped.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence
from uuid import uuid4

from conlang.config import get_settings
from conlang.core.contracts import ICheckpointStore, IDictionarySink
from conlang.core.types import (
    AddOutcome,
    BatchCheckpoint,
    BatchOutcome,
    ReconstructionRecommendation,
    utc_now,
)
from conlang.core.vocabulary import Vocabulary
from conlang.errors import (
    CheckpointIOError,
    DictionaryIOError,
    ErrorDetail,
    PerWordProcessingError,
)
from conlang.observ import (
    clear_context,
    get_logger,
    log_batch_progress,
    set_language,
    set_run_id,
)
from conlang.services.consistency import ConsistencyAnalyzer
from conlang.services.derivation import EntryDeriver

logger = get_logger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOP_REQUESTED = "stop_requested"
    COMPLETED = "completed"
    STOPPED = "stopped"


class RunControl:
    """Cooperative pause/stop token shared between a run and its controller.

    Safe to call from signal handlers installed with
    ``loop.add_signal_handler``.
    """

    def __init__(self):
        self._running = asyncio.Event()
        self._running.set()
        self._stop = asyncio.Event()

    def pause(self) -> None:
        if not self._stop.is_set():
            self._running.clear()

    def resume(self) -> None:
        self._running.set()

    def request_stop(self) -> None:
        self._stop.set()
        self._running.set()

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    async def wait_until_resumed(self, poll_interval: float) -> None:
        """Block while paused, checking the token every poll_interval seconds."""
        while self.paused and not self.stop_requested:
            try:
                await asyncio.wait_for(self._running.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                continue


@dataclass
class BatchConfig:
    """Configuration for batch processing."""

    batch_size: int = 10  # progress is logged every batch_size words
    save_interval: int = 25  # checkpoint + flush every N committed words
    pausable: bool = True
    pause_poll_interval: float = 2.0
    resume: Optional[BatchCheckpoint] = None

    @classmethod
    def from_settings(cls, **overrides) -> "BatchConfig":
        settings = get_settings()
        values = dict(
            batch_size=settings.batch_size,
            save_interval=settings.save_interval,
            pause_poll_interval=settings.pause_poll_interval,
        )
        values.update(overrides)
        return cls(**values)


@dataclass
class BatchProgress:
    """Tracks processing progress."""

    total_words: int = 0
    processed: int = 0
    skipped: int = 0
    resumed: int = 0
    failed: int = 0
    current_index: int = 0
    start_time: datetime = field(default_factory=utc_now)

    @property
    def percent_complete(self) -> float:
        if self.total_words == 0:
            return 0.0
        return 100.0 * self.current_index / self.total_words

    @property
    def elapsed_seconds(self) -> float:
        return (utc_now() - self.start_time).total_seconds()

    @property
    def words_per_second(self) -> float:
        if self.elapsed_seconds == 0:
            return 0.0
        return self.processed / self.elapsed_seconds

    def as_stats(self) -> dict:
        return {
            "wordsProcessed": self.processed,
            "skipped": self.skipped,
            "errors": self.failed,
            "totalWords": self.total_words,
        }


@dataclass
class BatchResult:
    outcome: BatchOutcome
    words_processed: int
    last_index: int
    skipped: int = 0
    errors: list[ErrorDetail] = field(default_factory=list)
    recommendation: Optional[ReconstructionRecommendation] = None
    progress: Optional[BatchProgress] = None

    @property
    def completed(self) -> bool:
        return self.outcome == BatchOutcome.COMPLETED


class BatchOrchestrator:
    """Drives derivation over an ordered word list into one vocabulary.

    The orchestrator is the only mutator of the vocabulary for the duration
    of ``run``. ``on_progress`` is called with the running BatchProgress
    after every word position.
    """

    def __init__(
        self,
        vocabulary: Vocabulary,
        deriver: EntryDeriver,
        checkpoints: Optional[ICheckpointStore] = None,
        sink: Optional[IDictionarySink] = None,
        analyzer: Optional[ConsistencyAnalyzer] = None,
        config: Optional[BatchConfig] = None,
        control: Optional[RunControl] = None,
        on_progress: Optional[Callable[[BatchProgress], None]] = None,
    ):
        self.vocabulary = vocabulary
        self.deriver = deriver
        self.checkpoints = checkpoints
        self.sink = sink
        self.analyzer = analyzer or ConsistencyAnalyzer()
        self.config = config or BatchConfig()
        self.control = control or RunControl()
        self.on_progress = on_progress
        self.state = RunState.IDLE

        self._processed_words: set[str] = set()
        self._errors: list[ErrorDetail] = []

    # ─────────────────────────────────────────────────────────────────────────
    # Control
    # ─────────────────────────────────────────────────────────────────────────

    async def _gate(self, where: str, index: int, word: str = "") -> None:
        """Word boundary: block while paused, note a pending stop."""
        if self.control.stop_requested:
            self.state = RunState.STOP_REQUESTED
            return
        if not (self.config.pausable and self.control.paused):
            return

        self.state = RunState.PAUSED
        logger.info(
            "batch_paused",
            at=where,
            index=index,
            word=word or None,
            vocabulary_size=len(self.vocabulary),
        )
        await self.control.wait_until_resumed(self.config.pause_poll_interval)

        if self.control.stop_requested:
            self.state = RunState.STOP_REQUESTED
        else:
            self.state = RunState.RUNNING
            logger.info("batch_resumed", index=index)

    # ─────────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────────

    def _checkpoint(self, next_index: int, total: int) -> BatchCheckpoint:
        return BatchCheckpoint(
            current_index=next_index,
            total_words=total,
            processed_words=set(self._processed_words),
            language_name=self.vocabulary.name,
            vocabulary_size=len(self.vocabulary),
        )

    async def _save_checkpoint(self, next_index: int, total: int) -> None:
        if self.checkpoints is None:
            return
        try:
            await self.checkpoints.save(self._checkpoint(next_index, total))
        except CheckpointIOError as e:
            logger.warning("checkpoint_save_failed", error=e.message)

    async def _flush(self, progress: BatchProgress) -> None:
        if self.sink is None:
            return
        try:
            await self.sink.flush(self.vocabulary, progress.as_stats())
        except DictionaryIOError as e:
            logger.warning("dictionary_flush_failed", error=e.message)

    async def _discard_checkpoint(self) -> None:
        if self.checkpoints is None:
            return
        try:
            await self.checkpoints.discard()
        except CheckpointIOError as e:
            logger.warning("checkpoint_discard_failed", error=e.message)

    # ─────────────────────────────────────────────────────────────────────────
    # Run
    # ─────────────────────────────────────────────────────────────────────────

    async def run(self, words: Sequence[str]) -> BatchResult:
        """Process words in order.

        The run id and language stay bound to log entries for the duration of
        the run and are cleared when it returns or raises.

        Args:
            words: Ordered source words; blanks are ignored

        Returns:
            BatchResult, completed or stopped
        """
        set_run_id(uuid4().hex[:12])
        set_language(self.vocabulary.name)
        try:
            return await self._run(list(words))
        finally:
            clear_context()

    async def _run(self, words: list) -> BatchResult:
        total = len(words)
        resume = self.config.resume
        self._processed_words = set()
        if resume:
            normalized = {w.strip().lower() for w in words if isinstance(w, str)}
            self._processed_words = resume.processed_words & normalized
        self._errors = []

        progress = BatchProgress(total_words=total)
        save_interval = max(self.config.save_interval, 1)
        batch_size = max(self.config.batch_size, 1)
        last_index = -1
        stopped = False

        self.state = RunState.RUNNING
        logger.info(
            "batch_started",
            total=total,
            resumed_words=len(self._processed_words),
            vocabulary_size=len(self.vocabulary),
            save_interval=save_interval,
        )

        for index, raw in enumerate(words):
            await self._gate("word_start", index)
            if self.state == RunState.STOP_REQUESTED:
                stopped = True
                break

            last_index = index
            progress.current_index = index + 1
            word = raw.strip().lower() if isinstance(raw, str) else ""

            if word:
                await self._process_word(index, word, progress, save_interval, total)

            if self.on_progress is not None:
                self.on_progress(progress)

            if (index + 1) % batch_size == 0:
                log_batch_progress(
                    logger,
                    processed=progress.current_index,
                    total=total,
                    skipped=progress.skipped,
                    failed=progress.failed,
                    committed=progress.processed,
                )

            if self.control.stop_requested:
                self.state = RunState.STOP_REQUESTED
                stopped = True
                break

        if stopped:
            return await self._finish_stopped(progress, last_index, total)
        return await self._finish_completed(progress, last_index)

    async def _process_word(
        self,
        index: int,
        word: str,
        progress: BatchProgress,
        save_interval: int,
        total: int,
    ) -> None:
        if word in self._processed_words:
            progress.resumed += 1
            return

        if word in self.vocabulary:
            logger.warning("duplicate_word_skipped", word=word, index=index)
            progress.skipped += 1
            self._processed_words.add(word)
            return

        try:
            entry = await self.deriver.derive(word)
        except PerWordProcessingError as e:
            progress.failed += 1
            self._errors.append(e.to_detail())
            logger.error("word_failed", word=word, index=index, error=e.message)
            return

        await self._gate("commit", index, word)

        added = self.vocabulary.add(entry) == AddOutcome.ADDED
        self._processed_words.add(word)

        if not added:
            logger.warning("duplicate_word_skipped", word=word, index=index)
            progress.skipped += 1
            return

        progress.processed += 1
        logger.debug(
            "word_committed",
            word=word,
            constructed=entry.constructed,
            index=index,
        )
        if progress.processed % save_interval == 0:
            await self._save_checkpoint(index + 1, total)
            await self._flush(progress)

    async def _finish_stopped(
        self,
        progress: BatchProgress,
        last_index: int,
        total: int,
    ) -> BatchResult:
        await self._save_checkpoint(progress.current_index, total)
        await self._flush(progress)
        self.state = RunState.STOPPED

        logger.info(
            "batch_stopped",
            processed=progress.processed,
            last_index=last_index,
            vocabulary_size=len(self.vocabulary),
        )
        return BatchResult(
            outcome=BatchOutcome.STOPPED,
            words_processed=progress.processed,
            last_index=last_index,
            skipped=progress.skipped,
            errors=list(self._errors),
            progress=progress,
        )

    async def _finish_completed(
        self,
        progress: BatchProgress,
        last_index: int,
    ) -> BatchResult:
        await self._flush(progress)
        await self._discard_checkpoint()
        recommendation = self.analyzer.recommend(
            self.vocabulary, new_word_count=progress.processed
        )
        self.state = RunState.COMPLETED

        logger.info(
            "batch_completed",
            processed=progress.processed,
            skipped=progress.skipped,
            failed=progress.failed,
            vocabulary_size=len(self.vocabulary),
            duration_s=round(progress.elapsed_seconds, 2),
            should_reconstruct=recommendation.should_reconstruct,
        )
        return BatchResult(
            outcome=BatchOutcome.COMPLETED,
            words_processed=progress.processed,
            last_index=last_index,
            skipped=progress.skipped,
            errors=list(self._errors),
            recommendation=recommendation,
            progress=progress,
        )
