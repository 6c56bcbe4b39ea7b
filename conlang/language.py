"""Language builder façade.

Owns the style, engine, decomposer and vocabulary for one named language and
wires batch processing, consistency analysis and reconstruction together.

Usage:
    builder = LanguageBuilder.open("Kethri", style=Style.CONSONANT_SHIFT)
    result = await builder.process_words(["water", "fire", "computer"])
    if result.recommendation.should_reconstruct:
        builder.reconstruct(result.recommendation.current_consistency)
"""

from pathlib import Path
from typing import Callable, Iterable, Optional

from conlang.config import Settings, get_settings
from conlang.core.contracts import IEnrichmentClient
from conlang.core.types import (
    AddOutcome,
    BatchCheckpoint,
    ConsistencyReport,
    PronunciationMode,
    ReconstructionRecommendation,
    ReconstructionResult,
    Style,
    WordEntry,
)
from conlang.core.vocabulary import Vocabulary
from conlang.errors import CheckpointIOError
from conlang.interop.ollama_client import OllamaClient
from conlang.observ import get_logger, set_language
from conlang.services.consistency import ConsistencyAnalyzer
from conlang.services.decomposer import Decomposer
from conlang.services.derivation import EntryDeriver
from conlang.services.reconstruction import ReconstructionEngine
from conlang.services.transform import TransformationEngine, parse_style
from conlang.storage.batch import (
    BatchConfig,
    BatchOrchestrator,
    BatchProgress,
    BatchResult,
    RunControl,
)
from conlang.storage.checkpoint import CheckpointStore
from conlang.storage.dictionaries import DictionaryWriter

logger = get_logger(__name__)

_SETTINGS_SEED = object()


def create_enrichment(settings: Optional[Settings] = None) -> Optional[OllamaClient]:
    """Enrichment client per settings, or None when enrichment is disabled."""
    settings = settings or get_settings()
    if not settings.use_enrichment:
        return None
    return OllamaClient(
        base_url=settings.ollama_url,
        model=settings.ollama_model,
        timeout=settings.enrichment_timeout,
        cache_size=settings.enrichment_cache_size,
    )


def checkpoint_store(
    name: str,
    output_dir: Optional[Path] = None,
    settings: Optional[Settings] = None,
) -> CheckpointStore:
    """Checkpoint store kept beside a language's dictionaries."""
    directory = Path(output_dir) if output_dir else (settings or get_settings()).output_dir
    return CheckpointStore(name, directory / ".checkpoints")


class LanguageBuilder:
    """One constructed language and the services that grow it."""

    def __init__(
        self,
        name: str,
        style: Style | str = Style.DEFAULT,
        vocabulary: Optional[Vocabulary] = None,
        enrichment: Optional[IEnrichmentClient] = None,
        seed=_SETTINGS_SEED,
        mode: Optional[PronunciationMode] = None,
        output_dir: Optional[Path] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.name = name
        self.style = parse_style(style)

        if seed is _SETTINGS_SEED:
            seed = self.settings.variation_seed
        if mode is None:
            mode = (
                PronunciationMode.PLAIN
                if self.settings.ascii_pronunciation
                else PronunciationMode.SYMBOLIC
            )

        self.vocabulary = vocabulary if vocabulary is not None else Vocabulary(name)
        self.vocabulary.style = self.style

        self.enrichment = enrichment
        self.decomposer = Decomposer(enrichment, timeout=self.settings.enrichment_timeout)
        self.engine = TransformationEngine(self.style, seed=seed, mode=mode)
        self.deriver = EntryDeriver(
            self.decomposer,
            self.engine,
            enrichment,
            timeout=self.settings.enrichment_timeout,
        )
        self.analyzer = ConsistencyAnalyzer()
        self.reconstruction = ReconstructionEngine(self.decomposer, self.engine, self.analyzer)

        directory = Path(output_dir) if output_dir else self.settings.output_dir
        self.writer = DictionaryWriter(directory)
        self.checkpoints = checkpoint_store(name, directory)

        logger.info(
            "language_initialized",
            language=name,
            style=self.style.value,
            vocabulary_size=len(self.vocabulary),
            enriched=enrichment is not None,
        )

    @classmethod
    def open(
        cls,
        name: str,
        style: Optional[Style | str] = None,
        output_dir: Optional[Path] = None,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> "LanguageBuilder":
        """Load a previously flushed language, or start a new one.

        The style of an existing language is fixed; a different requested
        style is ignored with a warning.
        """
        settings = settings or get_settings()
        directory = Path(output_dir) if output_dir else settings.output_dir
        vocabulary = DictionaryWriter(directory).load_vocabulary(name)

        if vocabulary is not None and vocabulary.style is not None:
            if style is not None and parse_style(style) != vocabulary.style:
                logger.warning(
                    "style_override_ignored",
                    language=name,
                    requested=parse_style(style).value,
                    fixed=vocabulary.style.value,
                )
            style = vocabulary.style

        return cls(
            name,
            style=style or Style.DEFAULT,
            vocabulary=vocabulary,
            output_dir=directory,
            settings=settings,
            **kwargs,
        )

    async def close(self) -> None:
        close = getattr(self.enrichment, "close", None)
        if close is not None:
            await close()

    # ─────────────────────────────────────────────────────────────────────────
    # Growing the vocabulary
    # ─────────────────────────────────────────────────────────────────────────

    async def add_word(self, word: str) -> AddOutcome:
        """Derive and insert a single word.

        Raises:
            PerWordProcessingError: Derivation failed
        """
        normalized = word.strip().lower()
        if normalized in self.vocabulary:
            logger.warning("duplicate_word_skipped", word=normalized)
            return AddOutcome.SKIPPED

        entry = await self.deriver.derive(normalized)
        return self.vocabulary.add(entry)

    async def _resume_point(self) -> Optional[BatchCheckpoint]:
        try:
            checkpoint = await self.checkpoints.load()
        except CheckpointIOError as e:
            logger.warning("checkpoint_unreadable", error=e.message)
            return None

        if checkpoint is not None and checkpoint.language_name != self.name:
            logger.warning(
                "checkpoint_language_mismatch",
                expected=self.name,
                found=checkpoint.language_name,
            )
            return None
        return checkpoint

    async def process_words(
        self,
        words: Iterable[str],
        control: Optional[RunControl] = None,
        resume: bool = True,
        on_progress: Optional[Callable[[BatchProgress], None]] = None,
        **config_overrides,
    ) -> BatchResult:
        """Run the batch orchestrator over words under the checkpoint lock.

        Raises:
            CheckpointLockedError: Another run is processing this language
        """
        set_language(self.name)
        with self.checkpoints:
            checkpoint = await self._resume_point() if resume else None
            config = BatchConfig.from_settings(resume=checkpoint, **config_overrides)
            orchestrator = BatchOrchestrator(
                self.vocabulary,
                self.deriver,
                checkpoints=self.checkpoints,
                sink=self.writer,
                analyzer=self.analyzer,
                config=config,
                control=control,
                on_progress=on_progress,
            )
            return await orchestrator.run(words)

    # ─────────────────────────────────────────────────────────────────────────
    # Analysis & reconstruction
    # ─────────────────────────────────────────────────────────────────────────

    def analyze(self) -> ConsistencyReport:
        return self.analyzer.analyze(self.vocabulary)

    def recommend(self, new_word_count: int = 0) -> ReconstructionRecommendation:
        return self.analyzer.recommend(self.vocabulary, new_word_count)

    def reconstruct(self, previous_score: Optional[float] = None) -> ReconstructionResult:
        return self.reconstruction.reconstruct(self.vocabulary, previous_score)

    async def flush(self, stats: Optional[dict] = None) -> None:
        await self.writer.flush(self.vocabulary, stats)

    # ─────────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────────

    def translate(self, word: str) -> Optional[str]:
        return self.vocabulary.translate(word.strip().lower())

    def lookup(self, constructed: str) -> Optional[WordEntry]:
        source = self.vocabulary.lookup_source(constructed.strip().lower())
        return self.vocabulary.get(source) if source else None
