"""Type-safe exception hierarchy and error codes.

Provides structured error handling with:
- Domain-specific exception taxonomy
- Structured error details for run reports
- A clear split between recoverable and surfaced failures

None of the processing errors abort a batch: the orchestrator catches them,
records an ErrorDetail and moves on to the next word.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Type-safe error codes for run reports."""

    # Input errors
    INVALID_WORD = "invalid_word"
    INVALID_STYLE = "invalid_style"
    INVALID_INPUT = "invalid_input"

    # Processing errors
    WORD_PROCESSING_FAILED = "word_processing_failed"
    RECONSTRUCTION_FAILED = "reconstruction_failed"

    # Service errors
    ENRICHMENT_UNAVAILABLE = "enrichment_unavailable"
    ENRICHMENT_PARSE_FAILED = "enrichment_parse_failed"

    # Persistence errors
    CHECKPOINT_IO = "checkpoint_io"
    CHECKPOINT_LOCKED = "checkpoint_locked"
    DICTIONARY_IO = "dictionary_io"


class ErrorDetail(BaseModel):
    """Structured error information for run reports."""

    code: ErrorCode
    message: str
    word: Optional[str] = None
    context: dict = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConlangError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        word: Optional[str] = None,
        **context
    ):
        self.code = code
        self.message = message
        self.word = word
        self.context = context
        super().__init__(message)

    def to_detail(self) -> ErrorDetail:
        """Convert to structured error detail."""
        return ErrorDetail(
            code=self.code,
            message=self.message,
            word=self.word,
            context=self.context
        )


# ═════════════════════════════════════════════════════════════════════════════
# Input Errors
# ═════════════════════════════════════════════════════════════════════════════

class ValidationError(ConlangError):
    """Invalid input data."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_INPUT,
        word: Optional[str] = None,
        **context
    ):
        super().__init__(code=code, message=message, word=word, **context)


class InvalidStyleError(ValidationError):
    """Style name does not match any known rule set."""

    def __init__(self, style: str):
        super().__init__(
            message=f"Unknown transformation style: {style}",
            code=ErrorCode.INVALID_STYLE,
            style=style
        )


# ═════════════════════════════════════════════════════════════════════════════
# Processing Errors
# ═════════════════════════════════════════════════════════════════════════════

class PerWordProcessingError(ConlangError):
    """A single word failed; the batch skips it and continues."""

    def __init__(self, word: str, reason: str, **context):
        super().__init__(
            code=ErrorCode.WORD_PROCESSING_FAILED,
            message=f"Processing '{word}' failed: {reason}",
            word=word,
            reason=reason,
            **context
        )


# ═════════════════════════════════════════════════════════════════════════════
# Service Errors
# ═════════════════════════════════════════════════════════════════════════════

class EnrichmentServiceError(ConlangError):
    """Enrichment service unreachable, timed out or returned garbage.

    Always recovered inside the client with fallback data.
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        code: ErrorCode = ErrorCode.ENRICHMENT_UNAVAILABLE,
        **context
    ):
        super().__init__(
            code=code,
            message=f"Enrichment {operation} failed: {reason}",
            operation=operation,
            reason=reason,
            **context
        )


# ═════════════════════════════════════════════════════════════════════════════
# Persistence Errors
# ═════════════════════════════════════════════════════════════════════════════

class CheckpointIOError(ConlangError):
    """Checkpoint could not be read, written or discarded."""

    def __init__(
        self,
        operation: str,
        reason: str,
        code: ErrorCode = ErrorCode.CHECKPOINT_IO,
        **context
    ):
        super().__init__(
            code=code,
            message=f"Checkpoint {operation} failed: {reason}",
            operation=operation,
            reason=reason,
            **context
        )


class CheckpointLockedError(CheckpointIOError):
    """Another run already holds the checkpoint lock for this language."""

    def __init__(self, language: str, lock_path: str):
        super().__init__(
            operation="lock",
            reason=f"language '{language}' is locked by another run ({lock_path})",
            code=ErrorCode.CHECKPOINT_LOCKED,
            language=language,
            lock_path=lock_path
        )


class DictionaryIOError(ConlangError):
    """Dictionary tables could not be flushed to disk."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code=ErrorCode.DICTIONARY_IO,
            message=f"Dictionary flush to {path} failed: {reason}",
            path=path,
            reason=reason
        )
