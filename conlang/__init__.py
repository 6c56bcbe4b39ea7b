"""conlang - constructed-language vocabulary builder.

Derives a constructed vocabulary from a source word list through
rule-based phonetic and morphological transformations, and keeps the
resulting bidirectional lexicon self-consistent as it grows.
"""

__version__ = "0.1.0"

# Observability exports for convenience
from conlang.observ import get_logger, timer, timed
from conlang.errors import (
    ConlangError,
    ErrorCode,
    ErrorDetail,
    ValidationError,
    InvalidStyleError,
    PerWordProcessingError,
    EnrichmentServiceError,
    CheckpointIOError,
    CheckpointLockedError,
    DictionaryIOError,
)

__all__ = [
    # Version
    "__version__",
    # Logging
    "get_logger",
    "timer",
    "timed",
    # Errors
    "ConlangError",
    "ErrorCode",
    "ErrorDetail",
    "ValidationError",
    "InvalidStyleError",
    "PerWordProcessingError",
    "EnrichmentServiceError",
    "CheckpointIOError",
    "CheckpointLockedError",
    "DictionaryIOError",
]
