"""Storage layer for checkpoints, dictionaries and batch runs.

Barrel export for persistence and batch orchestration.
"""

from .checkpoint import CheckpointStore
from .dictionaries import DictionaryWriter
from .batch import (
    BatchConfig,
    BatchOrchestrator,
    BatchProgress,
    BatchResult,
    RunControl,
    RunState,
)

__all__ = [
    # Persistence
    "CheckpointStore",
    "DictionaryWriter",
    # Batch
    "BatchConfig",
    "BatchOrchestrator",
    "BatchProgress",
    "BatchResult",
    "RunControl",
    "RunState",
]
