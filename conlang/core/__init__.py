"""Core domain models and types.

Barrel export for clean imports across the application.
"""

from .types import (
    Style,
    PronunciationMode,
    MorphemeType,
    Stress,
    FrequencyClass,
    AddOutcome,
    BatchOutcome,
    SearchDirection,
    Morpheme,
    PhoneticStructure,
    SemanticComponent,
    Etymology,
    EtymologyMorpheme,
    Definitions,
    Decomposition,
    Transformation,
    WordEntry,
    ConsistencyReport,
    ReconstructionRecommendation,
    WordChange,
    ReconstructionResult,
    BatchCheckpoint,
)
from .vocabulary import Vocabulary

__all__ = [
    "Style",
    "PronunciationMode",
    "MorphemeType",
    "Stress",
    "FrequencyClass",
    "AddOutcome",
    "BatchOutcome",
    "SearchDirection",
    "Morpheme",
    "PhoneticStructure",
    "SemanticComponent",
    "Etymology",
    "EtymologyMorpheme",
    "Definitions",
    "Decomposition",
    "Transformation",
    "WordEntry",
    "ConsistencyReport",
    "ReconstructionRecommendation",
    "WordChange",
    "ReconstructionResult",
    "BatchCheckpoint",
    "Vocabulary",
]
