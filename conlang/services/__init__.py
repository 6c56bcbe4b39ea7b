"""Service layer implementations.

Barrel export for decomposition, transformation and analysis services.
"""

from .decomposer import Decomposer
from .transform import TransformationEngine
from .consistency import ConsistencyAnalyzer
from .reconstruction import ReconstructionEngine
from .derivation import EntryDeriver

__all__ = [
    "Decomposer",
    "TransformationEngine",
    "ConsistencyAnalyzer",
    "ReconstructionEngine",
    "EntryDeriver",
]
