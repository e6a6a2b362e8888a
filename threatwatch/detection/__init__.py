"""
ThreatWatch Detection Package

Threat detection engine with anomaly heuristics, behavioral baselines,
signature matching and temporal correlation.
"""

from .base import Analyzer, DetectionState
from .engine import ThreatDetectionEngine
from ..exceptions import (
    CatalogError,
    EngineNotReadyError,
    EngineStateError,
    QueueFullError,
    ThreatWatchError,
)
from .scorer import ThreatScorer, WeightedAnalyzer

__all__ = [
    "Analyzer",
    "CatalogError",
    "DetectionState",
    "EngineNotReadyError",
    "EngineStateError",
    "QueueFullError",
    "ThreatDetectionEngine",
    "ThreatScorer",
    "ThreatWatchError",
    "WeightedAnalyzer",
]
