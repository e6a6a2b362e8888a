"""
ThreatWatch Events Package
"""

from .models import (
    EVENT_TYPES,
    AnalyzerOutput,
    DetectionResult,
    Event,
    Indicator,
    Recommendation,
)

__all__ = [
    "EVENT_TYPES",
    "AnalyzerOutput",
    "DetectionResult",
    "Event",
    "Indicator",
    "Recommendation",
]
