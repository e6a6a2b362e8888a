"""
ThreatWatch Storage Package

In-memory detection result storage.
"""

from .result_store import THREAT_LEVELS, DetectionResultStore

__all__ = [
    "THREAT_LEVELS",
    "DetectionResultStore",
]
