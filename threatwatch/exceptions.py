"""
ThreatWatch Exceptions
"""


class ThreatWatchError(Exception):
    """Base class for engine errors."""


class EngineNotReadyError(ThreatWatchError):
    """Raised when events are submitted before the engine is initialized."""

    def __init__(self, message: str = "Threat detection engine not initialized"):
        super().__init__(message)


class EngineStateError(ThreatWatchError):
    """Raised on invalid lifecycle transitions, e.g. a second initialize()."""


class QueueFullError(ThreatWatchError):
    """Raised when the event queue is at capacity."""


class CatalogError(ThreatWatchError):
    """Raised for malformed signature, rule or baseline definitions."""
