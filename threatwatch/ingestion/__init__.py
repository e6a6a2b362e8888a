"""
ThreatWatch Ingestion Package

Event queue feeding the detection engine.
"""

from .event_queue import EventQueue

__all__ = [
    "EventQueue",
]
