"""
ThreatWatch

Event-driven threat detection and risk scoring engine.
"""

__version__ = "0.1.0"
