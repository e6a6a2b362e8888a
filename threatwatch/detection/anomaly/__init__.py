"""
ThreatWatch Anomaly Detection Package
"""

from .detector import AnomalyDetector
from .behavioral_baseline import BaselineStore, BehavioralAnalyzer, DeviceProfile, UserProfile

__all__ = [
    "AnomalyDetector",
    "BaselineStore",
    "BehavioralAnalyzer",
    "DeviceProfile",
    "UserProfile",
]
