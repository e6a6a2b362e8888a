"""
ThreatWatch Notifications Package
"""

from .hub import NotificationHub, Subscription

__all__ = ["NotificationHub", "Subscription"]
