"""
ThreatWatch Behavioral Baseline

Per-user and per-device baseline profiles and deviation scoring.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..base import Analyzer, DetectionState
from ..catalog import read_catalog
from ...config.settings import BehavioralConfig
from ...events import AnalyzerOutput, Event, Indicator
from ...utils import get_current_timestamp, is_number

logger = logging.getLogger(__name__)


@dataclass
class UserProfile:
    """User behavior profile."""
    user_id: str
    average_actions: float = 50
    common_applications: List[str] = field(default_factory=list)
    normal_privilege_level: int = 1
    last_updated: datetime = field(default_factory=get_current_timestamp)


@dataclass
class DeviceProfile:
    """Device behavior profile."""
    device_id: str
    average_cpu_usage: float = 30
    average_memory_usage: float = 60
    average_connections: float = 20
    last_updated: datetime = field(default_factory=get_current_timestamp)


class BaselineStore:
    """
    Bounded store of baseline profiles.

    Profiles are created lazily from configured defaults. Each map holds at
    most ``max_profiles`` entries; the least recently touched profile is
    evicted first.
    """

    def __init__(self, config: Optional[BehavioralConfig] = None):
        self.config = config or BehavioralConfig()
        self.max_profiles = max(1, self.config.max_profiles)

        self._users: "OrderedDict[str, UserProfile]" = OrderedDict()
        self._devices: "OrderedDict[str, DeviceProfile]" = OrderedDict()
        self._evictions = 0

    def get_user_profile(self, user_id: str) -> UserProfile:
        """Return the user's profile, creating it from defaults if needed."""
        profile = self._users.get(user_id)
        if profile is None:
            profile = UserProfile(
                user_id=user_id,
                average_actions=self.config.average_actions,
                common_applications=list(self.config.common_applications),
                normal_privilege_level=self.config.normal_privilege_level,
            )
            self._insert(self._users, user_id, profile)
        else:
            self._users.move_to_end(user_id)
        return profile

    def get_device_profile(self, device_id: str) -> DeviceProfile:
        """Return the device's profile, creating it from defaults if needed."""
        profile = self._devices.get(device_id)
        if profile is None:
            profile = DeviceProfile(
                device_id=device_id,
                average_cpu_usage=self.config.average_cpu_usage,
                average_memory_usage=self.config.average_memory_usage,
                average_connections=self.config.average_connections,
            )
            self._insert(self._devices, device_id, profile)
        else:
            self._devices.move_to_end(device_id)
        return profile

    def update_user_profile(self, user_id: str, **values: Any) -> UserProfile:
        """Overwrite fields of a user profile."""
        profile = self.get_user_profile(user_id)
        self._apply(profile, values)
        return profile

    def update_device_profile(self, device_id: str, **values: Any) -> DeviceProfile:
        """Overwrite fields of a device profile."""
        profile = self.get_device_profile(device_id)
        self._apply(profile, values)
        return profile

    def load_seeds(self, path: Path) -> Tuple[int, int]:
        """
        Seed profiles from a YAML file with ``users`` and ``devices`` mappings.

        Returns:
            Number of (user, device) profiles seeded
        """
        data = read_catalog(path)
        users = data.get("users") or {}
        devices = data.get("devices") or {}

        for user_id, values in users.items():
            self.update_user_profile(str(user_id), **(values or {}))
        for device_id, values in devices.items():
            self.update_device_profile(str(device_id), **(values or {}))

        logger.info(f"Seeded {len(users)} user and {len(devices)} device baselines from {path}")
        return len(users), len(devices)

    def _insert(self, profiles: OrderedDict, key: str, profile: Any):
        profiles[key] = profile
        while len(profiles) > self.max_profiles:
            evicted, _ = profiles.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted baseline profile {evicted}")

    @staticmethod
    def _apply(profile: Any, values: Dict[str, Any]):
        for name, value in values.items():
            if name in ("user_id", "device_id", "last_updated") or not hasattr(profile, name):
                logger.warning(f"Ignoring unknown baseline field '{name}'")
                continue
            setattr(profile, name, list(value) if isinstance(value, (list, tuple)) else value)
        profile.last_updated = get_current_timestamp()

    def get_stats(self) -> Dict[str, Any]:
        """Get baseline statistics."""
        return {
            "user_profiles": len(self._users),
            "device_profiles": len(self._devices),
            "max_profiles": self.max_profiles,
            "evictions": self._evictions,
        }


class BehavioralAnalyzer(Analyzer):
    """
    Compares events with the user's and the device's baseline.

    The analyzer score is the higher of the two facet scores.
    """

    name = "behavioral"

    def __init__(self, config: Optional[BehavioralConfig] = None):
        self.config = config or BehavioralConfig()
        self.indicator_threshold = self.config.indicator_threshold

    async def score(self, event: Event, state: DetectionState) -> AnalyzerOutput:
        facets = []

        if event.user_id:
            profile = state.baselines.get_user_profile(event.user_id)
            facets.append(self._analyze_user_behavior(event, profile))

        if event.device_id:
            profile = state.baselines.get_device_profile(event.device_id)
            facets.append(self._analyze_device_behavior(event, profile))

        score = 0.0
        indicators = []
        for subtype, facet_score, reasons in facets:
            score = max(score, facet_score)
            if facet_score > self.indicator_threshold:
                indicators.append(Indicator(
                    type="behavioral",
                    subtype=subtype,
                    value="; ".join(reasons),
                    confidence=round(facet_score, 4),
                ))

        return AnalyzerOutput(score=score, indicators=indicators)

    def _analyze_user_behavior(self, event: Event, profile: UserProfile):
        score = 0.0
        reasons = []

        if is_number(event.action_count) and event.action_count > profile.average_actions * 3:
            score += 0.4
            reasons.append("Rapid action execution")

        if event.application and event.application not in profile.common_applications:
            score += 0.3
            reasons.append("Unusual application usage")

        if is_number(event.privilege_level) and event.privilege_level > profile.normal_privilege_level:
            score += 0.5
            reasons.append("Privilege escalation attempt")

        return "user_behavior", min(score, 1.0), reasons

    def _analyze_device_behavior(self, event: Event, profile: DeviceProfile):
        score = 0.0
        reasons = []

        if is_number(event.cpu_usage) and event.cpu_usage > profile.average_cpu_usage * 2:
            score += 0.3
            reasons.append("High CPU usage")

        if is_number(event.memory_usage) and event.memory_usage > profile.average_memory_usage * 2:
            score += 0.3
            reasons.append("High memory usage")

        if (
            is_number(event.network_connections)
            and event.network_connections > profile.average_connections * 3
        ):
            score += 0.4
            reasons.append("Excessive network connections")

        return "device_behavior", min(score, 1.0), reasons
