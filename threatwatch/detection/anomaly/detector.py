"""
ThreatWatch Anomaly Detector

Heuristic anomaly scoring for login, network and file access events.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..base import Analyzer, DetectionState
from ...config.settings import AnomalyConfig
from ...events import AnalyzerOutput, Event, Indicator
from ...utils import is_number

logger = logging.getLogger(__name__)


@dataclass
class AnomalyFinding:
    """Accumulated heuristic hits for one group of checks."""
    type: str
    score: float = 0.0
    reasons: List[str] = field(default_factory=list)

    def add(self, weight: float, reason: str):
        self.score += weight
        self.reasons.append(reason)

    @property
    def description(self) -> str:
        return "; ".join(self.reasons)


class AnomalyDetector(Analyzer):
    """
    Scores events against static heuristics.

    Each event type has one group of checks whose weights add up (capped at
    1.0). The analyzer score is the highest group score; groups above the
    threshold are reported as indicators.
    """

    name = "anomaly"

    def __init__(self, config: Optional[AnomalyConfig] = None):
        """
        Initialize anomaly detector.

        Args:
            config: Heuristic thresholds and allow-lists
        """
        self.config = config or AnomalyConfig()
        self.threshold = self.config.threshold

        self._allowed_countries = {c.upper() for c in self.config.allowed_destination_countries}
        self._standard_protocols = {p.upper() for p in self.config.standard_protocols}
        self._privileged_roles = {r.lower() for r in self.config.privileged_roles}
        self._executable_extensions = {
            self._normalize_extension(e) for e in self.config.executable_extensions
        }
        self._sensitive_markers = [m.lower() for m in self.config.sensitive_path_markers]

        self._checks: Dict[str, Callable[[Event], AnomalyFinding]] = {
            "login": self._detect_login_anomaly,
            "network": self._detect_network_anomaly,
            "file_access": self._detect_file_access_anomaly,
        }

    async def score(self, event: Event, state: DetectionState) -> AnalyzerOutput:
        check = self._checks.get(event.type)
        if check is None:
            return AnalyzerOutput()

        findings = [check(event)]

        score = 0.0
        indicators = []
        for finding in findings:
            finding_score = min(finding.score, 1.0)
            score = max(score, finding_score)

            if finding_score > self.threshold:
                indicators.append(Indicator(
                    type="anomaly",
                    subtype=finding.type,
                    value=finding.description,
                    confidence=round(finding_score, 4),
                ))

        return AnalyzerOutput(score=score, indicators=indicators)

    def _detect_login_anomaly(self, event: Event) -> AnomalyFinding:
        """Check login time, day and location."""
        finding = AnomalyFinding(type="login_anomaly")

        hour = event.get("hour")
        if is_number(hour) and (hour < self.config.off_hours_start or hour > self.config.off_hours_end):
            finding.add(0.3, "Unusual login time")

        # Saturday / Sunday
        if event.timestamp.weekday() >= 5 and not self._is_privileged(event.user_role):
            finding.add(0.2, "Weekend login")

        geo_country = _text(event.geo_country)
        user_country = _text(event.user_country)
        if geo_country and user_country and geo_country.upper() != user_country.upper():
            finding.add(0.4, "Login from unusual location")

        return finding

    def _detect_network_anomaly(self, event: Event) -> AnomalyFinding:
        """Check transfer volume, destination and protocol."""
        finding = AnomalyFinding(type="network_anomaly")

        if is_number(event.bytes_transferred) and event.bytes_transferred > self.config.bulk_transfer_bytes:
            finding.add(0.4, "Large data transfer")

        destination = _text(event.destination_country)
        if destination and destination.upper() not in self._allowed_countries:
            finding.add(0.3, "Transfer to unusual country")

        protocol = _text(event.protocol)
        if protocol and protocol.upper() not in self._standard_protocols:
            finding.add(0.3, "Unusual protocol usage")

        return finding

    def _detect_file_access_anomaly(self, event: Event) -> AnomalyFinding:
        """Check access volume, sensitive paths and executables."""
        finding = AnomalyFinding(type="file_access_anomaly")

        if is_number(event.files_accessed) and event.files_accessed > self.config.bulk_file_count:
            finding.add(0.4, "Bulk file access")

        path = _text(event.file_path)
        if path and any(marker in path.lower() for marker in self._sensitive_markers):
            finding.add(0.3, "Sensitive file access")

        extension = _text(event.file_extension)
        if extension and self._normalize_extension(extension) in self._executable_extensions:
            finding.add(0.3, "Executable file access")

        return finding

    def _is_privileged(self, role: Optional[str]) -> bool:
        role = _text(role)
        return role is not None and role.lower() in self._privileged_roles

    @staticmethod
    def _normalize_extension(extension: str) -> str:
        ext = extension.strip().lower()
        return ext if ext.startswith(".") else f".{ext}"


def _text(value) -> Optional[str]:
    """Return ``value`` if it is a non-empty string, else None."""
    return value if isinstance(value, str) and value else None
