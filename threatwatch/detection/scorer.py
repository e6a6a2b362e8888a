"""
ThreatWatch Threat Scorer

Fuses analyzer scores into a risk score and classifies the result.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .base import Analyzer, DetectionState
from ..events import DetectionResult, Event, Indicator, Recommendation
from ..utils import clamp, generate_uuid, get_current_timestamp

logger = logging.getLogger(__name__)


@dataclass
class WeightedAnalyzer:
    """An analyzer and its share of the composite score."""
    analyzer: Analyzer
    weight: float


class ThreatScorer:
    """
    Runs the weighted analyzers for an event and builds its detection result.

    Adding an analyzer means adding one entry to the weighted list.
    """

    # Indicator categories that decide the threat type, highest priority first
    THREAT_TYPE_PRIORITY = (
        "malware",
        "phishing",
        "data_exfiltration",
        "lateral_movement",
        "privilege_escalation",
        "persistence",
    )

    DEFAULT_LEVEL_THRESHOLDS = {
        "critical": 0.9,
        "high": 0.8,
        "medium": 0.6,
        "low": 0.3,
    }

    LEVEL_ORDER = ("critical", "high", "medium", "low")

    def __init__(
        self,
        analyzers: Sequence[WeightedAnalyzer],
        level_thresholds: Optional[Dict[str, float]] = None,
    ):
        """
        Initialize scorer with weighted analyzers.

        Args:
            analyzers: Analyzers in evaluation order with their weights
            level_thresholds: Minimum risk score per threat level
        """
        # Normalize weights
        total = sum(max(a.weight, 0.0) for a in analyzers)
        self.analyzers: List[WeightedAnalyzer] = [
            WeightedAnalyzer(a.analyzer, max(a.weight, 0.0) / total if total > 0 else a.weight)
            for a in analyzers
        ]

        self.level_thresholds = {**self.DEFAULT_LEVEL_THRESHOLDS, **(level_thresholds or {})}

    async def evaluate(self, event: Event, state: DetectionState) -> DetectionResult:
        """
        Score one event with every analyzer and classify it.

        An analyzer that raises contributes nothing; the others still count.
        """
        scores: List[Tuple[str, float]] = []
        collected: List[Indicator] = []
        risk_score = 0.0

        for entry in self.analyzers:
            name = entry.analyzer.name
            try:
                output = await entry.analyzer.score(event, state)
            except Exception as e:
                logger.error(f"Analyzer '{name}' failed on event {event.id}: {e}", exc_info=True)
                scores.append((name, 0.0))
                continue

            component = clamp(output.score)
            scores.append((name, round(component, 4)))
            collected.extend(output.indicators)
            risk_score += component * entry.weight

        risk_score = round(clamp(risk_score), 6)
        threat_type = self.classify_threat(risk_score, collected)

        return DetectionResult(
            id=f"detection_{generate_uuid()}",
            event_id=event.id,
            timestamp=get_current_timestamp(),
            risk_score=risk_score,
            confidence=self.calculate_confidence(risk_score),
            threat_level=self.classify_level(risk_score),
            threat_type=threat_type,
            indicators=tuple(self.deduplicate(collected)),
            recommendations=tuple(self.recommend(risk_score, threat_type)),
            analyzer_scores=tuple(scores),
        )

    def classify_threat(self, risk_score: float, indicators: Iterable[Indicator]) -> str:
        """
        Classify the threat type.

        Known indicator categories win over the raw score, checked in
        priority order against both indicator type and subtype.
        """
        categories = set()
        for indicator in indicators:
            categories.add(indicator.type)
            categories.add(indicator.subtype)

        for threat_type in self.THREAT_TYPE_PRIORITY:
            if threat_type in categories:
                return threat_type

        if risk_score > 0.7:
            return "high_risk_anomaly"
        if risk_score > 0.4:
            return "suspicious_activity"
        return "low_risk"

    def classify_level(self, risk_score: float) -> str:
        """
        Classify risk score into threat level.

        Args:
            risk_score: Risk score (0-1)

        Returns:
            Threat level string
        """
        for level in self.LEVEL_ORDER:
            if risk_score >= self.level_thresholds[level]:
                return level
        return "info"

    @staticmethod
    def calculate_confidence(risk_score: float) -> float:
        return round(clamp(risk_score * 100, 10, 95), 2)

    @staticmethod
    def deduplicate(indicators: Iterable[Indicator]) -> List[Indicator]:
        """Drop indicators whose (type, value) was already seen."""
        seen = set()
        unique = []
        for indicator in indicators:
            if indicator.key in seen:
                continue
            seen.add(indicator.key)
            unique.append(indicator)
        return unique

    @staticmethod
    def recommend(risk_score: float, threat_type: str) -> List[Recommendation]:
        recommendations = []

        if risk_score > 0.8:
            recommendations.append(Recommendation(
                priority="critical",
                action="immediate_isolation",
                description="Isolate affected systems immediately to prevent spread",
                timeframe="0-5 minutes",
            ))

        if threat_type == "malware":
            recommendations.append(Recommendation(
                priority="high",
                action="malware_scan",
                description="Initiate comprehensive malware scan and removal",
                timeframe="5-15 minutes",
            ))

        if threat_type == "data_exfiltration":
            recommendations.append(Recommendation(
                priority="critical",
                action="network_monitoring",
                description="Enable enhanced network monitoring and data loss prevention",
                timeframe="0-10 minutes",
            ))

        return recommendations
