"""
ThreatWatch Analyzer Base

Common interface for the analyzers that score an event.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

from ..events import AnalyzerOutput, Event

if TYPE_CHECKING:
    from .anomaly.behavioral_baseline import BaselineStore
    from .correlation.correlator import CorrelationHistory, CorrelationRule
    from .patterns.matcher import AttackSignature


@dataclass
class DetectionState:
    """
    Engine-owned state shared by the analyzers.

    Only the correlation analyzer writes (to ``history``); everything else is
    read on the request path.
    """
    baselines: "BaselineStore"
    history: "CorrelationHistory"
    signatures: List["AttackSignature"] = field(default_factory=list)
    correlation_rules: List["CorrelationRule"] = field(default_factory=list)


class Analyzer(ABC):
    """
    Abstract base class for analyzers.

    Implementations turn one event into a score in [0, 1] plus indicators.
    They must tolerate any subset of optional event fields being absent.
    """

    name: str = "base"

    @abstractmethod
    async def score(self, event: Event, state: DetectionState) -> AnalyzerOutput:
        """
        Score an event.

        Args:
            event: Event under analysis
            state: Shared detection state

        Returns:
            Analyzer score and indicators
        """
        pass
