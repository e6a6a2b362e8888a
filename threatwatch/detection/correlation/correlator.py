"""
ThreatWatch Correlation Engine

Relates each event to recent events from the same user, address or type.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Deque, Dict, Iterator, List, Optional

from ..base import Analyzer, DetectionState
from ..catalog import catalog_entries
from ...exceptions import CatalogError
from ...events import AnalyzerOutput, Event, Indicator

logger = logging.getLogger(__name__)

CONDITION_TYPES = ("same_user", "same_ip", "event_type")


@dataclass
class RuleCondition:
    """One predicate a related event must satisfy."""
    type: str
    value: Optional[str] = None

    def matches(self, candidate: Event, current: Event) -> bool:
        if self.type == "same_user":
            return current.user_id is not None and candidate.user_id == current.user_id
        if self.type == "same_ip":
            return current.source_ip is not None and candidate.source_ip == current.source_ip
        if self.type == "event_type":
            return candidate.type == self.value
        return False


@dataclass
class CorrelationRule:
    """
    Correlation rule.

    Fires when at least ``min_events`` prior events satisfy every condition;
    the score saturates at ``optimal_events``.
    """
    name: str
    min_events: int
    optimal_events: int
    conditions: List[RuleCondition] = field(default_factory=list)
    description: str = ""

    def related_events(self, history: List[Event], current: Event) -> List[Event]:
        return [
            candidate for candidate in history
            if candidate.id != current.id
            and all(c.matches(candidate, current) for c in self.conditions)
        ]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorrelationRule":
        """
        Build a rule from a catalog entry.

        Raises:
            CatalogError: If the entry is incomplete or inconsistent
        """
        name = data.get("name")
        if not name:
            raise CatalogError("correlation rule is missing a name")

        try:
            min_events = int(data.get("min_events", 1))
            optimal_events = int(data.get("optimal_events", min_events))
        except (TypeError, ValueError) as e:
            raise CatalogError(f"rule '{name}': event counts must be integers") from e

        if min_events < 1 or optimal_events < min_events:
            raise CatalogError(
                f"rule '{name}': need 1 <= min_events <= optimal_events, "
                f"got {min_events}/{optimal_events}"
            )

        conditions = []
        for raw in data.get("conditions") or []:
            ctype = raw.get("type") if isinstance(raw, dict) else None
            if ctype not in CONDITION_TYPES:
                raise CatalogError(f"rule '{name}': unknown condition {ctype!r}")
            if ctype == "event_type" and not raw.get("value"):
                raise CatalogError(f"rule '{name}': event_type condition needs a value")
            conditions.append(RuleCondition(type=ctype, value=raw.get("value")))

        if not conditions:
            raise CatalogError(f"rule '{name}' has no conditions")

        return cls(
            name=str(name),
            min_events=min_events,
            optimal_events=optimal_events,
            conditions=conditions,
            description=str(data.get("description", "")),
        )


def load_correlation_rules(path: Path) -> List[CorrelationRule]:
    """Load correlation rules, skipping invalid entries."""
    rules = []
    for entry in catalog_entries(path, "rules"):
        try:
            rules.append(CorrelationRule.from_dict(entry))
        except CatalogError as e:
            logger.warning(f"Failed to load correlation rule from {path}: {e}")

    logger.info(f"Loaded {len(rules)} correlation rules")
    return rules


class CorrelationHistory:
    """
    Recent events, bounded by a time window and a maximum size.

    When the size cap is hit the oldest entry is dropped.
    """

    def __init__(self, window_seconds: float = 3600, max_size: int = 50000):
        self.window = timedelta(seconds=window_seconds)
        self.max_size = max(1, max_size)
        self._events: Deque[Event] = deque(maxlen=self.max_size)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def prune(self, reference: datetime) -> int:
        """Drop events not newer than ``reference - window``; return how many."""
        cutoff = reference - self.window
        before = len(self._events)
        self._events = deque(
            (e for e in self._events if e.timestamp > cutoff),
            maxlen=self.max_size,
        )
        return before - len(self._events)

    def append(self, event: Event):
        self._events.append(event)

    def snapshot(self) -> List[Event]:
        return list(self._events)

    def clear(self):
        self._events.clear()


class CorrelationAnalyzer(Analyzer):
    """
    Scores an event by the number of related events in the recent window.

    The current event is appended to the history only after every rule has
    been evaluated, so it never correlates with itself.
    """

    name = "correlation"

    async def score(self, event: Event, state: DetectionState) -> AnalyzerOutput:
        history = state.history
        history.prune(event.timestamp)
        prior = history.snapshot()

        score = 0.0
        indicators = []
        try:
            for rule in state.correlation_rules:
                related = rule.related_events(prior, event)
                if len(related) < rule.min_events:
                    continue

                rule_score = min(1.0, len(related) / rule.optimal_events)
                score = max(score, rule_score)
                indicators.append(Indicator(
                    type="correlation",
                    subtype=rule.name,
                    value=f"{len(related)} related events found for {rule.name}",
                    confidence=round(rule_score, 4),
                ))
        finally:
            history.append(event)

        return AnalyzerOutput(score=score, indicators=indicators)
