"""
ThreatWatch Detection Engine

Orchestrates the event queue, the analyzers, scoring, result storage and
notifications.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from .anomaly import AnomalyDetector, BaselineStore, BehavioralAnalyzer
from .base import DetectionState
from .correlation import CorrelationAnalyzer, CorrelationHistory, load_correlation_rules
from .patterns import PatternMatcher, load_signatures
from .scorer import ThreatScorer, WeightedAnalyzer
from ..config import Settings, get_settings
from ..exceptions import EngineNotReadyError, EngineStateError
from ..events import DetectionResult, Event
from ..ingestion import EventQueue
from ..notifications import NotificationHub, Subscription
from ..storage import DetectionResultStore

logger = logging.getLogger(__name__)

EventInput = Union[Event, Mapping[str, Any]]


class ThreatDetectionEngine:
    """
    Threat detection service.

    Construct it explicitly, ``await initialize()`` before submitting events
    and ``await shutdown()`` when done. All state (baselines, correlation
    history, results, queued events) lives in memory only and is lost when
    the process exits.

    Components:
    - Anomaly heuristics
    - Behavioral baselines
    - Attack signature matching
    - Temporal correlation
    - Weighted scoring and classification
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        hub: Optional[NotificationHub] = None,
    ):
        """
        Initialize detection engine.

        Args:
            settings: Application settings (defaults to the cached settings)
            hub: Notification hub shared with subscribers
        """
        self.settings = settings or get_settings()
        self.hub = hub or NotificationHub()

        self.state = DetectionState(
            baselines=BaselineStore(self.settings.behavioral),
            history=CorrelationHistory(
                window_seconds=self.settings.correlation.window_seconds,
                max_size=self.settings.correlation.max_history,
            ),
        )
        self.results = DetectionResultStore(self.settings.storage.max_results)
        self.scorer = ThreatScorer(
            self._build_analyzers(),
            level_thresholds=self.settings.scoring.level_thresholds,
        )
        self.queue = EventQueue(
            handler=self._handle_event,
            tick_interval=self.settings.engine.tick_interval,
            max_size=self.settings.engine.queue_max_size,
        )

        self._running = False

    def _build_analyzers(self) -> List[WeightedAnalyzer]:
        scoring = self.settings.scoring
        analyzers = []

        if self.settings.anomaly.enabled:
            analyzers.append(WeightedAnalyzer(
                AnomalyDetector(self.settings.anomaly), scoring.anomaly_weight
            ))
        if self.settings.behavioral.enabled:
            analyzers.append(WeightedAnalyzer(
                BehavioralAnalyzer(self.settings.behavioral), scoring.behavioral_weight
            ))
        if self.settings.patterns.enabled:
            analyzers.append(WeightedAnalyzer(
                PatternMatcher(self.settings.patterns.match_threshold), scoring.pattern_weight
            ))
        if self.settings.correlation.enabled:
            analyzers.append(WeightedAnalyzer(
                CorrelationAnalyzer(), scoring.correlation_weight
            ))

        return analyzers

    @property
    def is_running(self) -> bool:
        return self._running

    async def initialize(self):
        """
        Load catalogs, seed baselines and start the queue drain.

        Raises:
            EngineStateError: If the engine is already running
            CatalogError: If a configured catalog file cannot be read
        """
        if self._running:
            raise EngineStateError("Threat detection engine already initialized")

        logger.info("Initializing threat detection engine...")

        if self.settings.patterns.enabled:
            self.state.signatures = load_signatures(
                self.settings.resolve_path(self.settings.patterns.signatures_path)
            )

        if self.settings.correlation.enabled:
            self.state.correlation_rules = load_correlation_rules(
                self.settings.resolve_path(self.settings.correlation.rules_path)
            )

        if self.settings.behavioral.seed_path:
            self.state.baselines.load_seeds(
                self.settings.resolve_path(self.settings.behavioral.seed_path)
            )

        await self.queue.start()
        self._running = True

        logger.info("Threat detection engine initialized")
        await self.hub.emit("initialized", self.get_stats())

    async def shutdown(self):
        """Drain pending events and stop the queue."""
        if not self._running:
            return

        logger.info("Shutting down threat detection engine...")
        await self.queue.stop()
        self._running = False
        logger.info("Threat detection engine stopped")

    def submit(self, event: EventInput) -> str:
        """
        Enqueue an event for the next drain.

        Returns:
            The event id
        """
        if not self._running:
            raise EngineNotReadyError()

        event = self._coerce(event)
        self.queue.submit(event)
        return event.id

    async def process_event(self, event: EventInput) -> DetectionResult:
        """
        Enqueue an event and wait for its detection result.

        Raises:
            EngineNotReadyError: If called before initialize()
        """
        if not self._running:
            raise EngineNotReadyError()

        return await self.queue.process(self._coerce(event))

    async def _handle_event(self, event: Event) -> DetectionResult:
        result = await self.scorer.evaluate(event, self.state)
        self.results.add(result)

        logger.debug(
            f"Event {event.id}: risk={result.risk_score} "
            f"level={result.threat_level} type={result.threat_type}"
        )

        await self.hub.emit("threat_detected", result)
        if result.is_high_risk:
            logger.warning(
                f"High risk threat on event {event.id}: "
                f"{result.threat_type} ({result.threat_level}, risk {result.risk_score})"
            )
            await self.hub.emit("high_risk_threat", result)

        return result

    @staticmethod
    def _coerce(event: EventInput) -> Event:
        if isinstance(event, Event):
            return event
        if isinstance(event, Mapping):
            return Event.from_dict(dict(event))
        raise TypeError(f"Expected Event or mapping, got {type(event).__name__}")

    def get_detection_results(self, limit: int = 100) -> List[DetectionResult]:
        """Most recent detection results, newest first."""
        return self.results.get_recent(limit)

    def get_threat_statistics(self) -> Dict[str, Any]:
        """Totals by level and type plus the mean risk score."""
        return self.results.get_statistics()

    def on(self, event_name: str, handler) -> Subscription:
        return self.hub.on(event_name, handler)

    def off(self, event_name: str, handler) -> bool:
        return self.hub.off(event_name, handler)

    def get_stats(self) -> Dict[str, Any]:
        """Get detection engine statistics."""
        return {
            "initialized": self._running,
            "analyzers": [
                {"name": a.analyzer.name, "weight": round(a.weight, 4)}
                for a in self.scorer.analyzers
            ],
            "signature_count": len(self.state.signatures),
            "correlation_rule_count": len(self.state.correlation_rules),
            "history_size": len(self.state.history),
            "baselines": self.state.baselines.get_stats(),
            "queue": self.queue.get_stats(),
            "results": self.results.get_stats(),
        }
