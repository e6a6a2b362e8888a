"""
ThreatWatch Event Models

Telemetry events consumed by the engine and the detection results it produces.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..utils import ensure_utc, generate_uuid, get_current_timestamp, parse_timestamp

EVENT_TYPES = ("login", "network", "file_access", "process_execution")


@dataclass
class Event:
    """
    Security telemetry event.

    Which optional fields are populated depends on ``type``; an absent field
    carries no signal for any analyzer.
    """
    id: str
    timestamp: datetime
    type: str

    # Identity
    user_id: Optional[str] = None
    user_role: Optional[str] = None
    device_id: Optional[str] = None
    source_ip: Optional[str] = None

    # Login
    geo_country: Optional[str] = None
    user_country: Optional[str] = None
    login_attempts: Optional[int] = None
    failed_ratio: Optional[float] = None
    unique_ips: Optional[int] = None

    # Network
    bytes_transferred: Optional[float] = None
    destination_country: Optional[str] = None
    destination_internal: Optional[bool] = None
    protocol: Optional[str] = None
    network_connections: Optional[int] = None

    # File access
    files_accessed: Optional[int] = None
    file_path: Optional[str] = None
    file_extension: Optional[str] = None

    # Process / application
    process_name: Optional[str] = None
    command_line: Optional[str] = None
    application: Optional[str] = None
    privilege_level: Optional[int] = None
    action_count: Optional[int] = None
    cpu_usage: Optional[float] = None
    memory_usage: Optional[float] = None

    # Web request
    request_body: Optional[str] = None
    response_code: Optional[int] = None

    # Explicit hour of day; defaults to the timestamp's hour
    hour: Optional[int] = None

    # Anything else the sensor sent
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.timestamp = ensure_utc(self.timestamp)

    def get(self, name: str, default: Any = None) -> Any:
        """
        Look up a field by name, falling back to ``extra``.

        Used by signature and rule matching, which address fields by name.
        """
        if name == "hour":
            return self.hour if self.hour is not None else self.timestamp.hour
        if name in _FIELD_NAMES:
            value = getattr(self, name)
            return default if value is None else value
        return self.extra.get(name, default)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """
        Build an event from a plain mapping.

        Unknown keys are kept in ``extra``; a missing id is generated and a
        missing or unparseable timestamp falls back to the current time.
        """
        known = {}
        extra = dict(data.get("extra") or {})

        for key, value in data.items():
            if key == "extra":
                continue
            if key in _FIELD_NAMES:
                known[key] = value
            else:
                extra[key] = value

        timestamp = parse_timestamp(known.pop("timestamp", None)) or get_current_timestamp()
        event_id = known.pop("id", None) or generate_uuid()
        event_type = known.pop("type", None) or "unknown"

        return cls(
            id=str(event_id),
            timestamp=timestamp,
            type=str(event_type),
            extra=extra,
            **known,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary, dropping empty optional fields."""
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extra" and getattr(self, f.name) is not None
        }
        data["timestamp"] = self.timestamp.isoformat()
        data.update(self.extra)
        return data


_FIELD_NAMES = frozenset(f.name for f in fields(Event)) - {"extra"}


@dataclass(frozen=True)
class Indicator:
    """A single piece of evidence contributing to a detection."""
    type: str
    subtype: str
    value: str
    confidence: float

    @property
    def key(self) -> Tuple[str, str]:
        return (self.type, self.value)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Recommendation:
    """Remediation step attached to a detection."""
    priority: str
    action: str
    description: str
    timeframe: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalyzerOutput:
    """Score and evidence produced by one analyzer for one event."""
    score: float = 0.0
    indicators: List[Indicator] = field(default_factory=list)


@dataclass(frozen=True)
class DetectionResult:
    """
    Outcome of processing one event.

    Created once per processed event and never modified afterwards.
    """
    id: str
    event_id: str
    timestamp: datetime
    risk_score: float
    confidence: float
    threat_level: str
    threat_type: str
    indicators: Tuple[Indicator, ...] = ()
    recommendations: Tuple[Recommendation, ...] = ()
    analyzer_scores: Tuple[Tuple[str, float], ...] = ()

    @property
    def is_high_risk(self) -> bool:
        return self.threat_level in ("high", "critical")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and notifications."""
        return {
            "id": self.id,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "risk_score": self.risk_score,
            "confidence": self.confidence,
            "threat_level": self.threat_level,
            "threat_type": self.threat_type,
            "indicators": [i.to_dict() for i in self.indicators],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "analyzer_scores": dict(self.analyzer_scores),
        }
