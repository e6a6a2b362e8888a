from datetime import datetime, timezone

import pytest
import pytest_asyncio

from threatwatch.config import Settings
from threatwatch.detection import DetectionState, ThreatDetectionEngine
from threatwatch.detection.anomaly import BaselineStore
from threatwatch.detection.correlation import CorrelationHistory, load_correlation_rules
from threatwatch.detection.patterns import load_signatures
from threatwatch.config.settings import RULES_DIR
from threatwatch.events import Event

# Wednesday, 10:00 UTC
WEEKDAY_MORNING = datetime(2024, 6, 12, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        engine={"tick_interval": 0.01},
        storage={"max_results": 50},
        base_path=tmp_path,
    )


@pytest.fixture
def make_event():
    counter = {"n": 0}

    def factory(event_type="login", timestamp=None, **fields):
        counter["n"] += 1
        return Event(
            id=fields.pop("id", f"evt-{counter['n']}"),
            timestamp=timestamp or WEEKDAY_MORNING,
            type=event_type,
            **fields,
        )

    return factory


@pytest.fixture
def state():
    return DetectionState(
        baselines=BaselineStore(),
        history=CorrelationHistory(window_seconds=3600, max_size=1000),
        signatures=load_signatures(RULES_DIR / "signatures.yml"),
        correlation_rules=load_correlation_rules(RULES_DIR / "correlation.yml"),
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = ThreatDetectionEngine(settings)
    await engine.initialize()
    yield engine
    await engine.shutdown()


