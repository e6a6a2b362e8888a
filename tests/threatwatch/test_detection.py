"""
Tests for the analyzers and the threat scorer.
"""

from datetime import datetime, timezone

import pytest

from threatwatch.detection import ThreatScorer, WeightedAnalyzer
from threatwatch.detection.anomaly import AnomalyDetector, BehavioralAnalyzer
from threatwatch.detection.base import Analyzer
from threatwatch.detection.patterns import AttackSignature, PatternMatcher
from threatwatch.events import AnalyzerOutput, Indicator
from threatwatch.exceptions import CatalogError

SATURDAY_NIGHT = datetime(2024, 6, 15, 3, 0, tzinfo=timezone.utc)


class FixedAnalyzer(Analyzer):

    def __init__(self, name, score, indicators=None):
        self.name = name
        self._output = AnalyzerOutput(score=score, indicators=list(indicators or []))

    async def score(self, event, state):
        return self._output


class BrokenAnalyzer(Analyzer):
    name = "broken"

    async def score(self, event, state):
        raise RuntimeError("analyzer exploded")


class TestAnomalyDetector:

    @pytest.fixture
    def detector(self):
        return AnomalyDetector()

    @pytest.mark.asyncio
    async def test_login_all_heuristics(self, detector, make_event, state):
        event = make_event(
            "login", timestamp=SATURDAY_NIGHT, geo_country="CN", user_country="US"
        )

        output = await detector.score(event, state)

        assert output.score == pytest.approx(0.9)
        assert len(output.indicators) == 1
        indicator = output.indicators[0]
        assert indicator.type == "anomaly"
        assert indicator.subtype == "login_anomaly"
        assert "Unusual login time" in indicator.value
        assert "Weekend login" in indicator.value
        assert "Login from unusual location" in indicator.value

    @pytest.mark.asyncio
    async def test_admin_weekend_login_not_flagged(self, detector, make_event, state):
        event = make_event("login", timestamp=SATURDAY_NIGHT, user_role="admin")

        output = await detector.score(event, state)

        assert output.score == pytest.approx(0.3)
        assert output.indicators == []

    @pytest.mark.asyncio
    async def test_location_needs_both_countries(self, detector, make_event, state):
        event = make_event("login", geo_country="CN")

        output = await detector.score(event, state)

        assert output.score == 0.0

    @pytest.mark.asyncio
    async def test_network_anomaly(self, detector, make_event, state):
        event = make_event(
            "network",
            bytes_transferred=2_000_000_000,
            destination_country="KP",
            protocol="TOR",
        )

        output = await detector.score(event, state)

        assert output.score == pytest.approx(1.0)
        assert output.indicators[0].subtype == "network_anomaly"
        assert "Large data transfer" in output.indicators[0].value

    @pytest.mark.asyncio
    async def test_below_threshold_has_score_but_no_indicator(self, detector, make_event, state):
        event = make_event("network", protocol="https", destination_country="RU")

        output = await detector.score(event, state)

        assert output.score == pytest.approx(0.3)
        assert output.indicators == []

    @pytest.mark.asyncio
    async def test_file_access_anomaly(self, detector, make_event, state):
        event = make_event(
            "file_access",
            files_accessed=250,
            file_path="/srv/Confidential/payroll.xlsx",
            file_extension="PS1",
        )

        output = await detector.score(event, state)

        assert output.score == pytest.approx(1.0)
        assert output.indicators[0].subtype == "file_access_anomaly"

    @pytest.mark.asyncio
    async def test_explicit_hour_overrides_timestamp(self, detector, make_event, state):
        noon = datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc)
        event = make_event("login", timestamp=noon, hour=3)

        output = await detector.score(event, state)

        assert output.score == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_non_string_fields_carry_no_signal(self, detector, make_event, state):
        event = make_event(
            "network",
            bytes_transferred=5_000_000_000,
            destination_country=7,
            protocol=["TOR"],
        )

        output = await detector.score(event, state)

        assert output.score == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_non_string_login_and_file_fields(self, detector, make_event, state):
        login = make_event(
            "login", timestamp=SATURDAY_NIGHT, user_role=1, geo_country=86, user_country="US"
        )
        file_access = make_event(
            "file_access", files_accessed=500, file_path=b"/srv/confidential", file_extension=None
        )

        assert (await detector.score(login, state)).score == pytest.approx(0.5)
        assert (await detector.score(file_access, state)).score == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_other_event_types_score_zero(self, detector, make_event, state):
        output = await detector.score(make_event("process_execution"), state)

        assert output.score == 0.0
        assert output.indicators == []


class TestBehavioralAnalyzer:

    @pytest.fixture
    def analyzer(self):
        return BehavioralAnalyzer()

    @pytest.mark.asyncio
    async def test_user_deviation(self, analyzer, make_event, state):
        event = make_event(
            "process_execution",
            user_id="bob",
            action_count=200,
            application="mimikatz",
            privilege_level=3,
        )

        output = await analyzer.score(event, state)

        assert output.score == pytest.approx(1.0)
        assert output.indicators[0].type == "behavioral"
        assert output.indicators[0].subtype == "user_behavior"
        assert "Privilege escalation attempt" in output.indicators[0].value

    @pytest.mark.asyncio
    async def test_device_deviation(self, analyzer, make_event, state):
        event = make_event(
            "network", device_id="laptop-7", cpu_usage=90, network_connections=100
        )

        output = await analyzer.score(event, state)

        assert output.score == pytest.approx(0.7)
        assert output.indicators[0].subtype == "device_behavior"

    @pytest.mark.asyncio
    async def test_profile_created_lazily(self, analyzer, make_event, state):
        await analyzer.score(make_event("login", user_id="carol"), state)

        assert state.baselines.get_stats()["user_profiles"] == 1

    @pytest.mark.asyncio
    async def test_seeded_profile_changes_outcome(self, analyzer, make_event, state):
        state.baselines.update_user_profile("ops", normal_privilege_level=3)

        output = await analyzer.score(
            make_event("process_execution", user_id="ops", privilege_level=3), state
        )

        assert output.score == 0.0

    @pytest.mark.asyncio
    async def test_weak_deviation_scores_without_indicator(self, analyzer, make_event, state):
        output = await analyzer.score(
            make_event("login", user_id="dave", application="Slack"), state
        )

        assert output.score == pytest.approx(0.3)
        assert output.indicators == []


class TestPatternMatcher:

    @pytest.fixture
    def matcher(self):
        return PatternMatcher(match_threshold=0.6)

    @pytest.mark.asyncio
    async def test_sql_injection(self, matcher, make_event, state):
        event = make_event(
            "web_request",
            request_body="id=1'; -- UNION SELECT password FROM users",
            response_code=500,
        )

        output = await matcher.score(event, state)

        assert output.score == pytest.approx(1.0)
        assert output.indicators[0].subtype == "sql_injection"
        assert output.indicators[0].value == "matched 3/3 components"

    @pytest.mark.asyncio
    async def test_partial_match_below_threshold(self, matcher, make_event, state):
        event = make_event("web_request", request_body="SELECT 1")

        output = await matcher.score(event, state)

        assert output.score == 0.0
        assert output.indicators == []

    @pytest.mark.asyncio
    async def test_data_exfiltration_uses_timestamp_hour(self, matcher, make_event, state):
        event = make_event(
            "network",
            timestamp=SATURDAY_NIGHT,
            bytes_transferred=5_000_000,
            destination_internal=False,
        )

        output = await matcher.score(event, state)

        assert output.score == pytest.approx(1.0)
        assert [i.subtype for i in output.indicators] == ["data_exfiltration"]

    @pytest.mark.asyncio
    async def test_boolean_match_is_strict(self, matcher, make_event, state):
        event = make_event(
            "network",
            timestamp=SATURDAY_NIGHT,
            bytes_transferred=5_000_000,
            destination_internal=0,
        )

        output = await matcher.score(event, state)

        # 0.4 + 0.3 without the external destination component
        assert output.score == pytest.approx(0.7)

    def test_signature_validation(self):
        with pytest.raises(CatalogError):
            AttackSignature.from_dict({"name": "empty", "components": []})

        with pytest.raises(CatalogError):
            AttackSignature.from_dict({
                "name": "bad_regex",
                "components": [
                    {"type": "field_regex", "field": "command_line", "pattern": "("},
                ],
            })

    def test_signatures_loaded_from_catalog(self, state):
        names = {s.name for s in state.signatures}
        assert {"credential_stuffing", "sql_injection", "data_exfiltration", "malware"} <= names


class TestThreatScorer:

    @pytest.fixture
    def scorer(self):
        return ThreatScorer([])

    @pytest.mark.parametrize("score,level", [
        (0.95, "critical"),
        (0.9, "critical"),
        (0.85, "high"),
        (0.6, "medium"),
        (0.3, "low"),
        (0.29, "info"),
        (0.0, "info"),
    ])
    def test_classify_level(self, scorer, score, level):
        assert scorer.classify_level(score) == level

    @pytest.mark.parametrize("score,confidence", [
        (0.0, 10),
        (0.5, 50),
        (0.99, 95),
    ])
    def test_confidence_bounds(self, scorer, score, confidence):
        assert scorer.calculate_confidence(score) == confidence

    def test_threat_type_priority(self, scorer):
        indicators = [
            Indicator("pattern", "data_exfiltration", "matched 3/3 components", 1.0),
            Indicator("pattern", "malware", "matched 2/3 components", 0.8),
        ]

        assert scorer.classify_threat(0.1, indicators) == "malware"

    @pytest.mark.parametrize("score,threat_type", [
        (0.75, "high_risk_anomaly"),
        (0.5, "suspicious_activity"),
        (0.4, "low_risk"),
    ])
    def test_threat_type_by_score(self, scorer, score, threat_type):
        assert scorer.classify_threat(score, []) == threat_type

    def test_deduplicate_keeps_first(self, scorer):
        first = Indicator("anomaly", "login_anomaly", "Unusual login time", 0.9)
        second = Indicator("anomaly", "other", "Unusual login time", 0.5)

        assert scorer.deduplicate([first, second]) == [first]

    def test_recommendations(self, scorer):
        actions = [r.action for r in scorer.recommend(0.85, "data_exfiltration")]
        assert actions == ["immediate_isolation", "network_monitoring"]

        actions = [r.action for r in scorer.recommend(0.5, "malware")]
        assert actions == ["malware_scan"]

        assert scorer.recommend(0.8, "low_risk") == []

    def test_weights_are_normalized(self):
        scorer = ThreatScorer([
            WeightedAnalyzer(FixedAnalyzer("a", 1.0), 3),
            WeightedAnalyzer(FixedAnalyzer("b", 1.0), 1),
        ])

        assert [a.weight for a in scorer.analyzers] == [0.75, 0.25]

    def test_caller_weights_untouched(self):
        entries = [
            WeightedAnalyzer(FixedAnalyzer("a", 1.0), 3),
            WeightedAnalyzer(FixedAnalyzer("b", 1.0), 1),
        ]

        ThreatScorer(entries)

        assert [e.weight for e in entries] == [3, 1]

    @pytest.mark.asyncio
    async def test_weighted_sum(self, make_event, state):
        scorer = ThreatScorer([
            WeightedAnalyzer(FixedAnalyzer("anomaly", 1.0), 0.30),
            WeightedAnalyzer(FixedAnalyzer("behavioral", 0.0), 0.25),
            WeightedAnalyzer(FixedAnalyzer("pattern", 1.0), 0.25),
            WeightedAnalyzer(FixedAnalyzer("correlation", 0.5), 0.20),
        ])

        result = await scorer.evaluate(make_event(), state)

        assert result.risk_score == pytest.approx(0.65)
        assert result.threat_level == "medium"
        assert result.confidence == 65
        assert dict(result.analyzer_scores) == {
            "anomaly": 1.0, "behavioral": 0.0, "pattern": 1.0, "correlation": 0.5,
        }

    @pytest.mark.asyncio
    async def test_failing_analyzer_contributes_zero(self, make_event, state):
        scorer = ThreatScorer([
            WeightedAnalyzer(BrokenAnalyzer(), 0.5),
            WeightedAnalyzer(FixedAnalyzer("pattern", 1.0), 0.5),
        ])

        result = await scorer.evaluate(make_event(), state)

        assert result.risk_score == pytest.approx(0.5)
        assert dict(result.analyzer_scores)["broken"] == 0.0

    @pytest.mark.asyncio
    async def test_result_is_bounded_and_deduplicated(self, make_event, state):
        duplicate = Indicator("pattern", "malware", "matched 3/3 components", 1.0)
        scorer = ThreatScorer([
            WeightedAnalyzer(FixedAnalyzer("a", 7.0, [duplicate]), 1),
            WeightedAnalyzer(FixedAnalyzer("b", 1.0, [duplicate]), 1),
        ])

        result = await scorer.evaluate(make_event(), state)

        assert 0.0 <= result.risk_score <= 1.0
        assert 10 <= result.confidence <= 95
        assert len(result.indicators) == 1
        assert result.threat_type == "malware"
        assert result.id.startswith("detection_")
