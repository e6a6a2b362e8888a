"""
ThreatWatch Pattern Matcher

Matches events against weighted attack signatures loaded from YAML.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Tuple

from ..base import Analyzer, DetectionState
from ..catalog import catalog_entries
from ...exceptions import CatalogError
from ...events import AnalyzerOutput, Event, Indicator
from ...utils import is_number

logger = logging.getLogger(__name__)

COMPONENT_TYPES = ("field_match", "field_contains", "field_regex", "field_range")


@dataclass
class SignatureComponent:
    """One weighted field test within a signature."""
    name: str
    type: str
    field: str
    weight: float
    value: Any = None
    pattern: Optional[Pattern] = None
    min: Optional[float] = None
    max: Optional[float] = None

    def matches(self, event: Event) -> bool:
        actual = event.get(self.field)
        if actual is None:
            return False

        if self.type == "field_match":
            # True == 1 in Python; booleans only match booleans
            if isinstance(self.value, bool) or isinstance(actual, bool):
                return isinstance(actual, bool) and isinstance(self.value, bool) and actual is self.value
            return actual == self.value

        if self.type == "field_contains":
            return isinstance(actual, str) and str(self.value) in actual

        if self.type == "field_regex":
            return self.pattern.search(str(actual)) is not None

        if self.type == "field_range":
            if not is_number(actual):
                return False
            if self.min is not None and actual < self.min:
                return False
            if self.max is not None and actual > self.max:
                return False
            return True

        return False


@dataclass
class AttackSignature:
    """
    Attack signature.

    The match score is the weight of the matched components over the total
    weight of all components.
    """
    name: str
    severity: str = "medium"
    description: str = ""
    components: List[SignatureComponent] = field(default_factory=list)

    @property
    def total_weight(self) -> float:
        return sum(c.weight for c in self.components)

    def match(self, event: Event) -> Tuple[float, List[str]]:
        """Return (normalized match score, names of matched components)."""
        total = self.total_weight
        if total <= 0:
            return 0.0, []

        matched = [c for c in self.components if c.matches(event)]
        score = sum(c.weight for c in matched) / total
        return score, [c.name for c in matched]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttackSignature":
        name = data.get("name")
        if not name:
            raise CatalogError("signature is missing a name")

        raw_components = data.get("components") or []
        if not raw_components:
            raise CatalogError(f"signature '{name}' has no components")

        components = [_parse_component(name, raw) for raw in raw_components]

        return cls(
            name=str(name),
            severity=str(data.get("severity", "medium")),
            description=str(data.get("description", "")),
            components=components,
        )


def _parse_component(signature: str, raw: Dict[str, Any]) -> SignatureComponent:
    if not isinstance(raw, dict):
        raise CatalogError(f"signature '{signature}': component must be a mapping")

    ctype = raw.get("type")
    if ctype not in COMPONENT_TYPES:
        raise CatalogError(f"signature '{signature}': unknown component type {ctype!r}")

    field_name = raw.get("field")
    if not field_name:
        raise CatalogError(f"signature '{signature}': component is missing a field")

    weight = raw.get("weight", 1.0)
    if not is_number(weight) or weight < 0:
        raise CatalogError(f"signature '{signature}': invalid weight {weight!r}")

    component = SignatureComponent(
        name=str(raw.get("name", field_name)),
        type=ctype,
        field=str(field_name),
        weight=float(weight),
        value=raw.get("value"),
        min=raw.get("min"),
        max=raw.get("max"),
    )

    if ctype == "field_regex":
        try:
            component.pattern = re.compile(str(raw.get("pattern", "")))
        except re.error as e:
            raise CatalogError(f"signature '{signature}': invalid regex: {e}") from e
    elif ctype in ("field_match", "field_contains") and component.value is None:
        raise CatalogError(f"signature '{signature}': {ctype} needs a value")
    elif ctype == "field_range":
        for bound in (component.min, component.max):
            if bound is not None and not is_number(bound):
                raise CatalogError(f"signature '{signature}': range bounds must be numbers")

    return component


def load_signatures(path: Path) -> List[AttackSignature]:
    signatures = []
    for entry in catalog_entries(path, "signatures"):
        try:
            signatures.append(AttackSignature.from_dict(entry))
        except CatalogError as e:
            logger.warning(f"Failed to load signature from {path}: {e}")

    logger.info(f"Loaded {len(signatures)} attack signatures")
    return signatures


class PatternMatcher(Analyzer):
    """Scores an event by its best matching signature above the threshold."""

    name = "pattern"

    def __init__(self, match_threshold: float = 0.6):
        self.match_threshold = match_threshold

    async def score(self, event: Event, state: DetectionState) -> AnalyzerOutput:
        score = 0.0
        indicators = []

        for signature in state.signatures:
            match_score, matched = signature.match(event)
            if match_score <= self.match_threshold:
                continue

            score = max(score, match_score)
            indicators.append(Indicator(
                type="pattern",
                subtype=signature.name,
                value=f"matched {len(matched)}/{len(signature.components)} components",
                confidence=round(match_score, 4),
            ))

        return AnalyzerOutput(score=score, indicators=indicators)
