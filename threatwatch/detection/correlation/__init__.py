"""
ThreatWatch Correlation Package
"""

from .correlator import (
    CorrelationAnalyzer,
    CorrelationHistory,
    CorrelationRule,
    RuleCondition,
    load_correlation_rules,
)

__all__ = [
    "CorrelationAnalyzer",
    "CorrelationHistory",
    "CorrelationRule",
    "RuleCondition",
    "load_correlation_rules",
]
