"""
ThreatWatch Detection Result Store

In-memory, fixed-capacity store of recent detection results.
"""

import logging
from collections import deque
from typing import Any, Deque, Dict, List

from ..events import DetectionResult

logger = logging.getLogger(__name__)

THREAT_LEVELS = ("critical", "high", "medium", "low", "info")


class DetectionResultStore:
    """
    Ring buffer of detection results, most recent first.

    Once ``max_results`` is reached each new result evicts the oldest one.
    Nothing survives a process restart.
    """

    def __init__(self, max_results: int = 1000):
        """
        Initialize result store.

        Args:
            max_results: Capacity of the ring buffer
        """
        self.max_results = max(1, max_results)
        self._results: Deque[DetectionResult] = deque(maxlen=self.max_results)
        self._total_stored = 0

    def __len__(self) -> int:
        return len(self._results)

    def add(self, result: DetectionResult):
        """Store a result at the front of the buffer."""
        self._results.appendleft(result)
        self._total_stored += 1

    def get_recent(self, limit: int = 100) -> List[DetectionResult]:
        """
        Get the most recent results.

        Args:
            limit: Maximum results

        Returns:
            Results, newest first
        """
        if limit <= 0:
            return []
        return list(self._results)[:limit]

    def get_by_id(self, result_id: str):
        for result in self._results:
            if result.id == result_id:
                return result
        return None

    def count_by_level(self) -> Dict[str, int]:
        """Get result count per threat level; every level is present."""
        counts = {level: 0 for level in THREAT_LEVELS}
        for result in self._results:
            counts[result.threat_level] = counts.get(result.threat_level, 0) + 1
        return counts

    def count_by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for result in self._results:
            counts[result.threat_type] = counts.get(result.threat_type, 0) + 1
        return counts

    def get_statistics(self) -> Dict[str, Any]:
        """
        Aggregate retained results.

        Returns:
            Total, counts by level and type, and mean risk score
        """
        total = len(self._results)
        average = sum(r.risk_score for r in self._results) / total if total else 0.0

        return {
            "total": total,
            "by_level": self.count_by_level(),
            "by_type": self.count_by_type(),
            "average_risk_score": round(average, 4),
        }

    def clear(self):
        self._results.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {
            "retained": len(self._results),
            "capacity": self.max_results,
            "total_stored": self._total_stored,
        }
