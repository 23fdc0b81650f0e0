"""Metrics tracking for recommendation endpoints.

Counts calls and latency per endpoint, and how many products each fallback
tier contributed. One instance lives on the application state.
"""

import threading
from collections import defaultdict
from typing import Dict, Mapping, Optional


class EndpointStats:
    """Call count and latency bounds for one endpoint."""

    def __init__(self):
        self.count = 0
        self.total_latency_ms = 0.0
        self.min_latency_ms = float("inf")
        self.max_latency_ms = 0.0

    def record(self, latency_ms: float) -> None:
        self.count += 1
        self.total_latency_ms += latency_ms
        self.min_latency_ms = min(self.min_latency_ms, latency_ms)
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)

    def as_dict(self) -> Dict[str, float]:
        average = self.total_latency_ms / self.count if self.count else 0.0
        return {
            "count": self.count,
            "average_latency_ms": round(average, 2),
            "min_latency_ms": round(self.min_latency_ms, 2) if self.count else 0.0,
            "max_latency_ms": round(self.max_latency_ms, 2),
        }


class MetricsService:
    """Thread-safe endpoint and tier counters."""

    def __init__(self):
        self._lock = threading.Lock()
        self._endpoints: Dict[str, EndpointStats] = defaultdict(EndpointStats)
        self._tiers: Dict[str, int] = defaultdict(int)

    def record_call(
        self,
        endpoint: str,
        latency_ms: float,
        tier_counts: Optional[Mapping[str, int]] = None,
    ) -> None:
        """Record one call to ``endpoint``.

        Args:
            endpoint: Endpoint name
            latency_ms: Latency in milliseconds
            tier_counts: Products contributed per fallback tier, if any
        """
        with self._lock:
            self._endpoints[endpoint].record(latency_ms)
            for tier, count in (tier_counts or {}).items():
                self._tiers[tier] += count

    def get_metrics(self) -> Dict:
        with self._lock:
            return {
                "endpoints": {name: stats.as_dict() for name, stats in self._endpoints.items()},
                "tiers": dict(self._tiers),
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._endpoints.clear()
            self._tiers.clear()
