from __future__ import annotations

import logging
import time

from rtd.monitoring.latency import LatencyMetrics
from rtd.monitoring.metrics import RuntimeMetrics


class PeriodicStatsLogger:
    def __init__(
        self,
        metrics: RuntimeMetrics,
        latency: LatencyMetrics,
        backend: str,
        interval_seconds: float = 5.0,
    ) -> None:
        self._metrics = metrics
        self._latency = latency
        self._backend = backend
        self._interval_seconds = max(0.5, interval_seconds)
        self._next_emit = time.monotonic() + self._interval_seconds
        self._logger = logging.getLogger("rtd.stats")

    def maybe_emit(self) -> bool:
        now = time.monotonic()
        if now < self._next_emit:
            return False

        counters = self._metrics.snapshot()
        latency = self._latency.snapshot()
        self._logger.info(
            "stats fps=%.2f median_ms=%.1f p95_ms=%.1f frames=%d submitted=%d evicted=%d failures=%d discarded=%d queue_depth=%d backend=%s",
            latency.fps,
            latency.median_latency_ms,
            latency.p95_latency_ms,
            latency.total_frames,
            counters.submitted,
            counters.evicted,
            counters.inference_failures,
            counters.discarded_results,
            counters.queue_depth,
            self._backend,
        )

        self._next_emit = now + self._interval_seconds
        return True
