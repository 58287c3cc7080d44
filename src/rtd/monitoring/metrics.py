from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass
class PipelineCounters:
    submitted: int
    evicted: int
    dispatched: int
    completed: int
    inference_failures: int
    discarded_results: int
    queue_depth: int


class RuntimeMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._submitted = 0
        self._evicted = 0
        self._dispatched = 0
        self._completed = 0
        self._inference_failures = 0
        self._discarded_results = 0
        self._queue_depth = 0

        self._prometheus_started = False
        self._prometheus_counters = None

    def enable_prometheus(self, host: str, port: int) -> bool:
        try:
            from prometheus_client import Counter, Gauge, start_http_server
        except ImportError:
            return False

        if self._prometheus_started:
            return True

        start_http_server(port, addr=host)
        self._prometheus_started = True
        self._prometheus_counters = {
            "submitted": Counter("rtd_frames_submitted_total", "Frames submitted to the pipeline"),
            "evicted": Counter("rtd_frames_evicted_total", "Queued frames evicted by backpressure"),
            "dispatched": Counter("rtd_frames_dispatched_total", "Frames handed to inference"),
            "completed": Counter("rtd_frames_completed_total", "Frames with delivered results"),
            "failures": Counter("rtd_inference_failures_total", "Inference calls that failed"),
            "discarded": Counter("rtd_results_discarded_total", "Results for frames no longer tracked"),
            "queue_depth": Gauge("rtd_queue_depth", "Frames waiting for dispatch"),
        }
        return True

    def _inc(self, key: str, count: int = 1) -> None:
        if self._prometheus_counters:
            self._prometheus_counters[key].inc(count)

    def mark_submitted(self) -> None:
        with self._lock:
            self._submitted += 1
            self._inc("submitted")

    def add_evicted(self, count: int = 1) -> None:
        with self._lock:
            self._evicted += count
            self._inc("evicted", count)

    def mark_dispatched(self) -> None:
        with self._lock:
            self._dispatched += 1
            self._inc("dispatched")

    def mark_completed(self) -> None:
        with self._lock:
            self._completed += 1
            self._inc("completed")

    def mark_inference_failure(self) -> None:
        with self._lock:
            self._inference_failures += 1
            self._inc("failures")

    def mark_discarded(self) -> None:
        with self._lock:
            self._discarded_results += 1
            self._inc("discarded")

    def set_queue_depth(self, depth: int) -> None:
        with self._lock:
            self._queue_depth = depth
            if self._prometheus_counters:
                self._prometheus_counters["queue_depth"].set(depth)

    def snapshot(self) -> PipelineCounters:
        with self._lock:
            return PipelineCounters(
                submitted=self._submitted,
                evicted=self._evicted,
                dispatched=self._dispatched,
                completed=self._completed,
                inference_failures=self._inference_failures,
                discarded_results=self._discarded_results,
                queue_depth=self._queue_depth,
            )
