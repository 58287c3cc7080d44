from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class LatencySnapshot:
    median_latency_ms: float
    p95_latency_ms: float
    fps: float
    total_frames: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "median_latency_ms": self.median_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "processed_fps": self.fps,
            "total_frames": self.total_frames,
        }


@dataclass
class _Epoch:
    started_at: float
    window: int
    frames: int = 0
    latencies: deque = field(init=False)

    def __post_init__(self) -> None:
        self.latencies = deque(maxlen=self.window)


class LatencyMetrics:
    """End-to-end latency and throughput over a resettable epoch.

    Latencies keep the units of the timestamps passed to ``record``
    (milliseconds in the pipeline). Percentiles cover the most recent
    ``window`` samples; ``total_frames`` counts every record in the epoch.
    """

    def __init__(
        self,
        window: int = 2048,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = max(1, int(window))
        self._clock = clock
        self._lock = threading.Lock()
        self._epoch = _Epoch(started_at=clock(), window=self._window)

    def record(self, capture_ts: float, completion_ts: float) -> None:
        latency = float(completion_ts) - float(capture_ts)
        with self._lock:
            self._epoch.latencies.append(latency)
            self._epoch.frames += 1

    def reset(self) -> None:
        fresh = _Epoch(started_at=self._clock(), window=self._window)
        with self._lock:
            self._epoch = fresh

    def snapshot(self) -> LatencySnapshot:
        with self._lock:
            latencies = sorted(self._epoch.latencies)
            frames = self._epoch.frames
            started_at = self._epoch.started_at

        count = len(latencies)
        median = latencies[count // 2] if count else 0.0
        p95 = latencies[math.floor(count * 0.95)] if count else 0.0
        elapsed = self._clock() - started_at
        fps = frames / elapsed if elapsed > 0 else 0.0
        return LatencySnapshot(
            median_latency_ms=median,
            p95_latency_ms=p95,
            fps=fps,
            total_frames=frames,
        )
