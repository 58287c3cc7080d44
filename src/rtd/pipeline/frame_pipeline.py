from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Hashable, Sequence

from rtd.monitoring.latency import LatencyMetrics
from rtd.monitoring.logging import frame_context
from rtd.monitoring.metrics import RuntimeMetrics
from rtd.pipeline.frame_queue import LatestFrameQueue
from rtd.types import Detection, Frame, FrameResult

DetectFn = Callable[[Frame], Sequence[Detection]]
ResultFn = Callable[[FrameResult], None]


def now_ms() -> float:
    return time.time() * 1000.0


class FrameState(str, Enum):
    QUEUED = "queued"
    DISPATCHED = "dispatched"


class FramePipeline:
    """Bounded drop-oldest frame pipeline with one inference in flight.

    Frames wait in a ``LatestFrameQueue``; when it is full the oldest
    queued frame is evicted. ``dispatch`` hands the oldest queued frame to
    ``detect`` on a single worker thread and is a no-op while a frame is
    already in flight. Completed results are paired with their frame id
    and capture timestamp and passed to ``on_result``. Frames are tracked
    only while queued or dispatched; a result for an untracked frame is
    logged and dropped.
    """

    def __init__(
        self,
        detect: DetectFn,
        on_result: ResultFn,
        *,
        capacity: int = 3,
        latency: LatencyMetrics | None = None,
        metrics: RuntimeMetrics | None = None,
        clock: Callable[[], float] = now_ms,
        auto_dispatch: bool = True,
    ) -> None:
        self._detect = detect
        self._on_result = on_result
        self._queue: LatestFrameQueue[Frame] = LatestFrameQueue(maxsize=capacity)
        self._latency = latency
        self._metrics = metrics or RuntimeMetrics()
        self._clock = clock
        self._auto_dispatch = auto_dispatch
        self._logger = logging.getLogger("rtd.pipeline")

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._states: dict[Hashable, FrameState] = {}
        self._received_at: dict[Hashable, float] = {}
        self._in_flight: Frame | None = None
        self._delivering = 0
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rtd-infer")

    @property
    def capacity(self) -> int:
        return self._queue.maxsize()

    @property
    def metrics(self) -> RuntimeMetrics:
        return self._metrics

    def queued_count(self) -> int:
        return self._queue.qsize()

    def queued_ids(self) -> list[Hashable]:
        return [frame.frame_id for frame in self._queue.snapshot()]

    def in_flight(self) -> Hashable | None:
        with self._lock:
            return self._in_flight.frame_id if self._in_flight is not None else None

    def state(self, frame_id: Hashable) -> FrameState | None:
        with self._lock:
            return self._states.get(frame_id)

    def submit(self, frame: Frame) -> int:
        """Queue ``frame``, evicting the oldest queued frame when full.

        Returns the number of evicted frames. Never blocks on inference.
        """
        with self._lock:
            if self._closed:
                self._logger.warning(
                    "submit after close ignored frame_id=%s",
                    frame.frame_id,
                    extra=frame_context(frame.frame_id),
                )
                return 0
            if frame.frame_id in self._states:
                raise ValueError(f"frame_id {frame.frame_id!r} is already in the pipeline")

            evicted = self._queue.put_latest(frame)
            self._states[frame.frame_id] = FrameState.QUEUED
            self._received_at[frame.frame_id] = self._clock()
            if evicted is not None:
                self._states.pop(evicted.frame_id, None)
                self._received_at.pop(evicted.frame_id, None)
            depth = self._queue.qsize()

        self._metrics.mark_submitted()
        self._metrics.set_queue_depth(depth)
        if evicted is not None:
            self._metrics.add_evicted()
            self._logger.debug(
                "evicted frame_id=%s for frame_id=%s queue_depth=%d",
                evicted.frame_id,
                frame.frame_id,
                depth,
            )

        if self._auto_dispatch:
            self.dispatch()
        return 0 if evicted is None else 1

    def dispatch(self) -> bool:
        """Start inference on the oldest queued frame unless one is in flight."""
        with self._lock:
            if self._closed or self._in_flight is not None:
                return False
            frame = self._queue.get_nowait()
            if frame is None:
                return False
            self._in_flight = frame
            self._states[frame.frame_id] = FrameState.DISPATCHED
            depth = self._queue.qsize()
            self._executor.submit(self._run, frame)

        self._metrics.mark_dispatched()
        self._metrics.set_queue_depth(depth)
        return True

    def _run(self, frame: Frame) -> None:
        detections: Sequence[Detection]
        try:
            detections = self._detect(frame)
        except Exception as exc:
            self._metrics.mark_inference_failure()
            self._logger.warning(
                "inference failed frame_id=%s error=%s: %s",
                frame.frame_id,
                type(exc).__name__,
                exc,
                extra=frame_context(frame.frame_id, error=type(exc).__name__),
            )
            detections = ()
        self.complete(frame.frame_id, detections)

    def complete(self, frame_id: Hashable, detections: Sequence[Detection]) -> bool:
        """Deliver a result for the in-flight frame.

        Returns False when ``frame_id`` is not the frame in flight, which
        happens for late results after eviction or teardown.
        """
        completed_at = self._clock()
        with self._lock:
            frame = self._in_flight
            if frame is None or frame.frame_id != frame_id:
                delivered = False
            else:
                delivered = True
                self._in_flight = None
                self._delivering += 1
                self._states.pop(frame_id, None)
                recv_ts = self._received_at.pop(frame_id, completed_at)

        if not delivered:
            self._metrics.mark_discarded()
            self._logger.warning(
                "discarding result for untracked frame_id=%s",
                frame_id,
                extra=frame_context(frame_id),
            )
            self._notify_idle()
            return False

        result = FrameResult(
            frame_id=frame.frame_id,
            capture_ts=frame.capture_ts,
            recv_ts=recv_ts,
            inference_ts=completed_at,
            detections=tuple(detections),
        )
        if self._latency is not None:
            self._latency.record(frame.capture_ts, completed_at)
        self._metrics.mark_completed()

        try:
            self._on_result(result)
        except Exception:
            self._logger.exception(
                "result consumer failed frame_id=%s",
                frame_id,
                extra=frame_context(frame_id),
            )
        finally:
            with self._lock:
                self._delivering -= 1

        if self._auto_dispatch:
            self.dispatch()
        self._notify_idle()
        return True

    def _notify_idle(self) -> None:
        with self._idle:
            self._idle.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no frame is queued or in flight."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._in_flight is not None or self._delivering or not self._queue.empty():
                if self._closed:
                    return True
                if not self._auto_dispatch and self._in_flight is None:
                    return False
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(timeout=remaining)
            return True

    def close(self, wait: bool = True) -> None:
        """Tear down: drop queued frames and forget the in-flight frame."""
        with self._lock:
            already_closed = self._closed
            self._closed = True
            dropped = self._queue.drain()
            in_flight = self._in_flight
            self._in_flight = None
            self._states.clear()
            self._received_at.clear()

        if not already_closed:
            self._metrics.set_queue_depth(0)
            self._logger.info(
                "pipeline closed dropped_queued=%d abandoned_in_flight=%s",
                len(dropped),
                in_flight.frame_id if in_flight is not None else None,
            )
        self._notify_idle()
        self._executor.shutdown(wait=wait)
