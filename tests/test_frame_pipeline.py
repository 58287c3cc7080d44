from __future__ import annotations

import threading
import unittest

from rtd.detector.errors import InferenceFailure, MalformedOutput
from rtd.monitoring.latency import LatencyMetrics
from rtd.pipeline.frame_pipeline import FramePipeline, FrameState
from rtd.types import Box, Detection, Frame, FrameResult

DETECTION = Detection(label="person", score=0.9, box=Box(0.1, 0.1, 0.5, 0.5), class_id=0)


def _frame(frame_id: int, capture_ts: float = 0.0) -> Frame:
    return Frame(frame_id=frame_id, capture_ts=capture_ts, payload=b"", width=640, height=480)


class Collector:
    def __init__(self) -> None:
        self.results: list[FrameResult] = []
        self.arrived = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, result: FrameResult) -> None:
        with self._lock:
            self.results.append(result)
        self.arrived.set()

    def ids(self) -> list[object]:
        with self._lock:
            return [result.frame_id for result in self.results]


class FramePipelineQueueTests(unittest.TestCase):
    def setUp(self) -> None:
        self.collector = Collector()
        self.pipeline = FramePipeline(
            lambda frame: [DETECTION],
            self.collector,
            capacity=3,
            auto_dispatch=False,
        )

    def tearDown(self) -> None:
        self.pipeline.close()

    def test_capacity_plus_one_evicts_first_frame(self) -> None:
        evicted = [self.pipeline.submit(_frame(i)) for i in range(1, 5)]

        self.assertEqual(evicted, [0, 0, 0, 1])
        self.assertEqual(self.pipeline.queued_ids(), [2, 3, 4])
        self.assertIsNone(self.pipeline.state(1))
        self.assertEqual(self.pipeline.state(2), FrameState.QUEUED)

    def test_queued_count_never_exceeds_capacity(self) -> None:
        for i in range(25):
            self.pipeline.submit(_frame(i))
            self.assertLessEqual(self.pipeline.queued_count(), 3)
        self.assertEqual(self.pipeline.metrics.snapshot().evicted, 22)

    def test_duplicate_tracked_frame_id_is_rejected(self) -> None:
        self.pipeline.submit(_frame(7))
        with self.assertRaises(ValueError):
            self.pipeline.submit(_frame(7))

    def test_evicted_frame_id_may_be_submitted_again(self) -> None:
        for i in range(4):
            self.pipeline.submit(_frame(i))
        self.assertEqual(self.pipeline.submit(_frame(0)), 1)

    def test_result_for_untracked_frame_is_discarded(self) -> None:
        self.pipeline.submit(_frame(1))

        delivered = self.pipeline.complete(1, [DETECTION])

        self.assertFalse(delivered)
        self.assertEqual(self.collector.results, [])
        self.assertEqual(self.pipeline.metrics.snapshot().discarded_results, 1)

    def test_dispatch_on_empty_queue_is_noop(self) -> None:
        self.assertFalse(self.pipeline.dispatch())


class FramePipelineDispatchTests(unittest.TestCase):
    def test_single_inference_in_flight(self) -> None:
        gate = threading.Event()
        collector = Collector()

        def detect(frame: Frame) -> list[Detection]:
            gate.wait(timeout=2)
            return [DETECTION]

        pipeline = FramePipeline(detect, collector, capacity=3, auto_dispatch=False)
        try:
            pipeline.submit(_frame(1))
            pipeline.submit(_frame(2))

            self.assertTrue(pipeline.dispatch())
            self.assertFalse(pipeline.dispatch())
            self.assertEqual(pipeline.in_flight(), 1)
            self.assertEqual(pipeline.state(1), FrameState.DISPATCHED)

            gate.set()
            self.assertTrue(collector.arrived.wait(timeout=2))
            self.assertEqual(collector.ids(), [1])
            self.assertIsNone(pipeline.state(1))
            self.assertTrue(pipeline.dispatch())
        finally:
            pipeline.close()

    def test_results_pair_frame_id_and_capture_ts(self) -> None:
        ticks = iter(range(1000, 100000, 10))
        clock_lock = threading.Lock()

        def clock() -> float:
            with clock_lock:
                return float(next(ticks))

        latency = LatencyMetrics()
        collector = Collector()
        pipeline = FramePipeline(
            lambda frame: [DETECTION],
            collector,
            capacity=3,
            latency=latency,
            clock=clock,
        )
        try:
            pipeline.submit(_frame(1, capture_ts=900.0))
            self.assertTrue(pipeline.wait_idle(timeout=2))
        finally:
            pipeline.close()

        result = collector.results[0]
        self.assertEqual(result.frame_id, 1)
        self.assertEqual(result.capture_ts, 900.0)
        self.assertEqual(result.detections, (DETECTION,))
        self.assertGreaterEqual(result.inference_ts, result.recv_ts)
        self.assertEqual(latency.snapshot().total_frames, 1)
        self.assertEqual(latency.snapshot().median_latency_ms, result.inference_ts - 900.0)
        payload = result.to_payload()
        self.assertEqual(payload["frame_id"], 1)
        self.assertEqual(payload["detections"][0]["label"], "person")

    def test_backpressure_while_inference_is_slow(self) -> None:
        gate = threading.Event()
        collector = Collector()

        def detect(frame: Frame) -> list[Detection]:
            gate.wait(timeout=2)
            return []

        pipeline = FramePipeline(detect, collector, capacity=3)
        try:
            for i in range(5):
                pipeline.submit(_frame(i))
            # Frame 0 is in flight; 1 was evicted to make room for 4.
            self.assertEqual(pipeline.in_flight(), 0)
            self.assertEqual(pipeline.queued_ids(), [2, 3, 4])

            gate.set()
            self.assertTrue(pipeline.wait_idle(timeout=2))
        finally:
            pipeline.close()

        self.assertEqual(collector.ids(), [0, 2, 3, 4])
        counters = pipeline.metrics.snapshot()
        self.assertEqual(counters.submitted, 5)
        self.assertEqual(counters.evicted, 1)
        self.assertEqual(counters.completed, 4)

    def test_inference_failure_completes_with_empty_result(self) -> None:
        collector = Collector()
        calls: list[int] = []

        def detect(frame: Frame) -> list[Detection]:
            calls.append(frame.frame_id)
            if frame.frame_id == 1:
                raise InferenceFailure("runtime exploded")
            if frame.frame_id == 2:
                raise MalformedOutput("bad tensor")
            return [DETECTION]

        pipeline = FramePipeline(detect, collector, capacity=3)
        try:
            for i in (1, 2, 3):
                pipeline.submit(_frame(i))
            self.assertTrue(pipeline.wait_idle(timeout=2))
        finally:
            pipeline.close()

        by_id = {result.frame_id: result.detections for result in collector.results}
        self.assertEqual(by_id[1], ())
        self.assertEqual(by_id[2], ())
        self.assertEqual(by_id[3], (DETECTION,))
        self.assertEqual(pipeline.metrics.snapshot().inference_failures, 2)

    def test_consumer_error_does_not_stop_pipeline(self) -> None:
        delivered: list[object] = []

        def on_result(result: FrameResult) -> None:
            delivered.append(result.frame_id)
            if result.frame_id == 1:
                raise RuntimeError("renderer gone")

        pipeline = FramePipeline(lambda frame: [], on_result, capacity=3)
        try:
            pipeline.submit(_frame(1))
            self.assertTrue(pipeline.wait_idle(timeout=2))
            pipeline.submit(_frame(2))
            self.assertTrue(pipeline.wait_idle(timeout=2))
        finally:
            pipeline.close()

        self.assertEqual(delivered, [1, 2])

    def test_close_discards_late_in_flight_result(self) -> None:
        started = threading.Event()
        gate = threading.Event()
        collector = Collector()

        def detect(frame: Frame) -> list[Detection]:
            started.set()
            gate.wait(timeout=2)
            return [DETECTION]

        pipeline = FramePipeline(detect, collector, capacity=3)
        pipeline.submit(_frame(1))
        pipeline.submit(_frame(2))
        self.assertTrue(started.wait(timeout=2))

        pipeline.close(wait=False)
        gate.set()
        pipeline.close(wait=True)

        self.assertEqual(collector.results, [])
        self.assertEqual(pipeline.metrics.snapshot().discarded_results, 1)
        self.assertEqual(pipeline.submit(_frame(3)), 0)
        self.assertIsNone(pipeline.state(3))


if __name__ == "__main__":
    unittest.main()
