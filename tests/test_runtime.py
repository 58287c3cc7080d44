from __future__ import annotations

import json
import os
import signal
import tempfile
import threading
import time
import unittest
from pathlib import Path

import numpy as np

from rtd.config.loader import load_runtime_config
from rtd.detector.backends.base import InferenceBackend
from rtd.detector.errors import MalformedOutput
from rtd.detector.models.model_spec import ModelSpec
from rtd.pipeline.runtime import DetectionRuntime
from rtd.types import RawOutputTensor

try:
    import cv2
except ImportError:  # pragma: no cover - optional in minimal environments
    cv2 = None

RESOLUTION = 64


def _person_tensor() -> RawOutputTensor:
    # One 80-class candidate centred in a 64x64 model input.
    row = np.zeros(85, dtype=np.float32)
    row[:5] = [32.0, 32.0, 6.4, 6.4, 0.9]
    row[5] = 0.9
    return RawOutputTensor.from_array(row.reshape(1, 1, 85))


class FakeBackend(InferenceBackend):
    def __init__(self, warm: RawOutputTensor | None = None) -> None:
        self.loaded: ModelSpec | None = None
        self.inputs: list[tuple[int, ...]] = []
        self._warm = warm if warm is not None else _person_tensor()

    def load(self, model_spec: ModelSpec) -> None:
        self.loaded = model_spec

    def infer(self, input_tensor: np.ndarray) -> RawOutputTensor:
        self.inputs.append(tuple(input_tensor.shape))
        return _person_tensor()

    def warmup(self) -> RawOutputTensor | None:
        return self._warm

    def name(self) -> str:
        return "fake"

    def device_info(self) -> str:
        return "cpu"


@unittest.skipIf(cv2 is None, "opencv not installed")
class DetectionRuntimeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.images = self.root / "frames"
        self.images.mkdir()
        for index in range(3):
            cv2.imwrite(str(self.images / f"frame_{index}.png"), np.zeros((48, 64, 3), dtype=np.uint8))
        self.events_path = self.root / "events.jsonl"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _config(self, **monitoring: object):
        return load_runtime_config(
            repo_root=self.root,
            cli_overrides={
                "model": {"canonical_resolution": RESOLUTION},
                "pipeline": {"queue_capacity": 10, "rate_limit_fps": 0},
                "output": {"annotate_dir": str(self.root / "annotated")},
                "monitoring": {
                    "event_stdout": False,
                    "event_file": str(self.events_path),
                    **monitoring,
                },
            },
        )

    def _events(self) -> list[dict]:
        return [json.loads(line) for line in self.events_path.read_text(encoding="utf-8").splitlines()]

    def test_run_emits_one_event_per_image(self) -> None:
        backend = FakeBackend()

        snapshot = DetectionRuntime(self.root, self._config(), backend_factory=lambda: backend).run(
            str(self.images)
        )

        self.assertEqual(snapshot.total_frames, 3)
        self.assertEqual(backend.inputs, [(1, 3, RESOLUTION, RESOLUTION)] * 3)
        events = self._events()
        self.assertEqual(sorted(event["frame_id"] for event in events), [0, 1, 2])
        for event in events:
            self.assertTrue(event["source"].endswith(f"frame_{event['frame_id']}.png"))
            self.assertEqual([item["label"] for item in event["detections"]], ["person"])
            self.assertAlmostEqual(event["detections"][0]["score"], 0.81, places=5)
        self.assertEqual(len(list((self.root / "annotated").glob("*.jpg"))), 3)

    def test_latency_epoch_resets_after_configured_results(self) -> None:
        runtime = DetectionRuntime(
            self.root,
            self._config(metrics_reset_after_frames=1),
            backend_factory=FakeBackend,
        )

        snapshot = runtime.run(str(self.images))

        self.assertEqual(snapshot.total_frames, 2)
        self.assertEqual(len(self._events()), 3)

    def test_class_count_mismatch_fails_before_any_frame(self) -> None:
        # Warm-up output of a 2-class model against the default 80-class vocabulary.
        backend = FakeBackend(warm=RawOutputTensor.from_array(np.zeros((1, 8500, 7), dtype=np.float32)))

        with self.assertRaises(MalformedOutput):
            DetectionRuntime(self.root, self._config(), backend_factory=lambda: backend).run(str(self.images))

        self.assertEqual(backend.inputs, [])
        self.assertFalse(self.events_path.exists())

    def test_frames_carry_source_dimensions(self) -> None:
        runtime = DetectionRuntime(self.root, self._config(), backend_factory=FakeBackend)

        frame = runtime._load_frame(5, self.images / "frame_0.png")

        self.assertEqual((frame.frame_id, frame.width, frame.height), (5, 64, 48))
        self.assertEqual(frame.payload.shape, (48, 64, 3))

    def test_unreadable_source_is_skipped(self) -> None:
        broken = self.images / "broken.png"
        broken.write_bytes(b"not an image")
        runtime = DetectionRuntime(self.root, self._config(), backend_factory=FakeBackend)

        self.assertIsNone(runtime._load_frame(0, broken))

    @unittest.skipUnless(hasattr(signal, "SIGUSR1"), "SIGUSR1 not available")
    def test_sigusr1_requests_reset_and_handler_is_restored(self) -> None:
        runtime = DetectionRuntime(self.root, self._config(), backend_factory=FakeBackend)
        requested = threading.Event()
        before = signal.getsignal(signal.SIGUSR1)

        restore = runtime._install_reset_signal(requested)
        try:
            os.kill(os.getpid(), signal.SIGUSR1)
            for _ in range(100):
                if requested.is_set():
                    break
                time.sleep(0.01)
        finally:
            restore()

        self.assertTrue(requested.is_set())
        self.assertEqual(signal.getsignal(signal.SIGUSR1), before)

    def test_missing_source_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            DetectionRuntime(self.root, self._config(), backend_factory=FakeBackend).run(
                str(self.root / "missing")
            )


if __name__ == "__main__":
    unittest.main()
