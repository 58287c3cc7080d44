from __future__ import annotations

import logging
import signal
import threading
import time
from pathlib import Path
from typing import Any, Callable, Iterable

from rtd.config.models import RuntimeConfig
from rtd.detector.backends import InferenceBackend, OnnxRuntimeBackend, with_deadline
from rtd.detector.decoder import CandidateDecoder
from rtd.detector.errors import FrameDecodeError
from rtd.detector.models import ModelSpec
from rtd.detector.postprocess import Postprocessor
from rtd.detector.preprocess import decode_image
from rtd.detector.service import FrameDetector
from rtd.io.ingest import iter_image_paths
from rtd.io.output import JsonEventSink
from rtd.monitoring import LatencyMetrics, LatencySnapshot, PeriodicStatsLogger, RuntimeMetrics
from rtd.pipeline.annotate import draw_overlays
from rtd.pipeline.frame_pipeline import FramePipeline, now_ms
from rtd.types import Frame, FrameResult


def build_model_spec(config: RuntimeConfig) -> ModelSpec:
    return ModelSpec(
        name=config.model.name,
        model_path=config.model.path,
        labels_path=config.model.labels_path,
        canonical_resolution=config.model.canonical_resolution,
        num_classes=config.model.num_classes,
        layout=config.model.layout,
    )


def build_postprocessor(config: RuntimeConfig, model_spec: ModelSpec) -> Postprocessor:
    decoder = CandidateDecoder(
        model_spec.vocabulary(),
        num_classes=model_spec.num_classes,
        canonical_resolution=model_spec.canonical_resolution,
        objectness_threshold=config.postprocess.objectness_threshold,
        score_threshold=config.postprocess.score_threshold,
        layout=model_spec.layout,
    )
    return Postprocessor(
        decoder,
        iou_threshold=config.postprocess.iou_threshold,
        per_label=config.postprocess.per_label_nms,
    )


class DetectionRuntime:
    """Sender/receiver loop: feeds image files through the frame pipeline.

    The sender side paces frames at ``pipeline.rate_limit_fps`` and submits
    them without waiting for inference; the pipeline drops stale frames.
    Completed results go to the event sink and, optionally, to annotated
    image files.
    """

    def __init__(
        self,
        repo_root: Path,
        config: RuntimeConfig,
        backend_factory: Callable[[], InferenceBackend] = OnnxRuntimeBackend,
    ) -> None:
        self._repo_root = repo_root
        self._config = config
        self._backend_factory = backend_factory
        self._logger = logging.getLogger("rtd.runtime")

    def run(self, uri: str) -> LatencySnapshot:
        model_spec = build_model_spec(self._config)
        postprocessor = build_postprocessor(self._config, model_spec)
        paths = list(iter_image_paths(uri))

        backend = self._backend_factory()
        backend.load(model_spec)
        warm = backend.warmup()
        if warm is not None:
            # Surfaces a vocabulary/model mismatch once, before any frame flows.
            postprocessor.decoder.candidate_view(warm)
        self._logger.info(
            "backend selected=%s device=%s classes=%d",
            backend.name(),
            backend.device_info(),
            postprocessor.decoder.num_classes,
        )

        infer = backend.infer
        timeout = self._config.pipeline.inference_timeout_seconds
        if timeout:
            infer = with_deadline(infer, timeout)
        detector = FrameDetector(
            infer,
            postprocessor,
            resolution=model_spec.canonical_resolution,
        )

        metrics = RuntimeMetrics()
        monitoring = self._config.monitoring
        if monitoring.prometheus_enabled:
            if metrics.enable_prometheus(monitoring.prometheus_host, monitoring.prometheus_port):
                self._logger.info(
                    "prometheus endpoint enabled at %s:%d",
                    monitoring.prometheus_host,
                    monitoring.prometheus_port,
                )
            else:
                self._logger.warning("prometheus requested but prometheus_client is not installed")

        latency = LatencyMetrics(window=monitoring.latency_window)
        event_sink = JsonEventSink(
            stdout_enabled=monitoring.event_stdout,
            file_path=monitoring.event_file,
        )
        event_sink.open()

        annotate_dir = Path(self._config.output.annotate_dir) if self._config.output.annotate_dir else None
        if annotate_dir is not None:
            annotate_dir.mkdir(parents=True, exist_ok=True)

        reset_after = monitoring.metrics_reset_after_frames
        reset_requested = threading.Event()
        delivered = 0

        def on_result(result: FrameResult) -> None:
            nonlocal delivered
            delivered += 1
            if reset_after is not None and delivered == reset_after:
                latency.reset()
                self._logger.info("latency epoch reset after results=%d", delivered)
            elif reset_requested.is_set():
                reset_requested.clear()
                latency.reset()
                self._logger.info("latency epoch reset on request after results=%d", delivered)
            source = paths[result.frame_id]
            event_sink.emit_result(result, source=str(source))
            if annotate_dir is not None:
                self._write_annotated(source, result, annotate_dir)

        pipeline = FramePipeline(
            detector,
            on_result,
            capacity=self._config.pipeline.queue_capacity,
            latency=latency,
            metrics=metrics,
        )
        stats_logger = PeriodicStatsLogger(
            metrics=metrics,
            latency=latency,
            backend=backend.name(),
            interval_seconds=monitoring.stats_interval_seconds,
        )
        self._logger.info(
            "runtime config queue_capacity=%d rate_limit_fps=%s timeout_s=%s events=%s annotate_dir=%s",
            pipeline.capacity,
            self._config.pipeline.rate_limit_fps,
            timeout,
            event_sink.enabled(),
            annotate_dir,
        )

        restore_signal = self._install_reset_signal(reset_requested)
        try:
            self._feed(pipeline, paths, stats_logger)
            pipeline.wait_idle()
        finally:
            pipeline.close()
            event_sink.close()
            restore_signal()

        snapshot = latency.snapshot()
        counters = metrics.snapshot()
        self._logger.info(
            "run finished frames=%d events=%d submitted=%d evicted=%d failures=%d median_ms=%.1f p95_ms=%.1f fps=%.2f",
            snapshot.total_frames,
            event_sink.events_written,
            counters.submitted,
            counters.evicted,
            counters.inference_failures,
            snapshot.median_latency_ms,
            snapshot.p95_latency_ms,
            snapshot.fps,
        )
        return snapshot

    def _feed(
        self,
        pipeline: FramePipeline,
        paths: Iterable[Path],
        stats_logger: PeriodicStatsLogger,
    ) -> None:
        rate = self._config.pipeline.rate_limit_fps
        interval = 1.0 / rate if rate else 0.0
        next_send = time.monotonic()
        for frame_id, path in enumerate(paths):
            if interval:
                delay = next_send - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
                next_send = max(next_send + interval, time.monotonic())

            frame = self._load_frame(frame_id, path)
            if frame is not None:
                pipeline.submit(frame)
            stats_logger.maybe_emit()

    def _load_frame(self, frame_id: int, path: Path) -> Frame | None:
        """Decode one source image into a Frame stamped with its capture time."""
        try:
            image = decode_image(path.read_bytes())
        except FrameDecodeError as exc:
            self._logger.warning("skipping unreadable source=%s: %s", path, exc)
            return None
        height, width = image.shape[:2]
        return Frame(
            frame_id=frame_id,
            capture_ts=now_ms(),
            payload=image,
            width=int(width),
            height=int(height),
        )

    def _install_reset_signal(self, requested: threading.Event) -> Callable[[], None]:
        """Make SIGUSR1 request a latency epoch reset for the duration of a run.

        The reset itself is applied by the next delivered result, off the
        signal-handling thread. Returns a callable that restores the
        previous handler.
        """
        if not hasattr(signal, "SIGUSR1") or threading.current_thread() is not threading.main_thread():
            return lambda: None

        def _request_reset(_signo: int, _frame: Any) -> None:
            requested.set()

        previous = signal.signal(signal.SIGUSR1, _request_reset)
        if previous is None:
            previous = signal.SIG_DFL
        return lambda: signal.signal(signal.SIGUSR1, previous)

    def _write_annotated(self, source: Path, result: FrameResult, annotate_dir: Path) -> None:
        import cv2

        image = cv2.imread(str(source), cv2.IMREAD_COLOR)
        if image is None:
            self._logger.warning("annotate skipped, unreadable source=%s", source)
            return
        draw_overlays(image, result.detections, latency_ms=result.latency_ms)
        target = annotate_dir / f"{source.stem}_{result.frame_id}.jpg"
        cv2.imwrite(str(target), image)
