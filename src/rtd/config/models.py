from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ModelConfig:
    name: str = "yolov5s"
    path: str | None = "models/yolov5s.onnx"
    labels_path: str | None = None
    canonical_resolution: int = 640
    num_classes: int | None = None
    layout: str = "auto"


@dataclass
class PostprocessConfig:
    objectness_threshold: float = 0.25
    score_threshold: float = 0.25
    iou_threshold: float = 0.45
    per_label_nms: bool = False


@dataclass
class PipelineConfig:
    queue_capacity: int = 3
    rate_limit_fps: float | None = 12.0
    inference_timeout_seconds: float | None = None


@dataclass
class OutputConfig:
    annotate_dir: str | None = None


@dataclass
class MonitoringConfig:
    json_logs: bool = False
    log_level: str = "INFO"
    stats_interval_seconds: float = 5.0
    latency_window: int = 2048
    metrics_reset_after_frames: int | None = None
    prometheus_enabled: bool = False
    prometheus_host: str = "0.0.0.0"
    prometheus_port: int = 9108
    event_stdout: bool = True
    event_file: str | None = None


@dataclass
class RuntimeConfig:
    model: ModelConfig = field(default_factory=ModelConfig)
    postprocess: PostprocessConfig = field(default_factory=PostprocessConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def as_log_context(self) -> dict[str, Any]:
        return {
            "model": self.model.name,
            "resolution": self.model.canonical_resolution,
            "layout": self.model.layout,
            "objectness_threshold": self.postprocess.objectness_threshold,
            "score_threshold": self.postprocess.score_threshold,
            "iou_threshold": self.postprocess.iou_threshold,
            "queue_capacity": self.pipeline.queue_capacity,
            "json_logs": self.monitoring.json_logs,
        }
