from __future__ import annotations


DEFAULT_CONFIG: dict = {
    "model": {
        "name": "yolov5s",
        "path": "models/yolov5s.onnx",
        "labels_path": None,
        "canonical_resolution": 640,
        "num_classes": None,
        "layout": "auto",
    },
    "postprocess": {
        "objectness_threshold": 0.25,
        "score_threshold": 0.25,
        "iou_threshold": 0.45,
        "per_label_nms": False,
    },
    "pipeline": {
        "queue_capacity": 3,
        "rate_limit_fps": 12.0,
        "inference_timeout_seconds": None,
    },
    "output": {
        "annotate_dir": None,
    },
    "monitoring": {
        "json_logs": False,
        "log_level": "INFO",
        "stats_interval_seconds": 5.0,
        "latency_window": 2048,
        "metrics_reset_after_frames": None,
        "prometheus_enabled": False,
        "prometheus_host": "0.0.0.0",
        "prometheus_port": 9108,
        "event_stdout": True,
        "event_file": None,
    },
}
