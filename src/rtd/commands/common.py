from __future__ import annotations

from pathlib import Path
from typing import Any

from rtd.config import RuntimeConfig, load_runtime_config
from rtd.monitoring import configure_logging


def clean_overrides(payload: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            nested = clean_overrides(value)
            if nested:
                cleaned[key] = nested
            continue
        if value is not None:
            cleaned[key] = value
    return cleaned


def build_model_overrides(args: Any) -> dict[str, Any]:
    return {
        "model": {
            "name": args.model_name,
            "path": args.model_path,
            "labels_path": args.labels_path,
            "canonical_resolution": args.resolution,
            "num_classes": args.num_classes,
            "layout": args.layout,
        },
        "postprocess": {
            "objectness_threshold": args.objectness,
            "score_threshold": args.score,
            "iou_threshold": args.iou,
            "per_label_nms": args.per_label_nms,
        },
        "monitoring": {
            "json_logs": args.json_logs,
            "log_level": args.log_level,
        },
    }


def load_config(args: Any, repo_root: Path, extra: dict[str, Any] | None = None) -> RuntimeConfig:
    overrides = build_model_overrides(args)
    if extra:
        for section, values in extra.items():
            overrides.setdefault(section, {}).update(values)

    config = load_runtime_config(
        repo_root=repo_root,
        config_path=args.config,
        cli_overrides=clean_overrides(overrides),
    )
    configure_logging(
        level=config.monitoring.log_level,
        json_logs=config.monitoring.json_logs,
        context={"model": config.model.name, "resolution": config.model.canonical_resolution},
    )
    return config
