from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from rtd.config.defaults import DEFAULT_CONFIG
from rtd.config.models import (
    ModelConfig,
    MonitoringConfig,
    OutputConfig,
    PipelineConfig,
    PostprocessConfig,
    RuntimeConfig,
)
from rtd.detector.decoder import TensorLayout
from rtd.detector.errors import ConfigurationError

_CONFIG_NAMES = (
    "rtd.toml",
    "rtd.yaml",
    "rtd.yml",
    "rtd.json",
    "settings.toml",
    "settings.yaml",
    "settings.yml",
    "settings.json",
)


def _merge_dict(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def _lower_keys(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_lower_keys(item) for item in obj]
    return obj


def _maybe_parse_simple_config(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix == ".json":
        return json.loads(text)

    if suffix == ".toml":
        try:
            import tomllib
        except ImportError:  # pragma: no cover - Python < 3.11
            import tomli as tomllib  # type: ignore

        return tomllib.loads(text)

    if suffix in {".yaml", ".yml"}:
        import yaml

        loaded = yaml.safe_load(text)
        return loaded if loaded else {}

    raise ConfigurationError(f"Unsupported config extension: {suffix}")


def _load_with_dynaconf(config_paths: list[Path]) -> dict[str, Any]:
    try:
        from dynaconf import Dynaconf
    except ImportError:
        return {}

    settings = Dynaconf(
        envvar_prefix="RTD",
        settings_files=[str(path) for path in config_paths if path.exists()],
        merge_enabled=True,
        environments=False,
        load_dotenv=True,
    )
    return _lower_keys(settings.as_dict())


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _unit_interval(name: str, value: Any) -> float:
    number = float(value)
    if not 0.0 <= number <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {number}")
    return number


def _resolve_repo_relative(path_value: str | None, repo_root: Path) -> str | None:
    if not path_value:
        return path_value
    p = Path(path_value)
    if p.is_absolute():
        return str(p)
    return str((repo_root / p).resolve())


def _normalize(data: dict[str, Any], repo_root: Path) -> RuntimeConfig:
    model_data = data.get("model", {})
    post_data = data.get("postprocess", {})
    pipeline_data = data.get("pipeline", {})
    output_data = data.get("output", {})
    monitoring_data = data.get("monitoring", {})

    resolution = int(model_data.get("canonical_resolution", 640))
    if resolution <= 0:
        raise ConfigurationError(f"model.canonical_resolution must be positive, got {resolution}")

    rate_limit = _optional_float(pipeline_data.get("rate_limit_fps"))
    timeout = _optional_float(pipeline_data.get("inference_timeout_seconds"))
    reset_after = _optional_int(monitoring_data.get("metrics_reset_after_frames"))

    return RuntimeConfig(
        model=ModelConfig(
            name=str(model_data.get("name", "yolov5s")),
            path=_resolve_repo_relative(model_data.get("path"), repo_root),
            labels_path=_resolve_repo_relative(model_data.get("labels_path"), repo_root),
            canonical_resolution=resolution,
            num_classes=_optional_int(model_data.get("num_classes")),
            layout=TensorLayout.parse(model_data.get("layout", "auto")).value,
        ),
        postprocess=PostprocessConfig(
            objectness_threshold=_unit_interval(
                "postprocess.objectness_threshold",
                post_data.get("objectness_threshold", 0.25),
            ),
            score_threshold=_unit_interval(
                "postprocess.score_threshold",
                post_data.get("score_threshold", 0.25),
            ),
            iou_threshold=_unit_interval(
                "postprocess.iou_threshold",
                post_data.get("iou_threshold", 0.45),
            ),
            per_label_nms=_coerce_bool(post_data.get("per_label_nms", False)),
        ),
        pipeline=PipelineConfig(
            queue_capacity=max(1, int(pipeline_data.get("queue_capacity", 3))),
            rate_limit_fps=rate_limit if rate_limit and rate_limit > 0 else None,
            inference_timeout_seconds=timeout if timeout and timeout > 0 else None,
        ),
        output=OutputConfig(
            annotate_dir=_resolve_repo_relative(output_data.get("annotate_dir"), repo_root),
        ),
        monitoring=MonitoringConfig(
            json_logs=_coerce_bool(monitoring_data.get("json_logs", False)),
            log_level=str(monitoring_data.get("log_level", "INFO")).upper(),
            stats_interval_seconds=float(monitoring_data.get("stats_interval_seconds", 5.0)),
            latency_window=max(1, int(monitoring_data.get("latency_window", 2048))),
            metrics_reset_after_frames=reset_after if reset_after and reset_after > 0 else None,
            prometheus_enabled=_coerce_bool(monitoring_data.get("prometheus_enabled", False)),
            prometheus_host=str(monitoring_data.get("prometheus_host", "0.0.0.0")),
            prometheus_port=int(monitoring_data.get("prometheus_port", 9108)),
            event_stdout=_coerce_bool(monitoring_data.get("event_stdout", True)),
            event_file=_resolve_repo_relative(monitoring_data.get("event_file"), repo_root),
        ),
    )


def _default_config_copy() -> dict[str, Any]:
    return json.loads(json.dumps(DEFAULT_CONFIG))


def load_runtime_config(
    repo_root: Path,
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> RuntimeConfig:
    config_paths: list[Path] = []
    if config_path:
        config_paths.append(Path(config_path))
    else:
        for name in _CONFIG_NAMES:
            candidate = repo_root / name
            if candidate.exists():
                config_paths.append(candidate)

    for path in config_paths:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

    merged = _default_config_copy()

    dynaconf_data = _load_with_dynaconf(config_paths)
    if dynaconf_data:
        _merge_dict(merged, dynaconf_data)
    else:
        for path in config_paths:
            _merge_dict(merged, _lower_keys(_maybe_parse_simple_config(path)))

    if cli_overrides:
        _merge_dict(merged, _lower_keys(cli_overrides))

    return _normalize(merged, repo_root)
