from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rtd.commands.common import load_config
from rtd.detector.errors import BackendUnavailable, ConfigurationError, MalformedOutput, ModelLoadError


def build_run_overrides(args: Any) -> dict[str, Any]:
    return {
        "pipeline": {
            "queue_capacity": args.queue_capacity,
            "rate_limit_fps": args.rate_limit_fps,
            "inference_timeout_seconds": args.inference_timeout,
        },
        "output": {
            "annotate_dir": args.annotate_dir,
        },
        "monitoring": {
            "prometheus_enabled": args.prometheus,
            "prometheus_port": args.prometheus_port,
            "metrics_reset_after_frames": args.metrics_reset_after,
            "event_stdout": (False if args.no_event_stdout else None),
            "event_file": args.event_file,
        },
    }


def run_pipeline(args: Any, repo_root: Path) -> int:
    logger = logging.getLogger("rtd.run")
    try:
        config = load_config(args, repo_root, build_run_overrides(args))
    except ConfigurationError as exc:
        logger.error("invalid configuration: %s", exc)
        return 2

    logger.info("starting run with config=%s", config.as_log_context())

    from rtd.pipeline.runtime import DetectionRuntime

    try:
        snapshot = DetectionRuntime(repo_root=repo_root, config=config).run(args.uri)
    except (BackendUnavailable, ModelLoadError, ConfigurationError, MalformedOutput) as exc:
        logger.error("startup failed: %s", exc)
        return 2
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 2

    print(json.dumps(snapshot.to_payload(), ensure_ascii=True))
    return 0
