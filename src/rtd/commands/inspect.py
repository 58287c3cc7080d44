from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rtd.commands.common import load_config
from rtd.detector.backends import OnnxRuntimeBackend
from rtd.detector.errors import BackendUnavailable, ConfigurationError, InferenceFailure, ModelLoadError
from rtd.pipeline.runtime import build_model_spec


def run_inspect(args: Any, repo_root: Path) -> int:
    logger = logging.getLogger("rtd.inspect")
    try:
        config = load_config(args, repo_root)
    except ConfigurationError as exc:
        logger.error("invalid configuration: %s", exc)
        return 2
    model_spec = build_model_spec(config)

    backend = OnnxRuntimeBackend()
    try:
        backend.load(model_spec)
    except (BackendUnavailable, ModelLoadError) as exc:
        logger.error("failed to load model: %s", exc)
        return 2

    report: dict[str, Any] = backend.describe()
    try:
        output = backend.warmup()
    except InferenceFailure as exc:
        report["test_run"] = {"ok": False, "error": str(exc)}
    else:
        report["test_run"] = {
            "ok": True,
            "shape": list(output.shape) if output is not None else None,
            "elements": output.size if output is not None else 0,
        }

    print(json.dumps(report, indent=2, ensure_ascii=True))
    return 0
