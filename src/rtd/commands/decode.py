from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np

from rtd.commands.common import load_config
from rtd.detector.errors import ConfigurationError, MalformedOutput
from rtd.pipeline.runtime import build_model_spec, build_postprocessor
from rtd.types import RawOutputTensor


def run_decode(args: Any, repo_root: Path) -> int:
    logger = logging.getLogger("rtd.decode")
    try:
        config = load_config(args, repo_root)
        postprocessor = build_postprocessor(config, build_model_spec(config))
    except ConfigurationError as exc:
        logger.error("invalid configuration: %s", exc)
        return 2

    try:
        tensor = RawOutputTensor.from_array(np.load(args.tensor))
    except (OSError, ValueError) as exc:
        logger.error("cannot read tensor file=%s: %s", args.tensor, exc)
        return 2

    decoder = postprocessor.decoder
    try:
        if args.no_nms:
            detections = decoder.decode(tensor)
        else:
            detections = postprocessor.process(tensor)
    except MalformedOutput as exc:
        logger.error("malformed output tensor shape=%s: %s", tensor.shape, exc)
        return 1

    payload = {
        "shape": list(tensor.shape),
        "layout": decoder.resolve_layout(tensor).value,
        "attributes": decoder.attribute_count,
        "detections": [detection.to_payload() for detection in detections],
    }
    print(json.dumps(payload, ensure_ascii=True))
    return 0
