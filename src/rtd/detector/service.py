from __future__ import annotations

from typing import Any, Callable

import numpy as np

from rtd.detector.postprocess import Postprocessor
from rtd.detector.preprocess import preprocess_frame
from rtd.types import Detection, Frame, RawOutputTensor

InferFn = Callable[[np.ndarray], RawOutputTensor]
PreprocessFn = Callable[[Any, int], np.ndarray]


class FrameDetector:
    """Callable injected into the frame pipeline: preprocess, infer, postprocess."""

    def __init__(
        self,
        infer: InferFn,
        postprocessor: Postprocessor,
        *,
        resolution: int = 640,
        preprocess: PreprocessFn = preprocess_frame,
    ) -> None:
        self._infer = infer
        self._postprocessor = postprocessor
        self._resolution = resolution
        self._preprocess = preprocess

    def __call__(self, frame: Frame) -> list[Detection]:
        input_tensor = self._preprocess(frame.payload, self._resolution)
        raw = self._infer(input_tensor)
        return self._postprocessor.process(raw)
