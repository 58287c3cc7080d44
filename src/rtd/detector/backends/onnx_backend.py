from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from rtd.detector.backends.base import InferenceBackend
from rtd.detector.errors import BackendUnavailable, InferenceFailure, ModelLoadError
from rtd.detector.models.model_spec import ModelSpec
from rtd.types import RawOutputTensor

_PREFERRED_OUTPUTS = ("output0", "output")


class OnnxRuntimeBackend(InferenceBackend):
    """onnxruntime session for YOLO-style detect models exported to ONNX."""

    def __init__(self, providers: list[str] | None = None) -> None:
        self._logger = logging.getLogger("rtd.backend.onnx")
        self._providers = providers
        self._session: Any | None = None
        self._model_spec: ModelSpec | None = None
        self._input_name = ""
        self._output_name = ""
        self._output_logged = False

    def load(self, model_spec: ModelSpec) -> None:
        try:
            import onnxruntime as ort
        except ImportError as exc:
            raise BackendUnavailable(
                "ONNX backend requested but onnxruntime is not installed."
            ) from exc

        if not model_spec.model_path:
            raise ModelLoadError("ONNX backend requires model.path pointing to .onnx file")
        model_path = Path(model_spec.model_path).expanduser()
        if not model_path.is_file():
            raise ModelLoadError(f"Model file not found: {model_path}")

        providers = self._providers or ort.get_available_providers()
        try:
            session = ort.InferenceSession(str(model_path), providers=providers)
        except Exception as exc:
            raise ModelLoadError(f"Failed to load ONNX model {model_path}: {exc}") from exc

        self._session = session
        self._model_spec = model_spec
        self._input_name = session.get_inputs()[0].name
        self._output_name = self._select_output(
            [output.name for output in session.get_outputs()]
        )
        self._logger.info(
            "onnx model loaded path=%s input=%s output=%s providers=%s",
            model_path,
            self._input_name,
            self._output_name,
            ",".join(session.get_providers()),
        )

    @staticmethod
    def _select_output(names: list[str]) -> str:
        if not names:
            raise ModelLoadError("ONNX model declares no outputs")
        for preferred in _PREFERRED_OUTPUTS:
            if preferred in names:
                return preferred
        return names[0]

    def infer(self, input_tensor: np.ndarray) -> RawOutputTensor:
        if self._session is None:
            raise RuntimeError("Backend not loaded")
        try:
            outputs = self._session.run(
                [self._output_name],
                {self._input_name: np.asarray(input_tensor, dtype=np.float32)},
            )
        except Exception as exc:
            raise InferenceFailure(f"onnxruntime inference failed: {exc}") from exc

        tensor = RawOutputTensor.from_array(outputs[0])
        if not self._output_logged:
            self._output_logged = True
            self._logger.info(
                "onnx output shape=%s elements=%d", tensor.shape, tensor.size
            )
        return tensor

    def warmup(self) -> RawOutputTensor | None:
        if self._session is None or self._model_spec is None:
            return None
        size = self._model_spec.canonical_resolution
        return self.infer(np.full((1, 3, size, size), 0.5, dtype=np.float32))

    def describe(self) -> dict[str, Any]:
        info = super().describe()
        if self._session is None:
            return info
        info["inputs"] = [
            {"name": item.name, "shape": list(item.shape), "type": item.type}
            for item in self._session.get_inputs()
        ]
        info["outputs"] = [
            {"name": item.name, "shape": list(item.shape), "type": item.type}
            for item in self._session.get_outputs()
        ]
        info["selected_output"] = self._output_name
        return info

    def name(self) -> str:
        return "onnxruntime"

    def device_info(self) -> str:
        if self._session is None:
            return "unloaded"
        providers = self._session.get_providers()
        return providers[0] if providers else "cpu"
