from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from rtd.detector.models.model_spec import ModelSpec
from rtd.types import RawOutputTensor


class InferenceBackend(ABC):
    @abstractmethod
    def load(self, model_spec: ModelSpec) -> None:
        """Load model artifacts and initialize the runtime session."""

    @abstractmethod
    def infer(self, input_tensor: np.ndarray) -> RawOutputTensor:
        """Run the model on one normalized input tensor."""

    @abstractmethod
    def name(self) -> str:
        """Return stable backend name for logging and metrics."""

    @abstractmethod
    def device_info(self) -> str:
        """Return selected device/accelerator detail string."""

    def warmup(self) -> RawOutputTensor | None:
        """Run one-time warmup inference if supported."""
        return None

    def describe(self) -> dict[str, Any]:
        """Return input/output metadata, if the backend can report it."""
        return {"backend": self.name(), "device": self.device_info()}
