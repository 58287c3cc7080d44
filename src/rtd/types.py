from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable

import numpy as np


@dataclass(frozen=True)
class Box:
    """Corner-form box in normalized [0, 1] image space."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def is_valid(self) -> bool:
        return self.xmax > self.xmin and self.ymax > self.ymin

    def to_pixels(self, width: int, height: int) -> tuple[int, int, int, int]:
        return (
            int(round(self.xmin * width)),
            int(round(self.ymin * height)),
            int(round(self.xmax * width)),
            int(round(self.ymax * height)),
        )


@dataclass(frozen=True)
class Detection:
    """Decoded detection; score is objectness times best class probability."""

    label: str
    score: float
    box: Box
    class_id: int = -1

    def to_payload(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "score": self.score,
            "xmin": self.box.xmin,
            "ymin": self.box.ymin,
            "xmax": self.box.xmax,
            "ymax": self.box.ymax,
        }


@dataclass(frozen=True, eq=False)
class RawOutputTensor:
    """Flat float32 model output plus its declared shape."""

    data: np.ndarray
    shape: tuple[int, ...]

    @classmethod
    def from_array(cls, array: Any) -> "RawOutputTensor":
        arr = np.asarray(array, dtype=np.float32)
        return cls(data=arr.reshape(-1), shape=tuple(int(dim) for dim in arr.shape))

    @property
    def size(self) -> int:
        return int(self.data.size)


@dataclass(frozen=True)
class Frame:
    """Captured frame handed from the sender into the pipeline."""

    frame_id: Hashable
    capture_ts: float
    payload: Any
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class FrameResult:
    frame_id: Hashable
    capture_ts: float
    recv_ts: float
    inference_ts: float
    detections: tuple[Detection, ...] = field(default_factory=tuple)

    @property
    def latency_ms(self) -> float:
        return self.inference_ts - self.capture_ts

    def to_payload(self) -> dict[str, Any]:
        return {
            "frame_id": self.frame_id,
            "capture_ts": self.capture_ts,
            "recv_ts": self.recv_ts,
            "inference_ts": self.inference_ts,
            "detections": [detection.to_payload() for detection in self.detections],
        }
