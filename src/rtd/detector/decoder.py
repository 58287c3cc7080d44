from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Sequence

import numpy as np

from rtd.detector.errors import ConfigurationError, MalformedOutput
from rtd.types import Box, Detection, RawOutputTensor

UNKNOWN_LABEL = "unknown"

# cx, cy, w, h, objectness
_BOX_ATTRS = 5


class TensorLayout(str, Enum):
    """Element ordering of a raw detector output buffer.

    INTERLEAVED stores every attribute of one candidate contiguously
    (index = i * A + k). PLANAR stores one attribute for every candidate
    contiguously (index = k * N + i). AUTO resolves per tensor from its
    declared shape.
    """

    AUTO = "auto"
    INTERLEAVED = "interleaved"
    PLANAR = "planar"

    @classmethod
    def parse(cls, value: "str | TensorLayout") -> "TensorLayout":
        if isinstance(value, TensorLayout):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(item.value for item in cls)
            raise ConfigurationError(
                f"Unknown tensor layout {value!r}; expected one of: {choices}"
            ) from exc


def _check_unit_interval(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
    return value


class CandidateDecoder:
    """Turns a raw YOLO-style output tensor into thresholded detections.

    Each candidate carries ``5 + num_classes`` attributes: box center,
    width and height in model input pixels, objectness, then one score per
    class. Boxes are emitted in normalized corner form, clamped to the
    image, in tensor scan order.
    """

    def __init__(
        self,
        vocabulary: Sequence[str],
        *,
        num_classes: int | None = None,
        canonical_resolution: int = 640,
        objectness_threshold: float = 0.25,
        score_threshold: float = 0.25,
        layout: TensorLayout | str = TensorLayout.AUTO,
    ) -> None:
        self._logger = logging.getLogger("rtd.decoder")
        self._vocabulary = list(vocabulary)
        if num_classes is None:
            num_classes = len(self._vocabulary)
        if num_classes <= 0:
            raise ConfigurationError("Decoder requires at least one class")
        if self._vocabulary and num_classes != len(self._vocabulary):
            raise ConfigurationError(
                f"Vocabulary has {len(self._vocabulary)} labels but the model "
                f"declares {num_classes} classes"
            )
        if canonical_resolution <= 0:
            raise ConfigurationError(
                f"canonical_resolution must be positive, got {canonical_resolution}"
            )

        self._num_classes = int(num_classes)
        self._resolution = float(canonical_resolution)
        self._objectness_threshold = _check_unit_interval(
            "objectness_threshold", objectness_threshold
        )
        self._score_threshold = _check_unit_interval("score_threshold", score_threshold)
        self._layout = TensorLayout.parse(layout)

    @property
    def attribute_count(self) -> int:
        return _BOX_ATTRS + self._num_classes

    @property
    def num_classes(self) -> int:
        return self._num_classes

    @property
    def vocabulary(self) -> list[str]:
        return list(self._vocabulary)

    def resolve_layout(
        self,
        tensor: RawOutputTensor,
        layout: TensorLayout | str | None = None,
    ) -> TensorLayout:
        chosen = self._layout if layout is None else TensorLayout.parse(layout)
        if chosen is not TensorLayout.AUTO:
            return chosen
        if tensor.shape and tensor.shape[-1] != self.attribute_count:
            return TensorLayout.PLANAR
        return TensorLayout.INTERLEAVED

    def candidate_view(
        self,
        tensor: RawOutputTensor,
        layout: TensorLayout | str | None = None,
    ) -> np.ndarray:
        """Return an (N, A) view over the buffer without copying it."""
        attrs = self.attribute_count
        total = tensor.size
        if tensor.shape and math.prod(tensor.shape) != total:
            raise MalformedOutput(
                f"Declared shape {tensor.shape} does not match {total} elements"
            )
        if total % attrs != 0:
            raise MalformedOutput(
                f"{total} elements is not a multiple of attribute count {attrs}"
            )

        resolved = self.resolve_layout(tensor, layout)
        if len(tensor.shape) >= 2:
            # The attribute axis is shape[-1] for interleaved and shape[-2] for planar.
            axis = -2 if resolved is TensorLayout.PLANAR else -1
            if tensor.shape[axis] != attrs:
                raise MalformedOutput(
                    f"Declared shape {tensor.shape} has no {resolved.value} attribute axis "
                    f"of size {attrs} ({self._num_classes} classes)"
                )

        candidates = total // attrs
        flat = np.asarray(tensor.data, dtype=np.float32).reshape(-1)
        if resolved is TensorLayout.PLANAR:
            return flat.reshape(attrs, candidates).T
        return flat.reshape(candidates, attrs)

    def decode(
        self,
        tensor: RawOutputTensor,
        layout: TensorLayout | str | None = None,
    ) -> list[Detection]:
        view = self.candidate_view(tensor, layout)
        if view.shape[0] == 0:
            return []

        objectness = view[:, 4]
        keep = np.flatnonzero(objectness > self._objectness_threshold)
        if keep.size == 0:
            return []

        rows = view[keep]
        class_scores = rows[:, _BOX_ATTRS:]
        # argmax resolves ties to the lowest class index.
        best_class = np.argmax(class_scores, axis=1)
        best_score = class_scores[np.arange(rows.shape[0]), best_class]
        final_score = rows[:, 4] * best_score

        half_w = rows[:, 2] / 2.0
        half_h = rows[:, 3] / 2.0
        xmin = np.maximum(0.0, (rows[:, 0] - half_w) / self._resolution)
        ymin = np.maximum(0.0, (rows[:, 1] - half_h) / self._resolution)
        xmax = np.minimum(1.0, (rows[:, 0] + half_w) / self._resolution)
        ymax = np.minimum(1.0, (rows[:, 1] + half_h) / self._resolution)

        passed = (final_score > self._score_threshold) & (xmax > xmin) & (ymax > ymin)

        detections: list[Detection] = []
        for idx in np.flatnonzero(passed):
            class_id = int(best_class[idx])
            detections.append(
                Detection(
                    label=self._label_for_class(class_id),
                    score=float(final_score[idx]),
                    box=Box(
                        xmin=float(xmin[idx]),
                        ymin=float(ymin[idx]),
                        xmax=float(xmax[idx]),
                        ymax=float(ymax[idx]),
                    ),
                    class_id=class_id,
                )
            )

        self._logger.debug(
            "decoded candidates=%d above_objectness=%d emitted=%d",
            view.shape[0],
            keep.size,
            len(detections),
        )
        return detections

    def _label_for_class(self, class_id: int) -> str:
        if 0 <= class_id < len(self._vocabulary):
            return self._vocabulary[class_id]
        return UNKNOWN_LABEL
