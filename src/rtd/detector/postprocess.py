from __future__ import annotations

from rtd.detector.decoder import CandidateDecoder, TensorLayout
from rtd.detector.errors import ConfigurationError
from rtd.detector.suppression import DEFAULT_IOU_THRESHOLD, suppress, suppress_per_label
from rtd.types import Detection, RawOutputTensor


class Postprocessor:
    """Decode a raw output tensor, then reduce it with NMS."""

    def __init__(
        self,
        decoder: CandidateDecoder,
        *,
        iou_threshold: float = DEFAULT_IOU_THRESHOLD,
        per_label: bool = False,
    ) -> None:
        if not 0.0 <= float(iou_threshold) <= 1.0:
            raise ConfigurationError(f"iou_threshold must be within [0, 1], got {iou_threshold}")
        self._decoder = decoder
        self._iou_threshold = float(iou_threshold)
        self._per_label = per_label

    @property
    def decoder(self) -> CandidateDecoder:
        return self._decoder

    def process(
        self,
        tensor: RawOutputTensor,
        layout: TensorLayout | str | None = None,
    ) -> list[Detection]:
        candidates = self._decoder.decode(tensor, layout)
        if self._per_label:
            return suppress_per_label(candidates, self._iou_threshold)
        return suppress(candidates, self._iou_threshold)
