from __future__ import annotations

from typing import Sequence

from rtd.detector.geometry import intersection_over_union
from rtd.types import Detection

DEFAULT_IOU_THRESHOLD = 0.45


def suppress(
    detections: Sequence[Detection],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> list[Detection]:
    """Greedy non-maximum suppression across all labels.

    Candidates are visited by descending score, ties keeping input order.
    Overlapping boxes are suppressed regardless of label; partition by
    label first (see ``suppress_per_label``) for class-aware behaviour.
    """
    # sorted() is stable, so equal scores keep their scan order.
    ordered = sorted(detections, key=lambda det: det.score, reverse=True)

    kept: list[Detection] = []
    suppressed: set[int] = set()
    for i, current in enumerate(ordered):
        if i in suppressed:
            continue
        kept.append(current)
        for j in range(i + 1, len(ordered)):
            if j in suppressed:
                continue
            if intersection_over_union(current.box, ordered[j].box) > iou_threshold:
                suppressed.add(j)
    return kept


def suppress_per_label(
    detections: Sequence[Detection],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> list[Detection]:
    partitions: dict[str, list[Detection]] = {}
    for detection in detections:
        partitions.setdefault(detection.label, []).append(detection)

    kept: list[Detection] = []
    for group in partitions.values():
        kept.extend(suppress(group, iou_threshold))
    return sorted(kept, key=lambda det: det.score, reverse=True)
