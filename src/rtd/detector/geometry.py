from __future__ import annotations

from rtd.types import Box


def area(box: Box) -> float:
    if not box.is_valid():
        return 0.0
    return (box.xmax - box.xmin) * (box.ymax - box.ymin)


def intersection_over_union(a: Box, b: Box) -> float:
    overlap_w = max(0.0, min(a.xmax, b.xmax) - max(a.xmin, b.xmin))
    overlap_h = max(0.0, min(a.ymax, b.ymax) - max(a.ymin, b.ymin))
    if overlap_w <= 0 or overlap_h <= 0:
        return 0.0

    # A positive intersection implies both areas are positive.
    intersection = overlap_w * overlap_h
    return intersection / (area(a) + area(b) - intersection)
