from __future__ import annotations

import hashlib
from typing import Sequence

from rtd.types import Detection


def _color_for_label(label: str) -> tuple[int, int, int]:
    # Stable per-class colors across runs.
    digest = hashlib.sha1(label.encode("utf-8")).digest()
    b = 50 + (digest[0] % 180)
    g = 50 + (digest[1] % 180)
    r = 50 + (digest[2] % 180)
    return int(b), int(g), int(r)


def draw_overlays(
    frame,
    detections: Sequence[Detection],
    latency_ms: float | None = None,
) -> None:
    """Draw normalized detection boxes onto a BGR frame in place."""
    import cv2

    height, width = frame.shape[:2]
    for detection in detections:
        x1, y1, x2, y2 = detection.box.to_pixels(width, height)
        color = _color_for_label(detection.label)
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, 2)

        label = f"{detection.label} {detection.score * 100:.1f}%"
        (text_w, text_h), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, 0.6, 2)
        top = max(text_h + 8, y1)
        cv2.rectangle(frame, (x1, top - text_h - 8), (x1 + text_w + 10, top), color, -1)
        cv2.putText(
            frame,
            label,
            (x1 + 5, top - 5),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.6,
            (255, 255, 255),
            2,
            cv2.LINE_AA,
        )

    if latency_ms is not None:
        cv2.putText(
            frame,
            f"Latency: {latency_ms:.0f}ms",
            (15, 28),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.7,
            (0, 255, 0),
            2,
            cv2.LINE_AA,
        )
