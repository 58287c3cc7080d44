from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, TextIO

from rtd.types import FrameResult


def result_event(result: FrameResult, **extra: Any) -> dict[str, Any]:
    """Flatten a frame result into the JSON event written per processed frame."""
    event = result.to_payload()
    event["latency_ms"] = round(result.latency_ms, 3)
    event["detection_count"] = len(result.detections)
    event.update(extra)
    return event


class JsonEventSink:
    """JSON-lines writer for per-frame results.

    Lines go to stdout, an append-only file, or both. ``emit`` is safe to
    call from the inference worker while the sender thread logs.
    """

    def __init__(self, stdout_enabled: bool, file_path: str | None = None) -> None:
        self._stdout_enabled = stdout_enabled
        self._path = Path(file_path).expanduser().resolve() if file_path else None
        self._handle: TextIO | None = None
        self._lock = threading.Lock()
        self._written = 0

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def events_written(self) -> int:
        with self._lock:
            return self._written

    def enabled(self) -> bool:
        return self._stdout_enabled or self._path is not None

    def open(self) -> None:
        if self._path is None or self._handle is not None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self._path.open("a", encoding="utf-8")

    def emit(self, event: dict[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=True, default=str)
        with self._lock:
            if self._stdout_enabled:
                print(line, flush=True)
            if self._handle is not None:
                self._handle.write(line + "\n")
                self._handle.flush()
            self._written += 1

    def emit_result(self, result: FrameResult, **extra: Any) -> None:
        self.emit(result_event(result, **extra))

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def __enter__(self) -> "JsonEventSink":
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
