from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Hashable, Mapping

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class RunContextFilter(logging.Filter):
    """Attaches fixed run fields (model, resolution, ...) to every record."""

    def __init__(self, context: Mapping[str, Any]) -> None:
        super().__init__()
        self._context = dict(context)

    def filter(self, record: logging.LogRecord) -> bool:
        record.run = self._context
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Run fields come from ``RunContextFilter``; per-record fields come from
    ``extra={"context": {...}}`` and win on key collisions.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        run = getattr(record, "run", None)
        if isinstance(run, dict):
            payload.update(run)
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            payload.update(context)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def frame_context(frame_id: Hashable, **fields: Any) -> dict[str, Any]:
    """``extra=`` payload that tags a record with the frame it concerns."""
    return {"context": {"frame_id": frame_id, **fields}}


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    context: Mapping[str, Any] | None = None,
) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler = logging.StreamHandler()
    if json_logs:
        handler.setFormatter(JsonFormatter())
        if context:
            handler.addFilter(RunContextFilter(context))
    else:
        handler.setFormatter(logging.Formatter(fmt=_PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
