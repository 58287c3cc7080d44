from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, TypeVar

from rtd.detector.errors import InferenceFailure

T = TypeVar("T")
R = TypeVar("R")


def with_deadline(fn: Callable[[T], R], timeout_seconds: float) -> Callable[[T], R]:
    """Wrap an inference call so exceeding ``timeout_seconds`` raises InferenceFailure.

    The deadline runs from the moment the worker starts the call. A timed-out
    call keeps running on the worker and its result is dropped; a call that
    cannot start within ``timeout_seconds`` because that overrun still holds
    the worker is cancelled without running.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rtd-deadline")

    def _call(arg: T) -> R:
        started = threading.Event()

        def _run() -> R:
            started.set()
            return fn(arg)

        future = executor.submit(_run)
        if not started.wait(timeout_seconds) and future.cancel():
            raise InferenceFailure(
                f"previous inference still running after {timeout_seconds:.3f}s; call skipped"
            )
        try:
            return future.result(timeout=timeout_seconds)
        except FutureTimeout as exc:
            raise InferenceFailure(
                f"inference exceeded deadline of {timeout_seconds:.3f}s"
            ) from exc

    return _call
