from __future__ import annotations

import threading
from collections import deque
from typing import Generic, TypeVar

T = TypeVar("T")


class LatestFrameQueue(Generic[T]):
    """Bounded FIFO where the latest frame wins by evicting the oldest on full.

    Producers never block: inserting into a full queue drops exactly one
    entry from the head before appending at the tail.
    """

    def __init__(self, maxsize: int = 3) -> None:
        self._maxsize = max(1, int(maxsize))
        self._items: deque[T] = deque()
        self._lock = threading.Lock()

    def put_latest(self, item: T) -> T | None:
        """Append ``item`` and return the evicted entry, if any."""
        evicted: T | None = None
        with self._lock:
            if len(self._items) >= self._maxsize:
                evicted = self._items.popleft()
            self._items.append(item)
        return evicted

    def get_nowait(self) -> T | None:
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def drain(self) -> list[T]:
        with self._lock:
            items = list(self._items)
            self._items.clear()
            return items

    def snapshot(self) -> list[T]:
        with self._lock:
            return list(self._items)

    def qsize(self) -> int:
        with self._lock:
            return len(self._items)

    def empty(self) -> bool:
        return self.qsize() == 0

    def maxsize(self) -> int:
        return self._maxsize
