"""
Entry buffer shared by all facades of a runtime.

Producers append from any thread; the flush scheduler detaches the whole
content with ``take_and_clear``. Both operations hold the same
``threading.Lock`` and nothing else happens under it, so storage latency never
reaches producers.

The buffer is unbounded unless ``max_size`` is given. With a cap, appending to
a full buffer evicts the oldest pending record.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Generic, TypeVar

T = TypeVar("T")


class EntryBuffer(Generic[T]):
    """Ordered, lock-protected sequence of pending items.

    Usage:
        buf: EntryBuffer[LogRecord] = EntryBuffer()
        buf.append(record)
        batch = buf.take_and_clear()
    """

    __slots__ = ("_evicted", "_high_watermark", "_items", "_lock", "_max_size")

    def __init__(self, max_size: int | None = None) -> None:
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be > 0")
        self._max_size = max_size
        self._items: deque[T] = deque()
        self._lock = threading.Lock()
        self._evicted = 0
        self._high_watermark = 0

    @property
    def max_size(self) -> int | None:
        return self._max_size

    @property
    def evicted(self) -> int:
        """Total number of records evicted by the cap since creation."""
        return self._evicted

    @property
    def high_watermark(self) -> int:
        return self._high_watermark

    def __len__(self) -> int:
        return len(self._items)

    def append(self, item: T) -> bool:
        """Add ``item`` at the tail.

        Returns False when the cap forced the oldest pending item out.
        """
        with self._lock:
            evicted = False
            if self._max_size is not None and len(self._items) >= self._max_size:
                self._items.popleft()
                self._evicted += 1
                evicted = True
            self._items.append(item)
            size = len(self._items)
            if size > self._high_watermark:
                self._high_watermark = size
            return not evicted

    def take_and_clear(self) -> tuple[T, ...]:
        """Detach the current content and leave an empty buffer behind.

        Anything appended before the lock is taken is part of the returned
        batch; anything appended after stays for the next cycle.
        """
        with self._lock:
            items = self._items
            self._items = deque()
        return tuple(items)
