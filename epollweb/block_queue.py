"""A bounded, blocking FIFO queue for producer/consumer threads."""

from __future__ import annotations

import threading
from collections import deque
from typing import Generic, TypeVar

T = TypeVar("T")


class BlockQueue(Generic[T]):
    """FIFO queue whose push blocks while full and pop blocks while empty."""

    def __init__(self, max_size: int = 10000) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._items: deque[T] = deque()
        self._max_size = max_size
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)

    @property
    def max_size(self) -> int:
        return self._max_size

    def push(self, item: T) -> None:
        """Append an item, waiting for room if the queue is full."""
        with self._not_full:
            self._not_full.wait_for(lambda: len(self._items) < self._max_size)
            self._items.append(item)
            self._not_empty.notify()

    def pop(self) -> T:
        """Remove and return the oldest item, waiting until one exists."""
        with self._not_empty:
            self._not_empty.wait_for(lambda: bool(self._items))
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def empty(self) -> bool:
        with self._lock:
            return not self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)