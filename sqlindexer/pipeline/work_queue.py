"""
Bounded work queue between the row reader and the indexing workers.

`queue.Queue` has no notion of "closed", so the queue is built directly on a
`threading.Condition`: producers block while the buffer is full, consumers
block while it is empty, and `close`/`abort` wake everyone up.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Generic, Iterator, Optional, TypeVar

from sqlindexer.errors import QueueClosedError

T = TypeVar("T")


class WorkQueue(Generic[T]):
    """
    Bounded multi-consumer FIFO with close and abort signals.

    - `push` blocks while the queue holds `capacity` items.
    - `pop` blocks while the queue is empty and still open. After `close`
      it keeps returning buffered items, then returns None (end of stream).
    - `abort` discards buffered items and makes every pending or future
      `push` return False and every `pop` return None.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._items: Deque[T] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._aborted = False
        self.high_water_mark = 0
        self.pushed = 0
        self.popped = 0

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def push(self, item: T) -> bool:
        """
        Enqueue `item`, blocking while the queue is full.

        Returns False if the run was aborted before the item could be queued.
        Raises QueueClosedError if the queue was closed.
        """
        with self._cond:
            while True:
                if self._aborted:
                    return False
                if self._closed:
                    raise QueueClosedError("push after close")
                if len(self._items) < self.capacity:
                    break
                self._cond.wait()
            self._items.append(item)
            self.pushed += 1
            self.high_water_mark = max(self.high_water_mark, len(self._items))
            self._cond.notify_all()
            return True

    def pop(self) -> Optional[T]:
        """
        Dequeue the oldest item, blocking while empty. None means end of stream.
        """
        with self._cond:
            while not self._items and not self._closed and not self._aborted:
                self._cond.wait()
            if self._aborted or not self._items:
                return None
            item = self._items.popleft()
            self.popped += 1
            self._cond.notify_all()
            return item

    def close(self) -> None:
        """Signal that no more items will be pushed. Idempotent."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def abort(self) -> int:
        """Drop buffered items and wake all waiters. Returns the number dropped."""
        with self._cond:
            dropped = len(self._items)
            self._items.clear()
            self._aborted = True
            self._closed = True
            self._cond.notify_all()
            return dropped

    def drain(self) -> Iterator[T]:
        """Yield items until end of stream."""
        while True:
            item = self.pop()
            if item is None:
                return
            yield item


__all__ = ["WorkQueue"]
