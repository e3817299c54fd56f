"""
In-memory ordered queue shared by the ingest endpoint and the dispatcher.

Records sit here, oldest first, until a delivery attempt succeeds.
"""

import threading
from collections import deque
from typing import Any, Deque, Iterable, List, Mapping, Optional

LogRecord = Mapping[str, Any]


class OrderedQueue:
    """
    Unbounded double-ended queue of audit records.

    Every operation runs under a single lock so an append from a request
    handler can never interleave with a pop or push from the dispatcher.
    The lock is never held across I/O.
    """

    def __init__(self) -> None:
        self._items: Deque[LogRecord] = deque()
        self._lock = threading.Lock()

    def append_all(self, items: Iterable[LogRecord]) -> int:
        """Append records to the tail in the given order. Returns the new size."""
        batch = list(items)
        with self._lock:
            self._items.extend(batch)
            return len(self._items)

    def pop_front(self) -> Optional[LogRecord]:
        """Remove and return the oldest record, or None if the queue is empty."""
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def push_front(self, item: LogRecord) -> None:
        """Put a record back at the head so it is retried before anything else."""
        with self._lock:
            self._items.appendleft(item)

    def snapshot(self) -> List[LogRecord]:
        """Copy of the queued records, head first."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
