# src/scholarfolio/application/services/sync_log.py
from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

from scholarfolio.domain.sync import SyncLogEntry

DEFAULT_CAPACITY = 100


class SyncLogBuffer:
    """
    Bounded in-memory operational log of sync outcomes.

    Newest entries first; once ``capacity`` is reached the oldest entry is
    evicted. Contents are lost on restart.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: Deque[SyncLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add(self, entry: SyncLogEntry) -> None:
        with self._lock:
            # appendleft on a full deque drops the rightmost (oldest) item
            self._entries.appendleft(entry)

    def entries(self) -> List[SyncLogEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
