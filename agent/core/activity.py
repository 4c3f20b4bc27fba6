from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterator, List, Optional

DEFAULT_ACTIVITY_LIMIT = 12

INFO = "info"
SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class ActivityEntry:
    message: str
    level: str = INFO
    ts: float = field(default_factory=time.time)


class ActivityLog:
    """Bounded, most-recent-first record of user-visible events."""

    def __init__(self, capacity: int = DEFAULT_ACTIVITY_LIMIT) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: Deque[ActivityEntry] = deque(maxlen=capacity)

    def push(self, message: str, level: str = INFO) -> ActivityEntry:
        entry = ActivityEntry(message=message, level=level)
        # appendleft on a bounded deque drops from the right, i.e. the oldest
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[ActivityEntry]:
        return list(self._entries)

    def latest(self) -> Optional[ActivityEntry]:
        return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ActivityEntry]:
        return iter(list(self._entries))
