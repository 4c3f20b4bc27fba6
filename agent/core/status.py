from __future__ import annotations

from enum import Enum
from typing import Any


class Status(str, Enum):
    IDLE = "Idle"
    LISTENING = "Listening"
    THINKING = "Thinking"
    LOOKING = "Looking"
    SEARCHING = "Searching"
    SAVING = "Saving"
    RECALLING = "Recalling"
    ERROR = "Error"

    @classmethod
    def coerce(cls, value: Any) -> "Status":
        """Unrecognized labels fall back to Idle."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.IDLE
