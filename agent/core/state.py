from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from agent.core.activity import DEFAULT_ACTIVITY_LIMIT, INFO, ActivityEntry, ActivityLog
from agent.core.status import Status


logger = logging.getLogger("second_sight.hud")

Listener = Callable[[str, "HudState"], None]


class HudState:
    """Session-scoped HUD state shared by the coordinator and the agent session.

    All mutation happens on the event loop thread. Listeners are called with
    the name of what changed (``status``, ``activity``, ``error``, ``busy``,
    ``agent``) after every change.
    """

    def __init__(self, activity_limit: int = DEFAULT_ACTIVITY_LIMIT) -> None:
        self.status: Status = Status.IDLE
        self.activity = ActivityLog(activity_limit)
        self.error: Optional[str] = None
        self.busy: Optional[str] = None
        self.agent_status: str = "disconnected"
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, what: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(what, self)
            except Exception:
                logger.exception("HUD listener failed on %s change", what)

    def set_status(self, value: Any) -> Status:
        self.status = Status.coerce(value)
        self._notify("status")
        return self.status

    def push_activity(self, message: str, level: str = INFO) -> ActivityEntry:
        entry = self.activity.push(message, level)
        self._notify("activity")
        return entry

    def set_error(self, message: Optional[str]) -> None:
        self.error = message
        self._notify("error")

    def clear_error(self) -> None:
        if self.error is not None:
            self.set_error(None)

    def set_busy(self, name: Optional[str]) -> None:
        self.busy = name
        self._notify("busy")

    def set_agent_status(self, value: str) -> None:
        self.agent_status = value
        self._notify("agent")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "busy": self.busy,
            "error": self.error,
            "agent": self.agent_status,
            "activity": [
                {"ts": entry.ts, "message": entry.message, "level": entry.level}
                for entry in self.activity
            ],
        }
