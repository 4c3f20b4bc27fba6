from agent.core.activity import ActivityEntry, ActivityLog
from agent.core.state import HudState
from agent.core.status import Status

__all__ = ["ActivityEntry", "ActivityLog", "HudState", "Status"]
