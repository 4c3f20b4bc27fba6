from agent.tools.client_tools import ToolDispatcher, build_client_tools
from agent.tools.coordinator import TOOL_NAMES, ToolCoordinator

__all__ = ["TOOL_NAMES", "ToolCoordinator", "ToolDispatcher", "build_client_tools"]
