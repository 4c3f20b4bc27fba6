from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from langchain_core.tools import StructuredTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, Field, ValidationError

from agent.tools.coordinator import READ_MEMORY, SAVE_MEMORY, VISUAL_CONTEXT, WEB_SEARCH, ToolCoordinator


logger = logging.getLogger("second_sight.hud.tools")


class NoArguments(BaseModel):
    pass


class WebSearchInput(BaseModel):
    query: str = Field(..., description="What to search the web for")


class SaveMemoryInput(BaseModel):
    fact: str = Field(..., description="A fact about the user to remember")


def build_client_tools(coordinator: ToolCoordinator) -> List[StructuredTool]:
    return [
        StructuredTool.from_function(
            coroutine=coordinator.get_visual_context,
            name=VISUAL_CONTEXT,
            description="Analyze the camera view",
            args_schema=NoArguments,
        ),
        StructuredTool.from_function(
            coroutine=coordinator.web_search,
            name=WEB_SEARCH,
            description="Search the web",
            args_schema=WebSearchInput,
        ),
        StructuredTool.from_function(
            coroutine=coordinator.save_memory,
            name=SAVE_MEMORY,
            description="Save a fact to long-term memory",
            args_schema=SaveMemoryInput,
        ),
        StructuredTool.from_function(
            coroutine=coordinator.read_memory,
            name=READ_MEMORY,
            description="Retrieve saved memories",
            args_schema=NoArguments,
        ),
    ]


class ToolDispatcher:
    """Fixed table from tool name to client tool."""

    def __init__(self, tools: List[StructuredTool]) -> None:
        self._tools: Dict[str, StructuredTool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Tool '{tool.name}' already registered")
            self._tools[tool.name] = tool

    @classmethod
    def for_coordinator(cls, coordinator: ToolCoordinator) -> "ToolDispatcher":
        return cls(build_client_tools(coordinator))

    def names(self) -> List[str]:
        return list(self._tools)

    def has(self, name: str) -> bool:
        return name in self._tools

    def schemas(self) -> List[Dict[str, Any]]:
        return [convert_to_openai_tool(tool) for tool in self._tools.values()]

    async def dispatch(self, name: str, parameters: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Run a tool by name.

        Returns None for names outside the table; invalid parameters come
        back as an error string rather than an exception.
        """
        tool = self._tools.get(name)
        if tool is None:
            return None
        try:
            result = await tool.ainvoke(dict(parameters or {}))
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "parameters"
            logger.warning("Invalid parameters for %s: %s", name, exc)
            return f"Invalid input for {name}: {field} {first.get('msg', 'is invalid')}"
        return str(result)
