from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Awaitable, Callable, Optional

from agent.api_client import HudApiClient
from agent.camera import CameraCapture
from agent.core.activity import ERROR, SUCCESS
from agent.core.state import HudState
from agent.core.status import Status


logger = logging.getLogger("second_sight.hud.tools")

VISUAL_CONTEXT = "getVisualContext"
WEB_SEARCH = "webSearch"
SAVE_MEMORY = "saveMemory"
READ_MEMORY = "readMemory"

TOOL_NAMES = (VISUAL_CONTEXT, WEB_SEARCH, SAVE_MEMORY, READ_MEMORY)

MEMORY_SEPARATOR = " • "


class ToolCoordinator:
    """Runs the four HUD tools against the shared session state.

    Every tool returns a string, including on failure, so the voice agent can
    read errors aloud. Calls are not mutually exclusive unless ``exclusive``
    is set; otherwise the busy marker and status reflect the most recently
    started call.
    """

    def __init__(
        self,
        state: HudState,
        api: HudApiClient,
        camera: CameraCapture,
        exclusive: bool = False,
    ) -> None:
        self.state = state
        self.api = api
        self.camera = camera
        self._lock: Optional[asyncio.Lock] = asyncio.Lock() if exclusive else None

    async def _run(
        self,
        name: str,
        status: Status,
        work: Callable[[], Awaitable[str]],
        failure_label: str,
        default_error: str,
    ) -> str:
        async with AsyncExitStack() as stack:
            if self._lock is not None:
                await stack.enter_async_context(self._lock)
            self.state.set_busy(name)
            self.state.clear_error()
            self.state.set_status(status)
            try:
                result = await work()
            except Exception as exc:
                message = str(exc) or default_error
                logger.warning("%s failed: %s", name, message)
                self.state.set_status(Status.ERROR)
                self.state.set_error(message)
                self.state.push_activity(f"{failure_label} → {message}", ERROR)
                return message
            finally:
                self.state.set_busy(None)
            self.state.set_status(Status.IDLE)
            return result

    async def get_visual_context(self) -> str:
        async def work() -> str:
            image = await self.camera.capture_frame()
            text = await self.api.describe_image(image)
            self.state.push_activity(f"Vision → {text}", SUCCESS)
            return text

        return await self._run(VISUAL_CONTEXT, Status.LOOKING, work, "Vision error", "Vision failed")

    async def web_search(self, query: str) -> str:
        async def work() -> str:
            summary = await self.api.search(query)
            self.state.push_activity(f"Search → {summary}", SUCCESS)
            return summary

        return await self._run(WEB_SEARCH, Status.SEARCHING, work, "Search error", "Search failed")

    async def save_memory(self, fact: str) -> str:
        async def work() -> str:
            message = await self.api.save_memory(fact)
            self.state.push_activity(f"Memory saved → {fact}", SUCCESS)
            return message

        return await self._run(SAVE_MEMORY, Status.SAVING, work, "Save error", "Save failed")

    async def read_memory(self) -> str:
        async def work() -> str:
            memories = await self.api.read_memory()
            text = MEMORY_SEPARATOR.join(memories) if memories else "No memories yet"
            self.state.push_activity(f"Memories → {text}", SUCCESS)
            return text

        return await self._run(READ_MEMORY, Status.RECALLING, work, "Recall error", "Recall failed")
