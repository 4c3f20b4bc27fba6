from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set
from urllib.parse import urlencode

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from agent.core.activity import ERROR, SUCCESS
from agent.core.state import HudState
from agent.core.status import Status
from agent.tools.client_tools import ToolDispatcher


logger = logging.getLogger("second_sight.hud.agent")

SIGNED_URL_ENDPOINT = "https://api.elevenlabs.io/v1/convai/conversation/get-signed-url"

Connector = Callable[[str], Awaitable[Any]]
AudioSink = Callable[[bytes], None]


class AgentConfigError(Exception):
    pass


class VoiceAgentSession:
    """Adapter around an ElevenLabs Conversational AI websocket.

    Tool calls from the remote agent are looked up in the dispatch table and
    answered with the tool's string result. Lifecycle events become activity
    entries and status changes on the shared HUD state.
    """

    def __init__(
        self,
        state: HudState,
        dispatcher: ToolDispatcher,
        agent_id: Optional[str],
        api_key: Optional[str] = None,
        ws_url: str = "wss://api.elevenlabs.io/v1/convai/conversation",
        connector: Connector = websockets.connect,
        audio_sink: Optional[AudioSink] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.state = state
        self.dispatcher = dispatcher
        self.agent_id = agent_id
        self.api_key = api_key
        self.ws_url = ws_url
        self.audio_sink = audio_sink
        self.conversation_id: Optional[str] = None
        self.paused = False
        self._connector = connector
        self._http_transport = http_transport
        self._ws: Optional[Any] = None
        self._reader: Optional[asyncio.Task] = None
        self._tool_tasks: Set[asyncio.Task] = set()
        self._closing = False

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def _conversation_url(self) -> str:
        if not self.api_key:
            return f"{self.ws_url}?{urlencode({'agent_id': self.agent_id})}"
        # Private agents need a short-lived signed URL.
        async with httpx.AsyncClient(timeout=30.0, transport=self._http_transport) as client:
            response = await client.get(
                SIGNED_URL_ENDPOINT,
                params={"agent_id": self.agent_id},
                headers={"xi-api-key": self.api_key},
            )
            response.raise_for_status()
            return response.json()["signed_url"]

    async def connect(self) -> None:
        if not self.agent_id:
            raise AgentConfigError("Set ELEVENLABS_AGENT_ID to connect the agent.")
        if self._ws is not None:
            return
        url = await self._conversation_url()
        self._ws = await self._connector(url)
        self._closing = False
        self.paused = False
        self._reader = asyncio.create_task(self._read_loop())
        self.state.set_agent_status("connected")
        self.state.set_status(Status.LISTENING)
        self.state.push_activity("Agent connected", SUCCESS)
        logger.info("Agent %s connected", self.agent_id)

    async def disconnect(self) -> None:
        """Close the socket. Tool calls already running are left to finish."""
        ws, self._ws = self._ws, None
        if ws is None:
            return
        self._closing = True
        await ws.close()
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            await reader
        self.state.set_status(Status.IDLE)

    async def toggle(self) -> None:
        """Connect, or pause/resume forwarding of microphone audio."""
        try:
            if not self.is_connected:
                await self.connect()
            elif self.paused:
                self.paused = False
                self.state.set_status(Status.LISTENING)
                self.state.push_activity("Agent listening")
            else:
                self.paused = True
                self.state.set_status(Status.IDLE)
                self.state.push_activity("Agent paused")
        except Exception as exc:
            message = str(exc) or "Agent error"
            self.state.set_status(Status.ERROR)
            self.state.set_error(message)
            self.state.push_activity(f"Agent error → {message}", ERROR)

    async def send_audio(self, chunk: bytes) -> None:
        if self._ws is None or self.paused:
            return
        await self._send({"user_audio_chunk": base64.b64encode(chunk).decode("ascii")})

    async def _send(self, message: Dict[str, Any]) -> None:
        ws = self._ws
        if ws is None:
            logger.info("Dropping %s, agent is disconnected", message.get("type", "audio"))
            return
        try:
            await ws.send(json.dumps(message))
        except ConnectionClosed as exc:
            logger.warning("Agent socket closed while sending: %s", exc)

    async def _read_loop(self) -> None:
        ws = self._ws
        error: Optional[str] = None
        try:
            async for raw in ws:
                try:
                    event = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON agent message")
                    continue
                await self.handle_event(event)
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as exc:
            error = str(exc) or "Agent connection lost"
        except Exception as exc:
            logger.exception("Agent session failed: %s", exc)
            error = str(exc) or "Agent error"
        finally:
            if self._ws is ws:
                self._ws = None
            self.state.set_agent_status("disconnected")
            if error and not self._closing:
                self.state.set_status(Status.ERROR)
                self.state.set_error(error)
                self.state.push_activity(f"Agent error → {error}", ERROR)
            else:
                self.state.set_status(Status.IDLE)
                self.state.push_activity("Agent disconnected")
            logger.info("Agent session ended (conversation=%s)", self.conversation_id)

    async def handle_event(self, event: Dict[str, Any]) -> None:
        kind = event.get("type")
        if kind == "conversation_initiation_metadata":
            meta = event.get("conversation_initiation_metadata_event") or {}
            self.conversation_id = meta.get("conversation_id")
            logger.info("Conversation started: %s", self.conversation_id)
        elif kind == "ping":
            ping = event.get("ping_event") or {}
            await self._send({"type": "pong", "event_id": ping.get("event_id")})
        elif kind == "user_transcript":
            transcript = (event.get("user_transcription_event") or {}).get("user_transcript")
            logger.debug("User: %s", transcript)
            if self.state.busy is None:
                self.state.set_status(Status.THINKING)
        elif kind == "agent_response":
            response = (event.get("agent_response_event") or {}).get("agent_response")
            logger.debug("Agent: %s", response)
            if self.state.busy is None:
                self.state.set_status(Status.LISTENING)
        elif kind == "audio":
            audio = (event.get("audio_event") or {}).get("audio_base_64")
            if audio and self.audio_sink is not None:
                self.audio_sink(base64.b64decode(audio))
        elif kind == "client_tool_call":
            call = event.get("client_tool_call") or {}
            # Tools run outside the reader so pings keep being answered.
            task = asyncio.create_task(self._run_tool_call(call))
            self._tool_tasks.add(task)
            task.add_done_callback(self._tool_tasks.discard)
        else:
            logger.debug("Ignoring agent event %s", kind)

    async def _run_tool_call(self, call: Dict[str, Any]) -> None:
        name = call.get("tool_name") or ""
        call_id = call.get("tool_call_id")
        parameters = call.get("parameters") or {}

        if not self.dispatcher.has(name):
            logger.warning("Unhandled client tool call: %s", name)
            self.state.push_activity(f"Unhandled tool call → {name}", ERROR)
            await self._send(
                {
                    "type": "client_tool_result",
                    "tool_call_id": call_id,
                    "result": f"Client tool with name {name} is not defined on client",
                    "is_error": True,
                }
            )
            return

        logger.info("Agent invoked %s", name)
        try:
            result = await self.dispatcher.dispatch(name, parameters)
        except Exception as exc:
            logger.exception("Client tool %s crashed: %s", name, exc)
            result, is_error = str(exc) or f"{name} failed", True
        else:
            is_error = False
        await self._send(
            {
                "type": "client_tool_result",
                "tool_call_id": call_id,
                "result": result or "",
                "is_error": is_error,
            }
        )

    async def wait_for_tools(self) -> None:
        if self._tool_tasks:
            await asyncio.gather(*list(self._tool_tasks), return_exceptions=True)
