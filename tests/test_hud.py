"""Tests for the console HUD runner."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from agent.agent import Hud, build_agent, format_status, handle_command, run_agent, start_audio
from agent.audio import Microphone, Speaker
from agent.camera import CameraCapture
from agent.core import HudState, Status
from agent.session import VoiceAgentSession
from agent.tools import ToolCoordinator, ToolDispatcher


class UnavailableDevice:
    def isOpened(self):
        return False

    def release(self):
        pass


@pytest.fixture
def hud(settings) -> Hud:
    settings.hud_session_token = "sess_token"
    hud = build_agent(settings)
    hud.camera = CameraCapture(capture_factory=lambda index: UnavailableDevice())
    hud.coordinator = MagicMock(spec=ToolCoordinator)
    hud.coordinator.web_search = AsyncMock(return_value="Sunny")
    hud.coordinator.save_memory = AsyncMock(return_value="Memory saved.")
    hud.coordinator.read_memory = AsyncMock(return_value="likes tea")
    hud.coordinator.get_visual_context = AsyncMock(return_value="A door")
    hud.session = MagicMock(spec=VoiceAgentSession)
    hud.session.is_connected = False
    hud.session.toggle = AsyncMock()
    hud.session.connect = AsyncMock()
    hud.session.disconnect = AsyncMock()
    return hud


def test_build_agent_wires_components(settings):
    hud = build_agent(settings)
    assert isinstance(hud.state, HudState)
    assert isinstance(hud.dispatcher, ToolDispatcher)
    assert hud.coordinator.state is hud.state
    assert hud.session.dispatcher is hud.dispatcher
    assert hud.dispatcher.names() == ["getVisualContext", "webSearch", "saveMemory", "readMemory"]
    assert hud.session.audio_sink == hud.speaker.play


@pytest.mark.asyncio
async def test_manual_commands(hud):
    output = []
    assert await handle_command(hud, "search  bus times ", output.append)
    assert await handle_command(hud, "save likes tea", output.append)
    assert await handle_command(hud, "recall", output.append)
    assert await handle_command(hud, "look", output.append)

    hud.coordinator.web_search.assert_awaited_once_with("bus times")
    hud.coordinator.save_memory.assert_awaited_once_with("likes tea")
    assert output == ["Sunny", "Memory saved.", "likes tea", "A door"]


@pytest.mark.asyncio
async def test_blank_query_and_fact_are_ignored(hud):
    output = []
    await handle_command(hud, "search   ", output.append)
    await handle_command(hud, "save", output.append)
    hud.coordinator.web_search.assert_not_awaited()
    hud.coordinator.save_memory.assert_not_awaited()
    assert output == []


@pytest.mark.asyncio
async def test_agent_commands(hud):
    await handle_command(hud, "talk")
    await handle_command(hud, "connect")
    await handle_command(hud, "disconnect")
    hud.session.toggle.assert_awaited_once()
    hud.session.connect.assert_awaited_once()
    hud.session.disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_agent_command_failure_is_reported(hud):
    hud.session.connect = AsyncMock(side_effect=RuntimeError("Set ELEVENLABS_AGENT_ID to connect the agent."))
    await handle_command(hud, "connect")
    assert hud.state.status is Status.ERROR
    assert hud.state.activity.latest().message.startswith("Agent error → Set ELEVENLABS_AGENT_ID")


@pytest.mark.asyncio
async def test_quit_and_unknown(hud):
    output = []
    assert await handle_command(hud, "QUIT", output.append) is False
    assert await handle_command(hud, "dance", output.append) is True
    assert output == ["Unknown command: dance. Type 'help'."]


def test_format_status():
    state = HudState()
    assert "No activity yet." in format_status(state)
    state.set_busy("webSearch")
    state.push_activity("Search → Sunny")
    text = format_status(state)
    assert "Busy: webSearch" in text
    assert "• Search → Sunny" in text
    state.set_error("Search failed")
    assert "Error: Search failed" in format_status(state)


@pytest.mark.asyncio
async def test_run_requires_sign_in(hud, capsys):
    hud.settings.hud_session_token = None
    assert await run_agent(hud) == 1
    assert "Sign in to activate Second Sight" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_run_loop(hud):
    lines = iter(["recall", "quit"])

    async def read_line():
        return next(lines)

    assert await run_agent(hud, read_line) == 0
    hud.coordinator.read_memory.assert_awaited_once()
    # camera device was unavailable
    assert hud.state.status is Status.ERROR


@pytest.mark.asyncio
async def test_run_stops_on_eof(hud):
    async def read_line():
        raise EOFError

    assert await run_agent(hud, read_line) == 0


@pytest.mark.asyncio
async def test_run_streams_microphone_to_agent(hud, audio_streams):
    hud.settings.elevenlabs_agent_id = "agent_1"
    hud.microphone = Microphone(stream_factory=audio_streams)
    hud.speaker = Speaker(stream_factory=audio_streams)
    hud.session.send_audio = AsyncMock()
    lines = iter(["talk", "quit"])

    async def read_line():
        microphone_stream = audio_streams.opened[-1]
        microphone_stream.callback(b"\x10\x00", 1, None, None)
        return next(lines)

    assert await run_agent(hud, read_line) == 0

    hud.session.send_audio.assert_any_await(b"\x10\x00")
    assert all(stream.closed for stream in audio_streams.opened)
    assert not hud.microphone.is_running
    assert not hud.speaker.is_running


@pytest.mark.asyncio
async def test_audio_skipped_without_agent_id(hud, audio_streams):
    hud.microphone = Microphone(stream_factory=audio_streams)
    assert await start_audio(hud) is None
    assert audio_streams.opened == []


@pytest.mark.asyncio
async def test_audio_failure_is_reported(hud):
    def no_device(**kwargs):
        raise OSError("no input device")

    hud.settings.elevenlabs_agent_id = "agent_1"
    hud.microphone = Microphone(stream_factory=no_device)
    hud.speaker = Speaker(stream_factory=no_device)

    assert await start_audio(hud) is None
    assert hud.state.error == "Speaker unavailable: no input device"
    assert hud.state.activity.latest().message == "Audio unavailable → Speaker unavailable: no input device"
