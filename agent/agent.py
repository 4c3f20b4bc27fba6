from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from agent.api_client import HudApiClient
from agent.audio import AudioError, Microphone, Speaker, pump_microphone
from agent.camera import CameraCapture, CameraError
from agent.core.activity import ERROR
from agent.core.state import HudState
from agent.core.status import Status
from agent.session import VoiceAgentSession
from agent.tools import ToolCoordinator, ToolDispatcher
from config.settings import Settings, get_settings


logger = logging.getLogger("second_sight.hud")

HELP = """Commands:
  look             describe what the camera sees
  search <query>   search the web
  save <fact>      remember a fact
  recall           read saved facts
  talk             connect the agent, or pause/resume listening
  connect          connect the voice agent
  disconnect       disconnect the voice agent
  status           show status and recent activity
  tools            list client tools
  help             show this help
  quit             exit
"""


@dataclass
class Hud:
    settings: Settings
    state: HudState
    api: HudApiClient
    camera: CameraCapture
    coordinator: ToolCoordinator
    dispatcher: ToolDispatcher
    session: VoiceAgentSession
    microphone: Optional[Microphone] = None
    speaker: Optional[Speaker] = None

    async def close(self) -> None:
        if self.session.is_connected:
            await self.session.disconnect()
        if self.microphone is not None:
            await self.microphone.stop()
        if self.speaker is not None:
            await self.speaker.stop()
        await self.camera.stop()
        await self.api.aclose()


def build_agent(settings: Optional[Settings] = None) -> Hud:
    settings = settings or get_settings()
    state = HudState(activity_limit=settings.hud_activity_limit)
    api = HudApiClient(
        settings.hud_api_url,
        session_token=settings.hud_session_token,
        timeout=settings.upstream_timeout,
    )
    camera = CameraCapture(settings.hud_camera_index, jpeg_quality=settings.hud_jpeg_quality)
    coordinator = ToolCoordinator(state, api, camera, exclusive=settings.hud_serialize_tools)
    dispatcher = ToolDispatcher.for_coordinator(coordinator)
    microphone = Microphone(settings.hud_input_device)
    speaker = Speaker(settings.hud_output_device)
    session = VoiceAgentSession(
        state,
        dispatcher,
        agent_id=settings.elevenlabs_agent_id,
        api_key=settings.elevenlabs_api_key,
        ws_url=settings.elevenlabs_ws_url,
        audio_sink=speaker.play,
    )
    return Hud(settings, state, api, camera, coordinator, dispatcher, session, microphone, speaker)


def render_change(what: str, state: HudState) -> None:
    if what == "status":
        print(f"[{state.status.value}]")
    elif what == "activity":
        entry = state.activity.latest()
        if entry is not None:
            print(f"  • {entry.message}")
    elif what == "error" and state.error:
        print(f"  ! {state.error}")


def format_status(state: HudState) -> str:
    snap = state.snapshot()
    lines = [f"Status: {snap['status']}  Agent: {snap['agent']}"]
    if snap["busy"]:
        lines.append(f"Busy: {snap['busy']}")
    if snap["error"]:
        lines.append(f"Error: {snap['error']}")
    if not snap["activity"]:
        lines.append("No activity yet.")
    for entry in snap["activity"]:
        lines.append(f"  • {entry['message']}")
    return "\n".join(lines)


async def start_camera(hud: Hud) -> None:
    try:
        await hud.camera.start()
    except CameraError as exc:
        message = str(exc) or "Camera permission denied"
        hud.state.set_error(message)
        hud.state.set_status(Status.ERROR)


async def start_audio(hud: Hud) -> Optional[asyncio.Task]:
    """Open microphone and speaker and forward microphone audio to the agent."""
    if hud.microphone is None or not hud.settings.elevenlabs_agent_id:
        return None
    try:
        if hud.speaker is not None:
            await hud.speaker.start()
        await hud.microphone.start()
    except AudioError as exc:
        message = str(exc) or "Audio unavailable"
        logger.warning("Audio disabled: %s", message)
        hud.state.set_error(message)
        hud.state.push_activity(f"Audio unavailable → {message}", ERROR)
        return None
    return asyncio.create_task(pump_microphone(hud.microphone, hud.session.send_audio))



async def handle_command(hud: Hud, line: str, out: Callable[[str], None] = print) -> bool:
    """Run one console command. Returns False when the HUD should exit."""
    command, _, argument = line.strip().partition(" ")
    command = command.lower()
    argument = argument.strip()

    if not command:
        return True
    if command in {"quit", "exit"}:
        return False

    if command == "look":
        out(await hud.coordinator.get_visual_context())
    elif command == "search":
        if argument:
            out(await hud.coordinator.web_search(argument))
    elif command == "save":
        if argument:
            out(await hud.coordinator.save_memory(argument))
    elif command == "recall":
        out(await hud.coordinator.read_memory())
    elif command == "talk":
        await _agent_action(hud, hud.session.toggle)
    elif command == "connect":
        await _agent_action(hud, hud.session.connect)
    elif command == "disconnect":
        await _agent_action(hud, hud.session.disconnect)
    elif command == "status":
        out(format_status(hud.state))
    elif command == "tools":
        out(", ".join(hud.dispatcher.names()))
    elif command == "help":
        out(HELP)
    else:
        out(f"Unknown command: {command}. Type 'help'.")
    return True


async def _agent_action(hud: Hud, action: Callable[[], Awaitable[None]]) -> None:
    try:
        await action()
    except Exception as exc:
        message = str(exc) or "Agent error"
        hud.state.set_status(Status.ERROR)
        hud.state.set_error(message)
        hud.state.push_activity(f"Agent error → {message}", ERROR)


async def run_agent(hud: Hud, read_line: Optional[Callable[[], Awaitable[str]]] = None) -> int:
    if not hud.settings.hud_session_token:
        print("Sign in to activate Second Sight. Set HUD_SESSION_TOKEN to a Clerk session token.")
        return 1

    if read_line is None:
        async def read_line() -> str:
            return await asyncio.to_thread(input, "> ")

    hud.state.subscribe(render_change)
    if not hud.settings.elevenlabs_agent_id:
        print("Set ELEVENLABS_AGENT_ID to enable the agent. Manual controls remain active.")
    await start_camera(hud)
    pump = await start_audio(hud)
    print(HELP)

    try:
        while True:
            try:
                line = await read_line()
            except EOFError:
                break
            if not await handle_command(hud, line):
                break
    finally:
        await hud.close()
        if pump is not None:
            await pump
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="second-sight", description="Second Sight console HUD")
    parser.add_argument("--print-tools", action="store_true", help="print client tool schemas as JSON and exit")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s - %(message)s",
    )
    hud = build_agent(settings)

    if args.print_tools:
        print(json.dumps(hud.dispatcher.schemas(), indent=2))
        return 0

    try:
        return asyncio.run(run_agent(hud))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
