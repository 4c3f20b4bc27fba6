import json
import re

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import app
from config.settings import Settings, get_settings


ENV_NAMES = [
    "APP_ENV",
    "LOG_LEVEL",
    "UPSTREAM_TIMEOUT",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
    "ANTHROPIC_FALLBACK_MODEL",
    "ANTHROPIC_API_URL",
    "VISION_REQUIRE_AUTH",
    "TAVILY_API_KEY",
    "TAVILY_API_URL",
    "CLERK_SECRET_KEY",
    "CLERK_API_URL",
    "CLERK_JWT_KEY",
    "CLERK_JWKS_URL",
    "CLERK_AUTHORIZED_PARTIES",
    "ELEVENLABS_AGENT_ID",
    "ELEVENLABS_API_KEY",
    "ELEVENLABS_WS_URL",
    "HUD_API_URL",
    "HUD_SESSION_TOKEN",
    "HUD_CAMERA_INDEX",
    "HUD_JPEG_QUALITY",
    "HUD_ACTIVITY_LIMIT",
    "HUD_SERIALIZE_TOOLS",
    "HUD_INPUT_DEVICE",
    "HUD_OUTPUT_DEVICE",
]


@pytest.fixture
def settings(monkeypatch) -> Settings:
    """Settings built from a clean environment."""
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return Settings()


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


class FakeClerk:
    """In-memory stand-in for the Clerk users API, served via MockTransport."""

    USER_PATH = re.compile(r"^/v1/users/([^/]+)(/metadata)?$")

    def __init__(self, users=None):
        self.users = users if users is not None else {"user_123": {}}
        self.requests = []
        self.fail_with = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return self.fail_with
        match = self.USER_PATH.match(request.url.path)
        if not match or match.group(1) not in self.users:
            return httpx.Response(
                404,
                json={"errors": [{"message": "not found", "long_message": "User not found"}]},
            )
        user_id = match.group(1)
        if request.method == "GET" and not match.group(2):
            return httpx.Response(200, json={"id": user_id, "public_metadata": self.users[user_id]})
        if request.method == "PATCH" and match.group(2):
            body = json.loads(request.content)
            self.users[user_id] = body["public_metadata"]
            return httpx.Response(200, json={"id": user_id, "public_metadata": self.users[user_id]})
        return httpx.Response(405, json={"errors": [{"message": "method not allowed"}]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_clerk() -> FakeClerk:
    return FakeClerk()


class FakeAudioStream:
    """Stands in for a sounddevice raw stream; tests drive ``callback`` directly."""

    def __init__(self, kwargs):
        self.kwargs = kwargs
        self.callback = kwargs["callback"]
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True


class FakeAudioStreams:
    def __init__(self, error=None):
        self.error = error
        self.opened = []

    def __call__(self, **kwargs):
        if self.error is not None:
            raise self.error
        stream = FakeAudioStream(kwargs)
        self.opened.append(stream)
        return stream


@pytest.fixture
def audio_streams() -> FakeAudioStreams:
    return FakeAudioStreams()
