from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_optional_int(name: str) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else None


# The HUD keeps between 12 and 15 recent activity entries.
ACTIVITY_LIMIT_MIN = 12
ACTIVITY_LIMIT_MAX = 15


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Both the proxy server
    and the HUD client read from the same environment.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "30"))

        # Vision (Anthropic Messages API)
        self.anthropic_api_key: Optional[str] = os.getenv("ANTHROPIC_API_KEY")
        self.anthropic_model: str = os.getenv("ANTHROPIC_MODEL") or "claude-haiku-4-5"
        self.anthropic_fallback_model: str = os.getenv("ANTHROPIC_FALLBACK_MODEL") or "claude-sonnet-4-5"
        self.anthropic_api_url: str = os.getenv("ANTHROPIC_API_URL", "https://api.anthropic.com")
        self.vision_require_auth: bool = _env_bool("VISION_REQUIRE_AUTH")

        # Search (Tavily)
        self.tavily_api_key: Optional[str] = os.getenv("TAVILY_API_KEY")
        self.tavily_api_url: str = os.getenv("TAVILY_API_URL", "https://api.tavily.com/search")

        # Identity provider (Clerk)
        self.clerk_secret_key: Optional[str] = os.getenv("CLERK_SECRET_KEY")
        self.clerk_api_url: str = os.getenv("CLERK_API_URL", "https://api.clerk.com/v1")
        self.clerk_jwt_key: Optional[str] = os.getenv("CLERK_JWT_KEY")
        self.clerk_jwks_url: Optional[str] = os.getenv("CLERK_JWKS_URL")
        self.clerk_authorized_parties: List[str] = _env_list("CLERK_AUTHORIZED_PARTIES")

        # Realtime voice agent (ElevenLabs)
        self.elevenlabs_agent_id: Optional[str] = os.getenv("ELEVENLABS_AGENT_ID")
        self.elevenlabs_api_key: Optional[str] = os.getenv("ELEVENLABS_API_KEY")
        self.elevenlabs_ws_url: str = os.getenv(
            "ELEVENLABS_WS_URL", "wss://api.elevenlabs.io/v1/convai/conversation"
        )

        # HUD client
        self.hud_api_url: str = os.getenv("HUD_API_URL", "http://127.0.0.1:8000")
        self.hud_session_token: Optional[str] = os.getenv("HUD_SESSION_TOKEN")
        self.hud_camera_index: int = int(os.getenv("HUD_CAMERA_INDEX", "0"))
        self.hud_jpeg_quality: int = int(os.getenv("HUD_JPEG_QUALITY", "90"))
        self.hud_activity_limit: int = min(
            max(int(os.getenv("HUD_ACTIVITY_LIMIT", "12")), ACTIVITY_LIMIT_MIN), ACTIVITY_LIMIT_MAX
        )
        self.hud_serialize_tools: bool = _env_bool("HUD_SERIALIZE_TOOLS")
        self.hud_input_device: Optional[int] = _env_optional_int("HUD_INPUT_DEVICE")
        self.hud_output_device: Optional[int] = _env_optional_int("HUD_OUTPUT_DEVICE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
