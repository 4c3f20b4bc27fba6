from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from app.auth import ClerkTokenVerifier, get_verifier, require_user
from app.services import AnthropicVision, ClerkUsers, TavilySearch
from config.settings import Settings, get_settings


def get_vision_service(settings: Settings = Depends(get_settings)) -> AnthropicVision:
    return AnthropicVision(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        fallback_model=settings.anthropic_fallback_model,
        api_url=settings.anthropic_api_url,
        timeout=settings.upstream_timeout,
    )


def get_search_service(settings: Settings = Depends(get_settings)) -> TavilySearch:
    return TavilySearch(
        api_key=settings.tavily_api_key,
        api_url=settings.tavily_api_url,
        timeout=settings.upstream_timeout,
    )


def get_user_store(settings: Settings = Depends(get_settings)) -> ClerkUsers:
    return ClerkUsers(
        secret_key=settings.clerk_secret_key,
        api_url=settings.clerk_api_url,
        timeout=settings.upstream_timeout,
    )


def vision_gate(
    request: Request,
    settings: Settings = Depends(get_settings),
    verifier: ClerkTokenVerifier = Depends(get_verifier),
) -> Optional[str]:
    """Vision is gated at the app level unless VISION_REQUIRE_AUTH is set."""
    if not settings.vision_require_auth:
        return None
    return require_user(request, verifier)
