"""Upstream API clients used by the proxy endpoints."""

from app.services.clerk import ClerkError, ClerkUsers
from app.services.search import SearchError, TavilySearch
from app.services.vision import AnthropicVision, ImagePayload, VisionError, parse_image

__all__ = [
    "AnthropicVision",
    "ClerkError",
    "ClerkUsers",
    "ImagePayload",
    "SearchError",
    "TavilySearch",
    "VisionError",
    "parse_image",
]
