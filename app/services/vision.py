from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger("second_sight.vision")

ALLOWED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
DEFAULT_MEDIA_TYPE = "image/jpeg"
MIN_IMAGE_DATA_LENGTH = 20

SYSTEM_PROMPT = "Describe this image for a blind person. Identify text and objects."
USER_PROMPT = "Describe what you see."
NO_DESCRIPTION = "No description returned."
ANTHROPIC_VERSION = "2023-06-01"

MODEL_NOT_FOUND_CODES = {"not_found_error", "model_not_found", "model_not_found_error"}

_DATA_URL = re.compile(r"^data:(.+?);base64,(.+)$")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ImagePayload:
    media_type: str
    data: str


class VisionError(Exception):
    """A failed call to the vision model.

    ``code`` is the upstream error type (or a local stand-in) and
    ``status_code`` is the HTTP status the proxy should answer with.
    """

    def __init__(self, message: str, code: str = "unknown_error", status_code: int = 502) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


def parse_image(raw: str) -> ImagePayload:
    """Decode a data URL or bare base64 string.

    Raises ValueError with a client-facing message when the data is
    missing or too short to be an image.
    """
    cleaned = _WHITESPACE.sub("", raw)
    match = _DATA_URL.match(cleaned)
    media_type = match.group(1).lower() if match else None
    if media_type not in ALLOWED_MEDIA_TYPES:
        media_type = DEFAULT_MEDIA_TYPE
    data = match.group(2) if match else cleaned

    if not data:
        raise ValueError("Image data missing")
    if len(data) < MIN_IMAGE_DATA_LENGTH:
        raise ValueError("Image data too small")
    return ImagePayload(media_type=media_type, data=data)


def _error_from_response(response: httpx.Response) -> VisionError:
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        code = error.get("type") or f"http_{response.status_code}"
        message = error.get("message") or code
    else:
        code = f"http_{response.status_code}"
        message = response.text or code
    return VisionError(message, code=code)


def _extract_text(body: Dict[str, Any]) -> str:
    blocks = body.get("content") or []
    text = " ".join(
        block.get("text", "") if block.get("type") == "text" else ""
        for block in blocks
        if isinstance(block, dict)
    ).strip()
    return text or NO_DESCRIPTION


class AnthropicVision:
    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        fallback_model: Optional[str] = None,
        api_url: str = "https://api.anthropic.com",
        max_tokens: int = 300,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.fallback_model = fallback_model
        self.api_url = api_url.rstrip("/")
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    async def _call_model(self, client: httpx.AsyncClient, model: str, image: ImagePayload) -> str:
        payload = {
            "model": model,
            "max_tokens": self.max_tokens,
            "system": SYSTEM_PROMPT,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": image.media_type, "data": image.data},
                        },
                        {"type": "text", "text": USER_PROMPT},
                    ],
                }
            ],
        }
        headers = {"x-api-key": self.api_key or "", "anthropic-version": ANTHROPIC_VERSION}
        try:
            response = await client.post(f"{self.api_url}/v1/messages", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise VisionError(str(exc) or "Vision request failed", code="connection_error") from exc

        if response.is_error:
            raise _error_from_response(response)
        return _extract_text(response.json())

    async def describe(self, image: ImagePayload) -> str:
        """Describe an image, retrying once on the fallback model."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                return await self._call_model(client, self.model, image)
            except VisionError as err:
                logger.warning("Vision model %s failed: code=%s", self.model, err.code)
                primary = err

            if self.fallback_model and self.fallback_model != self.model:
                try:
                    return await self._call_model(client, self.fallback_model, image)
                except VisionError as fallback:
                    logger.warning("Fallback model %s failed: code=%s", self.fallback_model, fallback.code)
                    raise VisionError(f"Vision failed ({primary.code} / {fallback.code})", code=fallback.code)

        if primary.code in MODEL_NOT_FOUND_CODES:
            raise VisionError("Anthropic model not found or vision not enabled.", code=primary.code)
        raise primary
