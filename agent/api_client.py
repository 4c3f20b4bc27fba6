from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx


logger = logging.getLogger("second_sight.hud.api")


class ApiCallError(Exception):
    """A proxy endpoint answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HudApiClient:
    """Posts JSON to the Second Sight proxy endpoints."""

    def __init__(
        self,
        base_url: str,
        session_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if session_token:
            headers["Authorization"] = f"Bearer {session_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if payload is None:
            response = await self._client.post(path)
        else:
            response = await self._client.post(path, json=payload)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.is_error:
            message = body.get("error") or body.get("message") or "Request failed"
            logger.debug("POST %s failed with %s: %s", path, response.status_code, message)
            raise ApiCallError(str(message), status_code=response.status_code)
        return body

    async def describe_image(self, image: str) -> str:
        body = await self.call("/api/vision", {"image": image})
        return body.get("text") or ""

    async def search(self, query: str) -> str:
        body = await self.call("/api/search", {"query": query})
        return body.get("summary") or ""

    async def save_memory(self, fact: str) -> str:
        body = await self.call("/api/memory/save", {"fact": fact})
        return body.get("message") or ""

    async def read_memory(self) -> List[str]:
        body = await self.call("/api/memory/read")
        memories = body.get("memories")
        return list(memories) if isinstance(memories, list) else []
