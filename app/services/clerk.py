from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Dict, List, Optional

import httpx


logger = logging.getLogger("second_sight.memory")

MEMORIES_KEY = "memories"

# Serializes read-modify-write saves per user inside one process. Clerk has no
# conditional metadata update, so writes from separate processes still race.
# A lock lives only while some save holds or waits on it.
_save_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _save_lock(user_id: str) -> asyncio.Lock:
    lock = _save_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _save_locks[user_id] = lock
    return lock


class ClerkError(Exception):
    """Raised when the Clerk backend API rejects a request."""


def memories_from_metadata(metadata: Any) -> List[str]:
    if not isinstance(metadata, dict):
        return []
    memories = metadata.get(MEMORIES_KEY)
    return list(memories) if isinstance(memories, list) else []


class ClerkUsers:
    """Reads and writes the saved-facts list in a user's public metadata."""

    def __init__(
        self,
        secret_key: Optional[str],
        api_url: str = "https://api.clerk.com/v1",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if not response.is_error:
            return
        message = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            errors = body.get("errors") or []
            if errors and isinstance(errors[0], dict):
                message = errors[0].get("long_message") or errors[0].get("message")
        logger.warning("Clerk %s failed with status %s", action, response.status_code)
        raise ClerkError(message or f"Clerk {action} failed ({response.status_code})")

    async def _get_public_metadata(self, client: httpx.AsyncClient, user_id: str) -> Dict[str, Any]:
        response = await client.get(f"/users/{user_id}")
        self._raise_for_status(response, "user lookup")
        metadata = response.json().get("public_metadata")
        return metadata if isinstance(metadata, dict) else {}

    async def read_memories(self, user_id: str) -> List[str]:
        async with self._client() as client:
            metadata = await self._get_public_metadata(client, user_id)
        return memories_from_metadata(metadata)

    async def append_memory(self, user_id: str, fact: str) -> List[str]:
        """Append a fact and write the whole list back.

        Returns the list as written.
        """
        async with _save_lock(user_id):
            async with self._client() as client:
                metadata = await self._get_public_metadata(client, user_id)
                memories = memories_from_metadata(metadata) + [fact]
                response = await client.patch(
                    f"/users/{user_id}/metadata",
                    json={"public_metadata": {**metadata, MEMORIES_KEY: memories}},
                )
                self._raise_for_status(response, "metadata update")
        logger.info("Saved memory for user=%s total=%s", user_id, len(memories))
        return memories
