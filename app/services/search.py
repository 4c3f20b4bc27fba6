from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger("second_sight.search")

NO_ANSWER = "No answer available."
RESULT_SEPARATOR = " \n "


class SearchError(Exception):
    """Raised when the search provider rejects or fails a query."""


def summarize_results(body: Dict[str, Any]) -> str:
    """Prefer the provider's synthesized answer, else join result snippets."""
    answer = body.get("answer")
    if answer:
        return answer
    results = body.get("results") or []
    contents = [item.get("content") for item in results if isinstance(item, dict) and item.get("content")]
    if contents:
        return RESULT_SEPARATOR.join(contents)
    return NO_ANSWER


def _error_text(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    if body.get("error"):
        return str(body["error"])
    detail = body.get("detail")
    if isinstance(detail, dict) and detail.get("error"):
        return str(detail["error"])
    if isinstance(detail, str) and detail:
        return detail
    return None


class TavilySearch:
    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.tavily.com/search",
        max_results: int = 3,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.max_results = max_results
        self.timeout = timeout
        self._transport = transport

    async def summarize(self, query: str) -> str:
        payload = {
            "api_key": self.api_key,
            "query": query,
            "max_results": self.max_results,
            "include_answer": True,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.api_url, json=payload)

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            logger.warning("Tavily returned %s for query_len=%s", response.status_code, len(query))
            raise SearchError(_error_text(body) or "Tavily search failed")

        if not isinstance(body, dict):
            return NO_ANSWER
        return summarize_results(body)
