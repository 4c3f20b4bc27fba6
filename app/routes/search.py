from __future__ import annotations

import logging
from typing import Dict

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request

from app.deps import get_search_service
from app.schemas import SearchRequest, read_payload
from app.services import SearchError, TavilySearch


logger = logging.getLogger("second_sight.search")

router = APIRouter()


@router.post("/api/search")
async def search(request: Request, service: TavilySearch = Depends(get_search_service)) -> Dict[str, str]:
    payload = await read_payload(request, SearchRequest)
    query = (payload.query or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="'query' is required")
    if not service.api_key:
        raise HTTPException(status_code=500, detail="Missing TAVILY_API_KEY")

    logger.info("Incoming search: query_len=%s", len(query))
    try:
        summary = await service.summarize(query)
    except SearchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Search request failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc) or "Search failed")
    return {"summary": summary}
