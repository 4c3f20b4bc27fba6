from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from app.auth import require_user
from app.deps import get_user_store
from app.schemas import EmptyRequest, SaveMemoryRequest, read_payload
from app.services import ClerkUsers


logger = logging.getLogger("second_sight.memory")

router = APIRouter(prefix="/api/memory")


def _require_secret(store: ClerkUsers) -> None:
    if not store.secret_key:
        raise HTTPException(status_code=500, detail="Missing CLERK_SECRET_KEY")


@router.post("/read")
async def read_memory(
    request: Request,
    user_id: str = Depends(require_user),
    store: ClerkUsers = Depends(get_user_store),
) -> Dict[str, List[str]]:
    await read_payload(request, EmptyRequest, allow_empty=True)
    _require_secret(store)
    try:
        memories = await store.read_memories(user_id)
    except Exception as exc:
        logger.exception("Memory read failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc) or "Failed to read memories")
    return {"memories": memories}


@router.post("/save")
async def save_memory(
    request: Request,
    user_id: str = Depends(require_user),
    store: ClerkUsers = Depends(get_user_store),
) -> Dict[str, str]:
    payload = await read_payload(request, SaveMemoryRequest)
    fact = (payload.fact or "").strip()
    if not fact:
        raise HTTPException(status_code=400, detail="'fact' is required")
    _require_secret(store)
    try:
        await store.append_memory(user_id, fact)
    except Exception as exc:
        logger.exception("Memory save failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc) or "Failed to save memory")
    return {"message": "Memory saved."}
