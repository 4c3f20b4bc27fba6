from __future__ import annotations

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from app.deps import get_vision_service, vision_gate
from app.schemas import VisionRequest, read_payload
from app.services import AnthropicVision, VisionError, parse_image


logger = logging.getLogger("second_sight.vision")

router = APIRouter()


@router.post("/api/vision", dependencies=[Depends(vision_gate)])
async def vision(
    request: Request,
    service: AnthropicVision = Depends(get_vision_service),
) -> Dict[str, str]:
    payload = await read_payload(request, VisionRequest)
    raw = payload.image or ""
    if not raw:
        raise HTTPException(status_code=400, detail="'image' is required")
    try:
        image = parse_image(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not service.api_key:
        raise HTTPException(status_code=500, detail="Missing ANTHROPIC_API_KEY")

    logger.info(
        "Incoming vision: media_type=%s data_len=%s model=%s",
        image.media_type,
        len(image.data),
        service.model,
    )
    try:
        text = await service.describe(image)
    except VisionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception as exc:
        logger.exception("Vision processing failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc) or "Vision request failed")
    return {"text": text}
