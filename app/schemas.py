from __future__ import annotations

import json
from typing import Any, Optional, Type, TypeVar

from fastapi import HTTPException, Request
from pydantic import BaseModel, Field, ValidationError, field_validator


class VisionRequest(BaseModel):
    image: Optional[str] = Field(None, description="Data URL or raw base64 image")

    @field_validator("image", mode="before")
    @classmethod
    def _coerce_image(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return value if isinstance(value, str) else str(value)


class SearchRequest(BaseModel):
    query: Optional[str] = Field(None, description="Web search query")


class SaveMemoryRequest(BaseModel):
    fact: Optional[str] = Field(None, description="Fact to remember")


class EmptyRequest(BaseModel):
    pass


M = TypeVar("M", bound=BaseModel)


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"Invalid '{field}': {first.get('msg', 'invalid value')}"


async def read_payload(request: Request, model: Type[M], allow_empty: bool = False) -> M:
    """Parse the JSON body into ``model``; any malformed body is a 400."""
    raw = await request.body()
    if allow_empty and not raw.strip():
        return model()
    try:
        data = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_describe_validation_error(exc))
