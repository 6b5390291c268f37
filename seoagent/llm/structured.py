"""Schemas for structured AI output and the parser that enforces them."""

from __future__ import annotations

import json
import re
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import MalformedResponseError

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)

ModelT = TypeVar("ModelT", bound=BaseModel)


class MetaSuggestion(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)

    @field_validator("title", "description")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = " ".join(value.split())
        return cleaned or None


class BlogPost(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    content: str = Field(min_length=1)
    slug: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    image_prompt: Optional[str] = None


def parse_structured(text: str, model: Type[ModelT]) -> ModelT:
    """Validate ``text`` (optionally fenced or wrapped in prose) against ``model``."""
    candidate = _json_candidate(text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Response is not valid JSON: {exc.msg}") from exc
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"Response does not match {model.__name__}: {exc.error_count()} validation errors"
        ) from exc


def _json_candidate(text: str) -> str:
    fenced = _FENCE_RE.search(text)
    if fenced:
        return fenced.group(1).strip()
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text.strip()


__all__ = ["BlogPost", "MetaSuggestion", "parse_structured"]
