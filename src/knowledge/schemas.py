"""Pydantic schemas validating LLM JSON at the boundary.

Extractor and judge replies are parsed into these models before anything
else touches them; a reply that does not validate is treated as a failed
call by the caller.
"""

import json
import re
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import ConflictAction, ConflictType

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class ResponseFormatError(ValueError):
    """LLM reply was not valid JSON of the expected shape."""


def parse_json_payload(response: str):
    """Decode an LLM reply, stripping markdown fences if present."""
    if response is None:
        raise ResponseFormatError("empty response")
    text = response.strip()
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ResponseFormatError(f"invalid JSON: {e}") from e


class ExtractedEntity(BaseModel):
    name: str = Field(..., min_length=1)
    type: Optional[str] = None


class ExtractedFact(BaseModel):
    """One atomic statement from the extractor."""

    statement: str = Field(..., min_length=1)
    category: str = "general"
    entities: list[Union[str, ExtractedEntity]] = Field(default_factory=list)
    confidence: float = Field(0.7, ge=0.0, le=1.0)
    attribute: Optional[str] = None
    value: Optional[str] = None

    @field_validator("statement")
    @classmethod
    def strip_statement(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("statement must be non-empty")
        return v

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, v):
        return v or "general"

    @field_validator("value", "attribute", mode="before")
    @classmethod
    def stringify(cls, v):
        return None if v is None else str(v)


class ExtractionResponse(BaseModel):
    """Extractor reply: ``{"facts": [...], "sourceQuestion": ...}``.

    Items are validated individually (see ``parse_extraction``) so one bad
    item does not discard the rest.
    """

    model_config = ConfigDict(populate_by_name=True)

    facts: list
    source_question: Optional[str] = Field(None, alias="sourceQuestion")


class JudgmentResponse(BaseModel):
    """Conflict judge reply. Every field the contract needs is required."""

    model_config = ConfigDict(populate_by_name=True)

    action: ConflictAction
    conflict_type: ConflictType = Field(..., alias="conflictType")
    reason: str = ""
    related_fact_id: Optional[str] = Field(None, alias="relatedFactId")

    @field_validator("action", "conflict_type", mode="before")
    @classmethod
    def normalize_enum(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("related_fact_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return None if v.lower() in ("", "null", "none") else v


def parse_extraction(response: str) -> list[ExtractedFact]:
    """Validate an extractor reply. Raises ResponseFormatError on a bad envelope."""
    payload = parse_json_payload(response)
    # Some models return the bare array
    if isinstance(payload, list):
        payload = {"facts": payload}
    try:
        envelope = ExtractionResponse.model_validate(payload)
    except ValidationError as e:
        raise ResponseFormatError(f"unexpected extraction shape: {e}") from e

    items = []
    for raw in envelope.facts:
        try:
            items.append(ExtractedFact.model_validate(raw))
        except ValidationError:
            continue
    return items


def parse_judgment(response: str) -> JudgmentResponse:
    """Validate a judge reply. Raises ResponseFormatError on anything unexpected."""
    payload = parse_json_payload(response)
    if not isinstance(payload, dict):
        raise ResponseFormatError("judgment must be a JSON object")
    try:
        return JudgmentResponse.model_validate(payload)
    except ValidationError as e:
        raise ResponseFormatError(f"unexpected judgment shape: {e}") from e
