"""Pydantic models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EmitTestRequest(BaseModel):
    event_type: str = Field(min_length=1)
    context: dict[str, object] = Field(default_factory=dict)


class TriggerOptions(BaseModel):
    event_types: list[str]
    action_types: list[dict[str, str]]
