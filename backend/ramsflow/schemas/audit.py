"""Audit trail schemas."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class AuditEventOut(BaseModel):
    id: str
    event_type: str
    tenant_id: str | None
    actor_id: str | None
    actor_username: str | None
    entity_type: str | None
    entity_id: str | None
    correlation_id: str | None
    payload: dict[str, Any] | None = Field(default=None, validation_alias="payload_json")
    event_hash: str
    prev_hash: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("payload", mode="before")
    @classmethod
    def decode_payload(cls, v: Any) -> Any:
        if isinstance(v, str):
            return json.loads(v)
        return v


class AuditListResponse(BaseModel):
    items: list[AuditEventOut]
    total: int
    page: int
    page_size: int


class ChainVerificationResult(BaseModel):
    is_valid: bool
    total_events: int
    first_broken_at: str | None = Field(
        default=None, description="ID of the first event whose hash link does not verify"
    )
    message: str
