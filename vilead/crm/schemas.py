from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


def _clean_tags(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    cleaned: list[str] = []
    for tag in value:
        text = str(tag).strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


class LeadCreate(_CamelRequest):
    name: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    email: EmailStr | None = None
    source: str = Field(default="manual", min_length=1, max_length=64)
    region: str | None = Field(default=None, max_length=64)
    product: str | None = None
    content: str | None = None
    notes: str | None = None
    status: str = Field(default="new", min_length=1, max_length=32)
    value: Decimal | None = Field(default=None, ge=0)
    assigned_to: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        return _clean_tags(value) or []


class LeadUpdate(_CamelRequest):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    email: EmailStr | None = None
    source: str | None = Field(default=None, min_length=1, max_length=64)
    region: str | None = Field(default=None, max_length=64)
    product: str | None = None
    content: str | None = None
    notes: str | None = None
    status: str | None = Field(default=None, min_length=1, max_length=32)
    stage: str | None = None
    value: Decimal | None = Field(default=None, ge=0)
    assigned_to: str | None = None
    tags: list[str] | None = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str] | None) -> list[str] | None:
        return _clean_tags(value)


class LeadRead(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    phone: str | None
    email: str | None
    source: str
    region: str | None
    product: str | None
    content: str | None
    notes: str | None
    status: str
    stage: str
    value: Decimal | None
    assigned_to: str | None
    created_by: str | None
    tags: list[str]
    last_contacted_at: datetime | None
    created_at: datetime
    updated_at: datetime


class LeadActivityRead(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    lead_id: int
    activity_type: str
    actor_user_id: str
    description: str | None
    details: dict[str, Any]
    occurred_at: datetime


class LeadDetailRead(LeadRead):
    activities: list[LeadActivityRead] = Field(default_factory=list)


class LeadListResponse(_CamelModel):
    leads: list[LeadRead]
    total: int


class LeadAssignRequest(_CamelRequest):
    lead_ids: list[int] = Field(min_length=1)
    user_id: str = Field(min_length=1)


class LeadAssignFailure(_CamelModel):
    lead_id: int
    error: str


class LeadAssignResponse(_CamelModel):
    message: str
    assigned: int
    errors: list[LeadAssignFailure] | None = None


class LeadStageChangeRequest(_CamelRequest):
    stage: str = Field(min_length=1)


class LeadNoteCreate(_CamelRequest):
    content: str = Field(min_length=1)
    is_contact: bool = False


class LeadImportRowError(_CamelModel):
    row: int
    error: str


class LeadImportResponse(_CamelModel):
    message: str
    leads: list[LeadRead]
    errors: list[LeadImportRowError] | None = None
