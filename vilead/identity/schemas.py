from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from vilead.platform.security.policies import Role


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = ""


class DemoTokenRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Role


class UserRead(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: str
    display_name: str | None = Field(default=None)
    role: str
    created_at: datetime
    updated_at: datetime


class TokenResponse(BaseModel):
    token: str
    user: UserRead


class CapabilitiesRead(BaseModel):
    role: str
    resources: dict[str, dict[str, Any]]
