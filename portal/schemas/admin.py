"""Pydantic schemas for admin endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: int
    email: str
    name: str = Field(validation_alias="display_name")
    is_admin: bool
    is_verified: bool

    model_config = {"from_attributes": True}


class AuditLogResponse(BaseModel):
    id: int
    action: str
    actor_id: int | None
    resource_type: str | None
    resource_id: str | None
    detail: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
