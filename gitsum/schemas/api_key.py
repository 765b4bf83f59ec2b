"""Schemas for API key management."""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from gitsum.models.api_key import KeyEnvironment


class APIKeyCreateRequest(BaseModel):
    """Request schema for creating a new API key."""
    name: str = Field(..., min_length=1, max_length=255, description="Label/name for the API key")
    type: KeyEnvironment = Field(..., description='Environment class: "dev" or "prod"')
    limit: Optional[int] = Field(default=None, ge=0, description="Usage limit; omit for unlimited")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class APIKeyUpdateRequest(BaseModel):
    """Request schema for updating an API key (all fields required)."""
    name: str = Field(..., min_length=1, max_length=255)
    type: KeyEnvironment
    key: str = Field(..., min_length=1, max_length=255)

    @field_validator("name", "key")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class APIKeyResponse(BaseModel):
    """Response schema for an API key record (credential included)."""
    id: str
    name: str
    type: KeyEnvironment
    key: str
    key_masked: str
    usage: int
    limit: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class APIKeyValidateRequest(BaseModel):
    """Request schema for the informational validate action."""
    key: str = Field(..., min_length=1)


class APIKeyValidateResponse(BaseModel):
    valid: bool
    message: str
    reason: Optional[str] = None
    keyData: Optional[Dict[str, Any]] = None
