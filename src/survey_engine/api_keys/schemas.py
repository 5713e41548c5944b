"""
Pydantic schemas for API key management.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiKeyCreateRequest(BaseModel):
    """Request to issue a new webhook key."""

    name: str = Field(..., min_length=1, max_length=255, description="Label shown in the key list")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class ApiKeyResponse(BaseModel):
    """Audit view of a key. Never carries the hash or the plaintext."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    brand_id: UUID
    name: str
    key_prefix: str
    created_at: datetime | None = None
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None


class ApiKeyCreatedResponse(ApiKeyResponse):
    """Returned once, at creation: the only time ``key`` is ever exposed."""

    key: str = Field(..., description="Full API key. Store it now; it cannot be shown again.")


class ApiKeyListResponse(BaseModel):
    items: list[ApiKeyResponse]
    total: int
