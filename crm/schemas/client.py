"""
Client schemas for request/response validation.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from pydantic import EmailStr, Field, field_validator

from crm.models.client import ClientStatus
from crm.schemas.base import BaseSchema, TimestampSchema, blank_to_none


class ClientFilter(str, Enum):
    """Which clients a list query returns."""
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    ALL = "ALL"


def normalize_tags(value: Any) -> list[str]:
    """
    Accept either a comma separated string or a list.
    Tags are trimmed and empty entries dropped, order is kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if str(tag).strip()]


class ClientBase(BaseSchema):
    """Base client schema with common fields."""
    
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    company: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)
    tags: list[str] = Field(default_factory=list)
    
    @field_validator("email", "phone", "company", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, value: Any) -> Any:
        return blank_to_none(value)
    
    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> list[str]:
        return normalize_tags(value)


class ClientCreate(ClientBase):
    """Schema for creating a new client."""
    pass


class ClientUpdate(ClientBase):
    """Schema for updating a client (replaces every editable field)."""
    pass


class ClientResponse(TimestampSchema):
    """Client as shown in lists and detail panes."""
    
    id: str
    user_id: str
    name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    status: ClientStatus
    last_contact: datetime
    project_count: int = 0
