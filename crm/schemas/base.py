"""
Base schema configuration and common schemas.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar
from pydantic import BaseModel, ConfigDict


DataT = TypeVar("DataT")


def blank_to_none(value: Any) -> Any:
    """Treat empty optional form fields as missing."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class TimestampSchema(BaseSchema):
    """Schema with timestamp fields."""
    
    created_at: datetime
    updated_at: datetime


class FieldError(BaseSchema):
    """Single field-level validation message."""
    
    field: str
    message: str


class ApiResponse(BaseSchema, Generic[DataT]):
    """
    Response envelope shared by every endpoint.
    Either success with data, or failure with a reason.
    """
    
    success: bool = True
    data: DataT | None = None
    error: str | None = None
    reason: str | None = None
    errors: list[FieldError] | None = None
