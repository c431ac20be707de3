"""
User schemas.
"""

from crm.schemas.base import TimestampSchema


class UserResponse(TimestampSchema):
    """User response schema (public data)."""
    
    id: str
    external_id: str
    email: str
    name: str | None = None
    image_url: str | None = None
