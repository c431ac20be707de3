"""
Communication and attachment schemas.
"""

from datetime import datetime
from typing import Any
from pydantic import Field, field_validator

from crm.models.communication import CommunicationType
from crm.schemas.base import BaseSchema, TimestampSchema, blank_to_none


class AttachmentCreate(BaseSchema):
    """Attachment metadata sent along with a new communication."""
    
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2048)
    size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1, max_length=255)


class AttachmentResponse(TimestampSchema):
    """Stored attachment."""
    
    id: str
    communication_id: str
    name: str
    url: str
    size: int
    mime_type: str


class CommunicationBase(BaseSchema):
    """Fields shared by create and update."""
    
    type: CommunicationType
    subject: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    project_id: str | None = None
    
    @field_validator("project_id", mode="before")
    @classmethod
    def _blank_project(cls, value: Any) -> Any:
        return blank_to_none(value)


class CommunicationCreate(CommunicationBase):
    """Schema for logging a new communication."""
    
    sent_at: datetime | None = None
    attachments: list[AttachmentCreate] = Field(default_factory=list)


class CommunicationUpdate(CommunicationBase):
    """Schema for editing a communication. No project_id clears the tag."""
    pass


class CommunicationResponse(TimestampSchema):
    """Communication as shown on the client timeline."""
    
    id: str
    client_id: str
    project_id: str | None = None
    project_tag: str | None = None
    type: CommunicationType
    subject: str
    content: str
    sent_at: datetime
    attachments: list[AttachmentResponse] = Field(default_factory=list)
