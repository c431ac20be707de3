"""
Project schemas for request/response validation.
"""

from datetime import date, datetime
from typing import Any
from pydantic import Field, ValidationInfo, field_validator

from crm.models.project import ProjectStatus
from crm.schemas.base import BaseSchema, TimestampSchema, blank_to_none


class ProjectBase(BaseSchema):
    """Base project schema with common fields."""
    
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    
    @field_validator("description", "start_date", "end_date", mode="before")
    @classmethod
    def _blank_optional(cls, value: Any) -> Any:
        return blank_to_none(value)
    
    @field_validator("end_date")
    @classmethod
    def _end_after_start(cls, value: date | None, info: ValidationInfo) -> date | None:
        start_date = info.data.get("start_date")
        if value and start_date and value < start_date:
            raise ValueError("End date must be after start date")
        return value


class ProjectCreate(ProjectBase):
    """Schema for creating a new project."""
    
    client_id: str = Field(..., min_length=1)
    status: ProjectStatus = ProjectStatus.PROPOSAL


class ProjectUpdate(ProjectBase):
    """
    Schema for updating a project.
    Replaces every mutable field, a missing status keeps the current one.
    """
    
    status: ProjectStatus | None = None


class ProjectResponse(TimestampSchema):
    """Project with its display fields."""
    
    id: str
    user_id: str
    client_id: str
    name: str
    description: str | None = None
    status: ProjectStatus
    start_date: date | None = None
    end_date: date | None = None
    client_name: str
    client_company: str | None = None
    last_activity: datetime
    communication_count: int = 0
    milestone_count: int = 0
    progress: int = Field(0, ge=0, le=100)
