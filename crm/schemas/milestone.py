"""
Milestone schemas for request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from pydantic import Field, field_validator

from crm.models.milestone import MilestoneStatus
from crm.schemas.base import BaseSchema, TimestampSchema, blank_to_none
from crm.schemas.communication import CommunicationResponse


def split_lines(value: Any) -> list[str]:
    """Accept one deliverable per line or a list; blank entries are dropped."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    return [str(item).strip() for item in value if str(item).strip()]


class MilestoneBase(BaseSchema):
    """Base milestone schema with common fields."""
    
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    due_date: date
    payment_amount: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    client_approval_required: bool = False
    deliverables: list[str] = Field(default_factory=list)
    
    @field_validator("description", "payment_amount", mode="before")
    @classmethod
    def _blank_optional(cls, value: Any) -> Any:
        return blank_to_none(value)
    
    @field_validator("deliverables", mode="before")
    @classmethod
    def _split_deliverables(cls, value: Any) -> list[str]:
        return split_lines(value)


class MilestoneCreate(MilestoneBase):
    """Schema for adding a milestone at the end of a project's plan."""
    pass


class MilestoneUpdate(MilestoneBase):
    """
    Schema for updating a milestone.
    Replaces every mutable field, a missing status keeps the current one.
    """
    
    status: MilestoneStatus | None = None


class MilestoneReorder(BaseSchema):
    """Every milestone of the project, in the new order."""
    
    milestone_ids: list[str] = Field(..., min_length=1)


class MilestoneResponse(TimestampSchema):
    """Milestone with its task progress."""
    
    id: str
    user_id: str
    project_id: str
    name: str
    description: str | None = None
    due_date: date
    status: MilestoneStatus
    deliverables: list[str] = Field(default_factory=list)
    payment_amount: Decimal | None = None
    client_approval_required: bool = False
    position: int
    completed_at: datetime | None = None
    task_count: int = 0
    completed_task_count: int = 0


class MilestoneCompletion(BaseSchema):
    """Outcome of completing a milestone."""
    
    milestone: MilestoneResponse
    communication: CommunicationResponse | None = None
