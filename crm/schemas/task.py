"""
Task schemas for request/response validation.
"""

from datetime import date, datetime
from typing import Any
from pydantic import Field, field_validator

from crm.models.task import TaskPriority, TaskStatus
from crm.schemas.base import BaseSchema, TimestampSchema, blank_to_none


def split_ids(value: Any) -> list[str]:
    """Accept a comma separated string or a list of task IDs, keeping the first of duplicates."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    ids = []
    for item in value:
        item = str(item).strip()
        if item and item not in ids:
            ids.append(item)
    return ids


class TaskBase(BaseSchema):
    """Base task schema with common fields."""
    
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_hours: int = Field(0, ge=0)
    due_date: date | None = None
    milestone_id: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    
    @field_validator("description", "due_date", "milestone_id", mode="before")
    @classmethod
    def _blank_optional(cls, value: Any) -> Any:
        return blank_to_none(value)
    
    @field_validator("dependencies", mode="before")
    @classmethod
    def _split_dependencies(cls, value: Any) -> list[str]:
        return split_ids(value)


class TaskCreate(TaskBase):
    """Schema for creating a task. New tasks always start as TODO."""
    pass


class TaskUpdate(TaskBase):
    """
    Schema for updating a task.
    Replaces every mutable field, a missing status keeps the current one.
    """
    
    status: TaskStatus | None = None


class TaskStatusUpdate(BaseSchema):
    """Move a task along the board."""
    
    status: TaskStatus


class TaskResponse(TimestampSchema):
    """Task as shown on the project board."""
    
    id: str
    user_id: str
    project_id: str
    milestone_id: str | None = None
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    estimated_hours: int = 0
    due_date: date | None = None
    dependencies: list[str] = Field(default_factory=list)
    blocked: bool = False
    completed_at: datetime | None = None


class TaskCompletion(BaseSchema):
    """Outcome of completing a task."""
    
    task: TaskResponse
    unlocked: list[TaskResponse] = Field(default_factory=list)
    milestone_in_review: bool = False
