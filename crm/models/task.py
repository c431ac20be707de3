"""
Task model.
Units of work inside a project, optionally grouped under a milestone.
"""

from typing import Optional, TYPE_CHECKING
from datetime import date, datetime
from enum import Enum
from sqlalchemy import JSON, String, Text, ForeignKey, Integer, Date, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.models.base import BaseModel

if TYPE_CHECKING:
    from crm.models.project import Project


class TaskStatus(str, Enum):
    """Task status enumeration, in workflow order."""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"


class TaskPriority(str, Enum):
    """Task priority enumeration, lowest first."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Task(BaseModel):
    """
    Task model.
    
    Attributes:
        user_id: Foreign key to the owning user
        project_id: Foreign key to the project
        milestone_id: Optional milestone of the same project
        title: Short description of the work
        description: Details
        status: Current task status
        priority: Task priority
        estimated_hours: Planned effort
        due_date: Deadline
        dependencies: IDs of tasks of the same project that must complete first
        completed_at: When the task reached COMPLETED
    """
    
    __tablename__ = "tasks"
    
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    milestone_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("milestones.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    status: Mapped[TaskStatus] = mapped_column(
        SQLEnum(TaskStatus, name="task_status"),
        default=TaskStatus.TODO,
        nullable=False,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        SQLEnum(TaskPriority, name="task_priority"),
        default=TaskPriority.MEDIUM,
        nullable=False,
    )
    estimated_hours: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    due_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
    )
    dependencies: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    
    # Relationships
    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="tasks",
    )
    
    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title='{self.title}', status={self.status})>"
