"""
Project model.
A project belongs to one user and is linked to exactly one of their clients.
"""

from typing import Optional, List, TYPE_CHECKING
from datetime import date
from enum import Enum
from sqlalchemy import String, Text, ForeignKey, Date, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.models.base import BaseModel

if TYPE_CHECKING:
    from crm.models.user import User
    from crm.models.client import Client
    from crm.models.communication import Communication
    from crm.models.milestone import Milestone
    from crm.models.task import Task


class ProjectStatus(str, Enum):
    """Project status enumeration. No transition graph is enforced."""
    PROPOSAL = "PROPOSAL"
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class Project(BaseModel):
    """
    Project model.
    
    Attributes:
        user_id: Foreign key to the owning user
        client_id: Foreign key to the client the work is for
        name: Project name
        description: Scope description
        status: Current project status
        start_date: Planned or actual start
        end_date: Planned or actual end (never before start_date)
    """
    
    __tablename__ = "projects"
    
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[str] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    status: Mapped[ProjectStatus] = mapped_column(
        SQLEnum(ProjectStatus, name="project_status"),
        default=ProjectStatus.PROPOSAL,
        nullable=False,
    )
    start_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
    )
    end_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
    )
    
    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="projects",
    )
    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="projects",
    )
    communications: Mapped[List["Communication"]] = relationship(
        "Communication",
        back_populates="project",
        cascade="all, delete",
    )
    milestones: Mapped[List["Milestone"]] = relationship(
        "Milestone",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Milestone.position",
    )
    tasks: Mapped[List["Task"]] = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
    )
    
    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name='{self.name}', status={self.status})>"
