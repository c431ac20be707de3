"""
Milestone model.
Ordered delivery checkpoints of a project, optionally tied to a payment.
"""

from typing import Optional, TYPE_CHECKING
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import JSON, String, Text, ForeignKey, Integer, Boolean, Numeric, Date, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.models.base import BaseModel

if TYPE_CHECKING:
    from crm.models.project import Project


class MilestoneStatus(str, Enum):
    """Milestone status enumeration."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Milestone(BaseModel):
    """
    Milestone model.
    
    Attributes:
        user_id: Foreign key to the owning user
        project_id: Foreign key to the project
        name: Milestone name
        description: What the milestone covers
        due_date: Planned delivery date
        status: Current milestone status
        deliverables: Ordered list of deliverable labels
        payment_amount: Amount billed when the milestone is approved
        client_approval_required: Completion goes to REVIEW instead of APPROVED
        position: 1-based rank within the project
        completed_at: When the work was delivered
    """
    
    __tablename__ = "milestones"
    
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
    
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    due_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )
    status: Mapped[MilestoneStatus] = mapped_column(
        SQLEnum(MilestoneStatus, name="milestone_status"),
        default=MilestoneStatus.PENDING,
        nullable=False,
    )
    deliverables: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    payment_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=True,
    )
    client_approval_required: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    
    # Relationships
    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="milestones",
    )
    
    def __repr__(self) -> str:
        return f"<Milestone(id={self.id}, name='{self.name}', status={self.status})>"
