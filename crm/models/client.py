"""
Client model.
Each client belongs to exactly one user and is either active or archived.
"""

from typing import Optional, List, TYPE_CHECKING
from enum import Enum
from sqlalchemy import JSON, String, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.models.base import BaseModel

if TYPE_CHECKING:
    from crm.models.user import User
    from crm.models.project import Project
    from crm.models.communication import Communication


class ClientStatus(str, Enum):
    """Client status enumeration."""
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class Client(BaseModel):
    """
    Client model representing a customer of the freelancer.
    
    Attributes:
        user_id: Foreign key to the owning user
        name: Client's full name
        email: Client's email address
        phone: Client's phone number
        company: Company the client works for
        notes: Free-form notes
        tags: Ordered list of labels
        status: ACTIVE or ARCHIVED
    """
    
    __tablename__ = "clients"
    
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    phone: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    company: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    tags: Mapped[List[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    status: Mapped[ClientStatus] = mapped_column(
        SQLEnum(ClientStatus, name="client_status"),
        default=ClientStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    
    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="clients",
    )
    projects: Mapped[List["Project"]] = relationship(
        "Project",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    communications: Mapped[List["Communication"]] = relationship(
        "Communication",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    
    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}', status={self.status})>"
