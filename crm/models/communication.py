"""
Communication and Attachment models.
Communications belong to a client and may be tagged to one of its projects.
"""

from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from enum import Enum
from sqlalchemy import String, Text, ForeignKey, Integer, DateTime, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.models.base import BaseModel, utcnow

if TYPE_CHECKING:
    from crm.models.client import Client
    from crm.models.project import Project


class CommunicationType(str, Enum):
    """Communication channel enumeration."""
    EMAIL = "EMAIL"
    CALL = "CALL"
    MEETING = "MEETING"
    NOTE = "NOTE"
    OTHER = "OTHER"


class Communication(BaseModel):
    """
    Communication model (email, call, meeting...).
    
    Attributes:
        client_id: Foreign key to the client
        project_id: Optional foreign key to a project of the same client
        type: Channel of the exchange
        subject: Short summary
        content: Full text
        sent_at: When the exchange happened
    """
    
    __tablename__ = "communications"
    
    client_id: Mapped[str] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    
    type: Mapped[CommunicationType] = mapped_column(
        SQLEnum(CommunicationType, name="communication_type"),
        nullable=False,
    )
    subject: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    
    # Relationships
    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="communications",
    )
    project: Mapped[Optional["Project"]] = relationship(
        "Project",
        back_populates="communications",
    )
    attachments: Mapped[List["Attachment"]] = relationship(
        "Attachment",
        back_populates="communication",
        cascade="all, delete-orphan",
        order_by="Attachment.created_at",
    )
    
    def __repr__(self) -> str:
        return f"<Communication(id={self.id}, type={self.type}, subject='{self.subject}')>"


class Attachment(BaseModel):
    """
    File attached to a communication.
    
    Attributes:
        communication_id: Foreign key to the communication
        name: Original file name
        url: Storage location
        size: Size in bytes
        mime_type: MIME type of the file
    """
    
    __tablename__ = "attachments"
    __table_args__ = (
        CheckConstraint("size >= 0", name="ck_attachments_size_positive"),
    )
    
    communication_id: Mapped[str] = mapped_column(
        ForeignKey("communications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
    )
    size: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    mime_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    
    communication: Mapped["Communication"] = relationship(
        "Communication",
        back_populates="attachments",
    )
    
    def __repr__(self) -> str:
        return f"<Attachment(id={self.id}, name='{self.name}', size={self.size})>"
