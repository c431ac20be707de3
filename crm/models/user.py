"""
User model.
Internal identity anchor for a principal of the external auth provider.
"""

from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.models.base import BaseModel

if TYPE_CHECKING:
    from crm.models.client import Client
    from crm.models.project import Project


class User(BaseModel):
    """
    User model representing a freelancer account.
    
    Attributes:
        external_id: Unique ID of the principal at the auth provider
        email: Primary email address
        name: Display name
        image_url: Avatar reference
    """
    
    __tablename__ = "users"
    
    external_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    image_url: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
    )
    
    # Relationships
    clients: Mapped[List["Client"]] = relationship(
        "Client",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    projects: Mapped[List["Project"]] = relationship(
        "Project",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, external_id='{self.external_id}')>"
