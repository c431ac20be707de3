"""
Base model with common fields and utilities.
"""

from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from crm.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class TimestampMixin:
    """Mixin for adding created_at and updated_at timestamps."""
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class BaseModel(Base, TimestampMixin):
    """
    Abstract base model with an opaque string ID and timestamps.
    All models should inherit from this.
    """
    
    __abstract__ = True
    
    id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        default=new_id,
    )
