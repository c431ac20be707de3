"""
Pydantic schemas for request/response validation.
"""

from crm.schemas.base import (
    ApiResponse,
    FieldError,
)
from crm.schemas.user import UserResponse
from crm.schemas.client import (
    ClientFilter,
    ClientCreate,
    ClientUpdate,
    ClientResponse,
)
from crm.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
)
from crm.schemas.communication import (
    AttachmentCreate,
    AttachmentResponse,
    CommunicationCreate,
    CommunicationUpdate,
    CommunicationResponse,
)
from crm.schemas.milestone import (
    MilestoneCreate,
    MilestoneUpdate,
    MilestoneReorder,
    MilestoneResponse,
    MilestoneCompletion,
)
from crm.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskStatusUpdate,
    TaskResponse,
    TaskCompletion,
)
from crm.schemas.webhook import (
    WebhookEvent,
    WebhookUserData,
    WebhookResult,
)

__all__ = [
    # Common
    "ApiResponse",
    "FieldError",
    # User
    "UserResponse",
    # Client
    "ClientFilter",
    "ClientCreate",
    "ClientUpdate",
    "ClientResponse",
    # Project
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectResponse",
    # Communication
    "AttachmentCreate",
    "AttachmentResponse",
    "CommunicationCreate",
    "CommunicationUpdate",
    "CommunicationResponse",
    # Milestone
    "MilestoneCreate",
    "MilestoneUpdate",
    "MilestoneReorder",
    "MilestoneResponse",
    "MilestoneCompletion",
    # Task
    "TaskCreate",
    "TaskUpdate",
    "TaskStatusUpdate",
    "TaskResponse",
    "TaskCompletion",
    # Webhooks
    "WebhookEvent",
    "WebhookUserData",
    "WebhookResult",
]
