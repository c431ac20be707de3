"""
Database models module.
All SQLAlchemy models are exported from here for easy imports.
"""

from crm.models.user import User
from crm.models.client import Client, ClientStatus
from crm.models.project import Project, ProjectStatus
from crm.models.communication import Attachment, Communication, CommunicationType
from crm.models.milestone import Milestone, MilestoneStatus
from crm.models.task import Task, TaskPriority, TaskStatus


__all__ = [
    "User",
    "Client",
    "ClientStatus",
    "Project",
    "ProjectStatus",
    "Communication",
    "CommunicationType",
    "Attachment",
    "Milestone",
    "MilestoneStatus",
    "Task",
    "TaskStatus",
    "TaskPriority",
]
