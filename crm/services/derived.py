"""
Display fields derived from stored records.

Each entity has exactly one function building its view so list and detail
responses can never disagree on last_contact, last_activity, progress or counts.
"""

from datetime import datetime
from typing import Mapping

from crm.models.client import Client
from crm.models.communication import Communication
from crm.models.milestone import Milestone
from crm.models.project import Project
from crm.models.task import Task, TaskStatus
from crm.schemas.client import ClientResponse
from crm.schemas.communication import AttachmentResponse, CommunicationResponse
from crm.schemas.milestone import MilestoneResponse
from crm.schemas.project import ProjectResponse
from crm.schemas.task import TaskResponse


def client_view(
    client: Client,
    last_communication_at: datetime | None = None,
    project_count: int = 0,
) -> ClientResponse:
    """lastContact is the latest communication, else the client's own update time."""
    return ClientResponse(
        id=client.id,
        user_id=client.user_id,
        name=client.name,
        email=client.email,
        phone=client.phone,
        company=client.company,
        notes=client.notes,
        tags=list(client.tags or []),
        status=client.status,
        last_contact=last_communication_at or client.updated_at,
        project_count=project_count or 0,
        created_at=client.created_at,
        updated_at=client.updated_at,
    )


def progress_percent(done: int, total: int) -> int:
    """Share of done items as a whole percentage, halves rounded up."""
    if not total:
        return 0
    return (done * 200 + total) // (total * 2)


def project_view(
    project: Project,
    last_communication_at: datetime | None = None,
    communication_count: int = 0,
    milestone_count: int = 0,
    approved_milestone_count: int = 0,
) -> ProjectResponse:
    """
    Requires project.client to be loaded.
    Progress is the share of the project's milestones that are APPROVED.
    """
    return ProjectResponse(
        id=project.id,
        user_id=project.user_id,
        client_id=project.client_id,
        name=project.name,
        description=project.description,
        status=project.status,
        start_date=project.start_date,
        end_date=project.end_date,
        client_name=project.client.name,
        client_company=project.client.company,
        last_activity=last_communication_at or project.updated_at,
        communication_count=communication_count or 0,
        milestone_count=milestone_count or 0,
        progress=progress_percent(approved_milestone_count or 0, milestone_count or 0),
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def communication_view(communication: Communication) -> CommunicationResponse:
    """Requires communication.project and communication.attachments to be loaded."""
    return CommunicationResponse(
        id=communication.id,
        client_id=communication.client_id,
        project_id=communication.project_id,
        project_tag=communication.project.name if communication.project else None,
        type=communication.type,
        subject=communication.subject,
        content=communication.content,
        sent_at=communication.sent_at,
        attachments=[
            AttachmentResponse.model_validate(attachment)
            for attachment in communication.attachments
        ],
        created_at=communication.created_at,
        updated_at=communication.updated_at,
    )


def milestone_view(
    milestone: Milestone,
    task_count: int = 0,
    completed_task_count: int = 0,
) -> MilestoneResponse:
    return MilestoneResponse(
        id=milestone.id,
        user_id=milestone.user_id,
        project_id=milestone.project_id,
        name=milestone.name,
        description=milestone.description,
        due_date=milestone.due_date,
        status=milestone.status,
        deliverables=list(milestone.deliverables or []),
        payment_amount=milestone.payment_amount,
        client_approval_required=milestone.client_approval_required,
        position=milestone.position,
        completed_at=milestone.completed_at,
        task_count=task_count or 0,
        completed_task_count=completed_task_count or 0,
        created_at=milestone.created_at,
        updated_at=milestone.updated_at,
    )


def task_view(task: Task, statuses: Mapping[str, TaskStatus]) -> TaskResponse:
    """
    ``statuses`` maps the IDs of the project's tasks to their status. A task
    is blocked while any dependency it still has is not COMPLETED.
    """
    dependencies = list(task.dependencies or [])
    return TaskResponse(
        id=task.id,
        user_id=task.user_id,
        project_id=task.project_id,
        milestone_id=task.milestone_id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        estimated_hours=task.estimated_hours,
        due_date=task.due_date,
        dependencies=dependencies,
        blocked=any(
            statuses.get(dependency) not in (None, TaskStatus.COMPLETED)
            for dependency in dependencies
        ),
        completed_at=task.completed_at,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )
