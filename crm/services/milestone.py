"""
Milestone service.
Ordered checkpoints of a project; approving them drives the project's progress.
"""

import logging
from sqlalchemy import select, func, update

from crm.core.exceptions import NotFoundError, ValidationError
from crm.models.base import utcnow
from crm.models.client import Client
from crm.models.communication import CommunicationType
from crm.models.milestone import Milestone, MilestoneStatus
from crm.models.project import Project
from crm.models.task import Task, TaskStatus
from crm.models.user import User
from crm.schemas.communication import CommunicationCreate
from crm.schemas.milestone import (
    MilestoneCompletion,
    MilestoneCreate,
    MilestoneResponse,
    MilestoneUpdate,
)
from crm.services.base import BaseService
from crm.services.client import ClientService
from crm.services.communication import CommunicationService
from crm.services.derived import milestone_view
from crm.services.project import ProjectService


logger = logging.getLogger(__name__)


def _task_stats():
    """Correlated subqueries for the total and completed task counts."""
    task_count = (
        select(func.count(Task.id))
        .where(Task.milestone_id == Milestone.id)
        .correlate(Milestone)
        .scalar_subquery()
    )
    completed_count = (
        select(func.count(Task.id))
        .where(
            Task.milestone_id == Milestone.id,
            Task.status == TaskStatus.COMPLETED,
        )
        .correlate(Milestone)
        .scalar_subquery()
    )
    return task_count, completed_count


def completion_email(milestone: Milestone, project: Project, client: Client) -> str:
    """Body of the message sent to the client when a milestone awaits approval."""
    lines = [
        f"Hi {client.name},",
        "",
        f'The milestone "{milestone.name}" of the {project.name} project has been completed.',
    ]
    if milestone.deliverables:
        lines += ["", "Deliverables completed:"]
        lines += [f"- {deliverable}" for deliverable in milestone.deliverables]
    lines += [
        "",
        "Please review the completed work and let me know if you have any questions "
        "or feedback. Your approval lets us move on to the next phase.",
    ]
    if milestone.payment_amount is not None:
        lines += ["", f"This milestone represents {milestone.payment_amount} of the project budget."]
    lines += ["", "Thank you for your continued collaboration."]
    return "\n".join(lines)


class MilestoneService(BaseService):
    """Service for milestone operations."""
    
    async def _owned_project(self, owner: User, project_id: str) -> Project:
        return await ProjectService(self.db).get_or_404(project_id, owner.id)
    
    async def _views(self, *criteria) -> list[MilestoneResponse]:
        query = (
            select(Milestone, *_task_stats())
            .where(*criteria)
            .order_by(Milestone.position, Milestone.created_at)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return [milestone_view(*row) for row in result.all()]
    
    async def get_or_404(self, project_id: str, milestone_id: str) -> Milestone:
        """
        Get a milestone of the given project or raise NotFoundError.
        The caller is responsible for checking the project's ownership first.
        """
        result = await self.db.execute(
            select(Milestone).where(
                Milestone.id == milestone_id,
                Milestone.project_id == project_id,
            )
        )
        milestone = result.scalar_one_or_none()
        if not milestone:
            raise NotFoundError("Milestone not found")
        return milestone
    
    async def _view(self, milestone_id: str) -> MilestoneResponse:
        return (await self._views(Milestone.id == milestone_id))[0]
    
    async def list_for_project(self, owner: User, project_id: str) -> list[MilestoneResponse]:
        """
        List a project's milestones in plan order.
        
        Raises:
            NotFoundError: If the project is absent or not owned
        """
        project = await self._owned_project(owner, project_id)
        return await self._views(Milestone.project_id == project.id)
    
    async def create(
        self,
        owner: User,
        project_id: str,
        data: MilestoneCreate,
    ) -> MilestoneResponse:
        """Append a milestone after the project's current last one."""
        project = await self._owned_project(owner, project_id)
        
        last_position = await self.db.scalar(
            select(func.max(Milestone.position)).where(Milestone.project_id == project.id)
        )
        milestone = Milestone(
            user_id=owner.id,
            project_id=project.id,
            name=data.name,
            description=data.description,
            due_date=data.due_date,
            payment_amount=data.payment_amount,
            client_approval_required=data.client_approval_required,
            deliverables=data.deliverables,
            position=(last_position or 0) + 1,
        )
        
        self.db.add(milestone)
        await self._flush("create milestone")
        
        logger.info(f"Milestone {milestone.id} added to project {project.id}")
        return await self._view(milestone.id)
    
    async def update(
        self,
        owner: User,
        project_id: str,
        milestone_id: str,
        data: MilestoneUpdate,
    ) -> MilestoneResponse:
        """
        Replace the mutable fields of a milestone.
        
        Reaching APPROVED stamps completed_at; REVIEW keeps the stamp left by
        complete(); any other status clears it.
        """
        project = await self._owned_project(owner, project_id)
        milestone = await self.get_or_404(project.id, milestone_id)
        
        milestone.name = data.name
        milestone.description = data.description
        milestone.due_date = data.due_date
        milestone.payment_amount = data.payment_amount
        milestone.client_approval_required = data.client_approval_required
        milestone.deliverables = data.deliverables
        if data.status is not None and data.status != milestone.status:
            logger.info(f"Milestone {milestone_id} moved to {data.status.value}")
            milestone.status = data.status
        
        if milestone.status is MilestoneStatus.APPROVED:
            milestone.completed_at = milestone.completed_at or utcnow()
        elif milestone.status is not MilestoneStatus.REVIEW:
            milestone.completed_at = None
        
        await self._flush("update milestone")
        return await self._view(milestone_id)
    
    async def complete(
        self,
        owner: User,
        project_id: str,
        milestone_id: str,
    ) -> MilestoneCompletion:
        """
        Mark the work of a milestone as delivered.
        
        Milestones that need client approval go to REVIEW and an email
        communication tagged with the project is logged for the client.
        Others are APPROVED straight away.
        """
        project = await self._owned_project(owner, project_id)
        milestone = await self.get_or_404(project.id, milestone_id)
        
        if milestone.client_approval_required:
            milestone.status = MilestoneStatus.REVIEW
        else:
            milestone.status = MilestoneStatus.APPROVED
        milestone.completed_at = utcnow()
        await self._flush("complete milestone")
        
        communication = None
        if milestone.client_approval_required:
            client = await ClientService(self.db).get_or_404(project.client_id, owner.id)
            communication = await CommunicationService(self.db).create(
                owner,
                client.id,
                CommunicationCreate(
                    type=CommunicationType.EMAIL,
                    subject=f"Milestone Completed: {milestone.name}",
                    content=completion_email(milestone, project, client),
                    project_id=project.id,
                ),
            )
        
        logger.info(f"Milestone {milestone_id} completed ({milestone.status.value})")
        return MilestoneCompletion(
            milestone=await self._view(milestone_id),
            communication=communication,
        )
    
    async def reorder(
        self,
        owner: User,
        project_id: str,
        milestone_ids: list[str],
    ) -> list[MilestoneResponse]:
        """
        Renumber a project's milestones in the given order.
        
        Raises:
            ValidationError: If the IDs are not exactly the project's milestones
        """
        project = await self._owned_project(owner, project_id)
        result = await self.db.execute(
            select(Milestone).where(Milestone.project_id == project.id)
        )
        milestones = {m.id: m for m in result.scalars().all()}
        
        if len(milestone_ids) != len(set(milestone_ids)) or set(milestone_ids) != set(milestones):
            raise ValidationError.for_field(
                "milestone_ids", "Must list every milestone of the project exactly once"
            )
        
        for position, milestone_id in enumerate(milestone_ids, start=1):
            milestones[milestone_id].position = position
        
        await self._flush("reorder milestones")
        return await self._views(Milestone.project_id == project.id)
    
    async def delete(self, owner: User, project_id: str, milestone_id: str) -> None:
        """Delete a milestone. Its tasks stay on the project without a milestone."""
        project = await self._owned_project(owner, project_id)
        milestone = await self.get_or_404(project.id, milestone_id)
        
        await self.db.execute(
            update(Task)
            .where(Task.milestone_id == milestone.id)
            .values(milestone_id=None)
        )
        await self.db.delete(milestone)
        await self._flush("delete milestone")
        
        logger.info(f"Milestone {milestone_id} deleted")
