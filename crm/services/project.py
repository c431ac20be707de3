"""
Project service.
Handles project CRUD; every project hangs off one of the owner's clients.
"""

import logging
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload

from crm.core.exceptions import NotFoundError
from crm.models.communication import Communication
from crm.models.milestone import Milestone, MilestoneStatus
from crm.models.project import Project
from crm.models.user import User
from crm.schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate
from crm.services.base import BaseService
from crm.services.client import ClientService
from crm.services.derived import project_view


logger = logging.getLogger(__name__)


def _project_stats():
    """Correlated subqueries for lastActivity, the communication count and milestone progress."""
    last_activity = (
        select(func.max(Communication.sent_at))
        .where(Communication.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )
    communication_count = (
        select(func.count(Communication.id))
        .where(Communication.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )
    milestone_count = (
        select(func.count(Milestone.id))
        .where(Milestone.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )
    approved_count = (
        select(func.count(Milestone.id))
        .where(
            Milestone.project_id == Project.id,
            Milestone.status == MilestoneStatus.APPROVED,
        )
        .correlate(Project)
        .scalar_subquery()
    )
    return last_activity, communication_count, milestone_count, approved_count


class ProjectService(BaseService):
    """Service for project operations."""
    
    async def _views(self, owner_id: str, *criteria) -> list[ProjectResponse]:
        query = (
            select(Project, *_project_stats())
            .options(selectinload(Project.client))
            .where(Project.user_id == owner_id, *criteria)
            .order_by(Project.updated_at.desc(), Project.id)
        )
        result = await self.db.execute(query)
        return [project_view(*row) for row in result.all()]
    
    async def list_for_client(self, owner: User, client_id: str) -> list[ProjectResponse]:
        """
        List the projects of one owned client.
        
        Raises:
            NotFoundError: If the client is absent or not owned
        """
        await ClientService(self.db).get_or_404(client_id, owner.id)
        return await self._views(owner.id, Project.client_id == client_id)
    
    async def list(self, owner: User) -> list[ProjectResponse]:
        """List every project of the owner, most recently updated first."""
        return await self._views(owner.id)
    
    async def get_by_id(self, project_id: str, owner_id: str) -> Project | None:
        """Get project by ID, ensuring owner access."""
        result = await self.db.execute(
            select(Project).where(
                Project.id == project_id,
                Project.user_id == owner_id,
            )
        )
        return result.scalar_one_or_none()
    
    async def get_or_404(self, project_id: str, owner_id: str) -> Project:
        """Get project by ID or raise NotFoundError."""
        project = await self.get_by_id(project_id, owner_id)
        if not project:
            raise NotFoundError("Project not found")
        return project
    
    async def get(self, owner: User, project_id: str) -> ProjectResponse:
        """Get one owned project with its display fields."""
        views = await self._views(owner.id, Project.id == project_id)
        if not views:
            raise NotFoundError("Project not found")
        return views[0]
    
    async def create(self, owner: User, data: ProjectCreate) -> ProjectResponse:
        """
        Create a project for one of the owner's clients.
        
        Raises:
            NotFoundError: If the referenced client is absent or not owned
        """
        client = await ClientService(self.db).get_or_404(data.client_id, owner.id)
        
        project = Project(
            user_id=owner.id,
            client_id=client.id,
            name=data.name,
            description=data.description,
            status=data.status,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        
        self.db.add(project)
        await self._flush("create project")
        
        logger.info(f"Project {project.id} created for client {client.id}")
        return await self.get(owner, project.id)
    
    async def update(
        self,
        owner: User,
        project_id: str,
        data: ProjectUpdate,
    ) -> ProjectResponse:
        """
        Replace the mutable fields of a project.
        Any status value is accepted, a missing one keeps the current status.
        """
        project = await self.get_or_404(project_id, owner.id)
        
        project.name = data.name
        project.description = data.description
        project.start_date = data.start_date
        project.end_date = data.end_date
        if data.status is not None:
            project.status = data.status
        
        await self._flush("update project")
        return await self.get(owner, project_id)
    
    async def delete(self, owner: User, project_id: str) -> ProjectResponse:
        """
        Delete a project with its communications, milestones and tasks.
        
        Returns:
            The project as it was before deletion
        """
        snapshot = await self.get(owner, project_id)
        project = await self.get_or_404(project_id, owner.id)
        
        await self.db.delete(project)
        await self._flush("delete project")
        
        logger.info(f"Project {project_id} deleted")
        return snapshot
