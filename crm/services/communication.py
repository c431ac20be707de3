"""
Communication service.
Logs exchanges with a client, optionally tagged to one of its projects.
"""

import logging
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from crm.core.exceptions import NotFoundError, ValidationError
from crm.models.base import utcnow
from crm.models.client import Client
from crm.models.communication import Attachment, Communication
from crm.models.project import Project
from crm.models.user import User
from crm.schemas.communication import (
    AttachmentCreate,
    CommunicationCreate,
    CommunicationResponse,
    CommunicationUpdate,
)
from crm.services.base import BaseService
from crm.services.client import ClientService
from crm.services.derived import communication_view


logger = logging.getLogger(__name__)


class CommunicationService(BaseService):
    """Service for communication operations."""
    
    async def _owned_client(self, owner: User, client_id: str) -> Client:
        return await ClientService(self.db).get_or_404(client_id, owner.id)
    
    def _with_relations(self):
        return (
            select(Communication)
            .options(
                selectinload(Communication.attachments),
                selectinload(Communication.project),
            )
            .execution_options(populate_existing=True)
        )
    
    async def get_or_404(self, client_id: str, communication_id: str) -> Communication:
        """
        Get a communication of the given client or raise NotFoundError.
        The caller is responsible for checking the client's ownership first.
        """
        result = await self.db.execute(
            self._with_relations().where(
                Communication.id == communication_id,
                Communication.client_id == client_id,
            )
        )
        communication = result.scalar_one_or_none()
        if not communication:
            raise NotFoundError("Communication not found")
        return communication
    
    async def list_for_client(
        self,
        owner: User,
        client_id: str,
    ) -> list[CommunicationResponse]:
        """
        List a client's communications, newest first.
        
        Raises:
            NotFoundError: If the client is absent or not owned
        """
        await self._owned_client(owner, client_id)
        
        result = await self.db.execute(
            self._with_relations()
            .where(Communication.client_id == client_id)
            .order_by(Communication.sent_at.desc(), Communication.id)
        )
        return [communication_view(c) for c in result.scalars().all()]
    
    async def _check_project(self, client_id: str, project_id: str | None) -> None:
        """A tagged project must belong to the communication's own client."""
        if project_id is None:
            return
        result = await self.db.execute(
            select(Project.id).where(
                Project.id == project_id,
                Project.client_id == client_id,
            )
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError.for_field(
                "project_id", "Project not found for this client"
            )
    
    @staticmethod
    def _build_attachment(data: AttachmentCreate) -> Attachment:
        return Attachment(
            name=data.name,
            url=data.url,
            size=data.size,
            mime_type=data.mime_type,
        )
    
    async def create(
        self,
        owner: User,
        client_id: str,
        data: CommunicationCreate,
    ) -> CommunicationResponse:
        """
        Log a communication together with its attachments.
        
        The communication and every attachment are written in a single
        flush; if any row fails the session is rolled back and nothing
        is persisted.
        
        Raises:
            NotFoundError: If the client is absent or not owned
            ValidationError: If the project is not one of the client's
            UnknownError: If the storage write fails
        """
        client = await self._owned_client(owner, client_id)
        await self._check_project(client.id, data.project_id)
        
        communication = Communication(
            client_id=client.id,
            project_id=data.project_id,
            type=data.type,
            subject=data.subject,
            content=data.content,
            sent_at=data.sent_at or utcnow(),
            attachments=[self._build_attachment(a) for a in data.attachments],
        )
        
        self.db.add(communication)
        await self._flush("create communication")
        
        logger.info(
            f"Communication {communication.id} logged for client {client_id} "
            f"with {len(data.attachments)} attachment(s)"
        )
        return communication_view(await self.get_or_404(client_id, communication.id))
    
    async def update(
        self,
        owner: User,
        client_id: str,
        communication_id: str,
        data: CommunicationUpdate,
    ) -> CommunicationResponse:
        """
        Replace type, subject, content and project tag of a communication.
        
        Raises:
            NotFoundError: If the client or communication is not addressable
            ValidationError: If the project is not one of the client's
        """
        await self._owned_client(owner, client_id)
        communication = await self.get_or_404(client_id, communication_id)
        await self._check_project(client_id, data.project_id)
        
        communication.type = data.type
        communication.subject = data.subject
        communication.content = data.content
        communication.project_id = data.project_id
        
        await self._flush("update communication")
        return communication_view(await self.get_or_404(client_id, communication_id))
    
    async def delete(
        self,
        owner: User,
        client_id: str,
        communication_id: str,
    ) -> None:
        """Delete a communication and its attachments."""
        await self._owned_client(owner, client_id)
        communication = await self.get_or_404(client_id, communication_id)
        
        await self.db.delete(communication)
        await self._flush("delete communication")
        
        logger.info(f"Communication {communication_id} deleted")
