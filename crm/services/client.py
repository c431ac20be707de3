"""
Client service.
Handles client reads, writes and the ACTIVE/ARCHIVED transitions.
"""

import logging
from sqlalchemy import select, func

from crm.core.exceptions import NotFoundError
from crm.models.client import Client, ClientStatus
from crm.models.communication import Communication
from crm.models.project import Project
from crm.models.user import User
from crm.schemas.client import ClientCreate, ClientFilter, ClientResponse, ClientUpdate
from crm.services.base import BaseService
from crm.services.derived import client_view


logger = logging.getLogger(__name__)


def _client_stats():
    """Correlated subqueries for lastContact and the project count."""
    last_contact = (
        select(func.max(Communication.sent_at))
        .where(Communication.client_id == Client.id)
        .correlate(Client)
        .scalar_subquery()
    )
    project_count = (
        select(func.count(Project.id))
        .where(Project.client_id == Client.id)
        .correlate(Client)
        .scalar_subquery()
    )
    return last_contact, project_count


class ClientService(BaseService):
    """Service for client operations."""
    
    async def get_by_id(
        self,
        client_id: str,
        owner_id: str,
        status: ClientStatus | None = None,
    ) -> Client | None:
        """
        Get client by ID, ensuring owner access.
        
        Args:
            client_id: Client ID
            owner_id: Owner's user ID
            status: Only match a client currently in this status
            
        Returns:
            Client if found, owned by user and in the requested status
        """
        query = select(Client).where(
            Client.id == client_id,
            Client.user_id == owner_id,
        )
        if status is not None:
            query = query.where(Client.status == status)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    async def get_or_404(
        self,
        client_id: str,
        owner_id: str,
        status: ClientStatus | None = None,
    ) -> Client:
        """
        Get client by ID or raise NotFoundError.
        Absent, foreign and wrong-status clients fail the same way.
        """
        client = await self.get_by_id(client_id, owner_id, status)
        if not client:
            raise NotFoundError("Client not found")
        return client
    
    async def _views(self, owner_id: str, *criteria) -> list[ClientResponse]:
        last_contact, project_count = _client_stats()
        query = (
            select(Client, last_contact, project_count)
            .where(Client.user_id == owner_id, *criteria)
            .order_by(Client.updated_at.desc(), Client.id)
        )
        result = await self.db.execute(query)
        return [
            client_view(client, last, count)
            for client, last, count in result.all()
        ]
    
    async def get(self, owner: User, client_id: str) -> ClientResponse:
        """Get one owned client, whatever its status."""
        views = await self._views(owner.id, Client.id == client_id)
        if not views:
            raise NotFoundError("Client not found")
        return views[0]
    
    async def list(
        self,
        owner: User,
        status_filter: ClientFilter = ClientFilter.ACTIVE,
    ) -> list[ClientResponse]:
        """
        List the owner's clients, most recently updated first.
        
        Args:
            owner: Authenticated user
            status_filter: ACTIVE, ARCHIVED or ALL
            
        Returns:
            Client views with lastContact populated
        """
        status_filter = ClientFilter(status_filter)
        if status_filter is ClientFilter.ALL:
            return await self._views(owner.id)
        return await self._views(
            owner.id,
            Client.status == ClientStatus(status_filter.value),
        )
    
    async def create(self, owner: User, data: ClientCreate) -> ClientResponse:
        """
        Create a new client, ACTIVE by default.
        
        Args:
            owner: Authenticated user
            data: Validated client fields
            
        Returns:
            Created client
        """
        client = Client(
            user_id=owner.id,
            status=ClientStatus.ACTIVE,
            **data.model_dump(),
        )
        
        self.db.add(client)
        await self._flush("create client")
        await self.db.refresh(client)
        
        logger.info(f"Client {client.id} created for user {owner.id}")
        return client_view(client)
    
    async def update(
        self,
        owner: User,
        client_id: str,
        data: ClientUpdate,
    ) -> ClientResponse:
        """
        Replace the editable fields of a client.
        
        Raises:
            NotFoundError: If the client is absent or not owned
        """
        client = await self.get_or_404(client_id, owner.id)
        
        for field, value in data.model_dump().items():
            setattr(client, field, value)
        
        await self._flush("update client")
        return await self.get(owner, client_id)
    
    async def _transition(
        self,
        owner: User,
        client_id: str,
        current: ClientStatus,
        target: ClientStatus,
    ) -> ClientResponse:
        # A client not in `current` is not addressable for this transition
        client = await self.get_or_404(client_id, owner.id, status=current)
        client.status = target
        
        await self._flush(f"set client status to {target.value}")
        logger.info(f"Client {client_id} moved from {current.value} to {target.value}")
        return await self.get(owner, client_id)
    
    async def archive(self, owner: User, client_id: str) -> ClientResponse:
        """Archive an ACTIVE client."""
        return await self._transition(
            owner, client_id, ClientStatus.ACTIVE, ClientStatus.ARCHIVED,
        )
    
    async def unarchive(self, owner: User, client_id: str) -> ClientResponse:
        """Restore an ARCHIVED client."""
        return await self._transition(
            owner, client_id, ClientStatus.ARCHIVED, ClientStatus.ACTIVE,
        )
