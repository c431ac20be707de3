"""
Bridge from the query cache to the domain actions.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Protocol
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.core.database import AsyncSessionLocal
from crm.core.exceptions import UnknownError
from crm.core.security import Principal
from crm.models.user import User
from crm.schemas.client import ClientCreate, ClientFilter, ClientResponse, ClientUpdate
from crm.schemas.communication import (
    CommunicationCreate,
    CommunicationResponse,
    CommunicationUpdate,
)
from crm.schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate
from crm.services.client import ClientService
from crm.services.communication import CommunicationService
from crm.services.identity import IdentityService
from crm.services.project import ProjectService


class CRMFetcher(Protocol):
    """Operations the cache needs from the domain layer."""
    
    async def get_clients(self, status: ClientFilter) -> list[ClientResponse]: ...
    
    async def create_client(self, data: ClientCreate) -> ClientResponse: ...
    
    async def update_client(self, client_id: str, data: ClientUpdate) -> ClientResponse: ...
    
    async def archive_client(self, client_id: str) -> ClientResponse: ...
    
    async def unarchive_client(self, client_id: str) -> ClientResponse: ...
    
    async def get_projects(self) -> list[ProjectResponse]: ...
    
    async def get_project(self, project_id: str) -> ProjectResponse: ...
    
    async def get_client_projects(self, client_id: str) -> list[ProjectResponse]: ...
    
    async def create_project(self, data: ProjectCreate) -> ProjectResponse: ...
    
    async def update_project(self, project_id: str, data: ProjectUpdate) -> ProjectResponse: ...
    
    async def delete_project(self, project_id: str) -> ProjectResponse: ...
    
    async def get_client_communications(self, client_id: str) -> list[CommunicationResponse]: ...
    
    async def create_communication(
        self, client_id: str, data: CommunicationCreate,
    ) -> CommunicationResponse: ...
    
    async def update_communication(
        self, client_id: str, communication_id: str, data: CommunicationUpdate,
    ) -> CommunicationResponse: ...
    
    async def delete_communication(self, client_id: str, communication_id: str) -> None: ...


class ServiceFetcher:
    """
    Runs domain actions on behalf of one principal.
    
    Each call gets its own session: identity is resolved, the action runs,
    and the session is committed, or rolled back if anything raised.
    """
    
    def __init__(
        self,
        principal: Principal | None,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    ):
        self.principal = principal
        self.session_factory = session_factory
    
    @asynccontextmanager
    async def _session(self) -> AsyncIterator[tuple[AsyncSession, User]]:
        async with self.session_factory() as db:
            try:
                user = await IdentityService(db).resolve(self.principal)
                yield db, user
                await db.commit()
            except SQLAlchemyError as exc:
                await db.rollback()
                raise UnknownError("Database unavailable") from exc
            except Exception:
                await db.rollback()
                raise
    
    # Clients
    
    async def get_clients(self, status: ClientFilter) -> list[ClientResponse]:
        async with self._session() as (db, user):
            return await ClientService(db).list(user, status)
    
    async def create_client(self, data: ClientCreate) -> ClientResponse:
        async with self._session() as (db, user):
            return await ClientService(db).create(user, data)
    
    async def update_client(self, client_id: str, data: ClientUpdate) -> ClientResponse:
        async with self._session() as (db, user):
            return await ClientService(db).update(user, client_id, data)
    
    async def archive_client(self, client_id: str) -> ClientResponse:
        async with self._session() as (db, user):
            return await ClientService(db).archive(user, client_id)
    
    async def unarchive_client(self, client_id: str) -> ClientResponse:
        async with self._session() as (db, user):
            return await ClientService(db).unarchive(user, client_id)
    
    # Projects
    
    async def get_projects(self) -> list[ProjectResponse]:
        async with self._session() as (db, user):
            return await ProjectService(db).list(user)
    
    async def get_project(self, project_id: str) -> ProjectResponse:
        async with self._session() as (db, user):
            return await ProjectService(db).get(user, project_id)
    
    async def get_client_projects(self, client_id: str) -> list[ProjectResponse]:
        async with self._session() as (db, user):
            return await ProjectService(db).list_for_client(user, client_id)
    
    async def create_project(self, data: ProjectCreate) -> ProjectResponse:
        async with self._session() as (db, user):
            return await ProjectService(db).create(user, data)
    
    async def update_project(self, project_id: str, data: ProjectUpdate) -> ProjectResponse:
        async with self._session() as (db, user):
            return await ProjectService(db).update(user, project_id, data)
    
    async def delete_project(self, project_id: str) -> ProjectResponse:
        async with self._session() as (db, user):
            return await ProjectService(db).delete(user, project_id)
    
    # Communications
    
    async def get_client_communications(self, client_id: str) -> list[CommunicationResponse]:
        async with self._session() as (db, user):
            return await CommunicationService(db).list_for_client(user, client_id)
    
    async def create_communication(
        self,
        client_id: str,
        data: CommunicationCreate,
    ) -> CommunicationResponse:
        async with self._session() as (db, user):
            return await CommunicationService(db).create(user, client_id, data)
    
    async def update_communication(
        self,
        client_id: str,
        communication_id: str,
        data: CommunicationUpdate,
    ) -> CommunicationResponse:
        async with self._session() as (db, user):
            return await CommunicationService(db).update(
                user, client_id, communication_id, data,
            )
    
    async def delete_communication(self, client_id: str, communication_id: str) -> None:
        async with self._session() as (db, user):
            await CommunicationService(db).delete(user, client_id, communication_id)
