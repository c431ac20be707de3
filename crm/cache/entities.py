"""
Entity-level cache for clients, projects and communications.

Reads go through the query cache. Mutations call the domain actions first
and only touch cached state once they succeed: the returned record is
written into every entry that holds it, and caches that depend on a
structurally changed record are dropped so they are fetched again.
Single-record reads reuse a cached list only while that list is fresh.
"""

import logging
import time
from typing import Callable, Optional, Sequence, TypeVar

from crm.cache.fetcher import CRMFetcher
from crm.cache.query_cache import Listener, QueryCache, QueryKey, QueryObserver
from crm.core.config import settings
from crm.core.exceptions import NotFoundError
from crm.schemas.client import ClientCreate, ClientFilter, ClientResponse, ClientUpdate
from crm.schemas.communication import (
    CommunicationCreate,
    CommunicationResponse,
    CommunicationUpdate,
)
from crm.schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate


logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", ClientResponse, ProjectResponse, CommunicationResponse)

CLIENTS = "clients"
CLIENT = "client"
COMMUNICATIONS = "communications"
CLIENT_PROJECTS = "client-projects"
PROJECTS = "projects"
PROJECT = "project"


def clients_key(status: ClientFilter | str = ClientFilter.ACTIVE) -> QueryKey:
    return (CLIENTS, ClientFilter(status).value)


def client_key(client_id: str) -> QueryKey:
    return (CLIENT, client_id)


def communications_key(client_id: str) -> QueryKey:
    return (COMMUNICATIONS, client_id)


def client_projects_key(client_id: str) -> QueryKey:
    return (CLIENT_PROJECTS, client_id)


def projects_key() -> QueryKey:
    return (PROJECTS,)


def project_key(project_id: str) -> QueryKey:
    return (PROJECT, project_id)


def upsert(records: Optional[Sequence[RecordT]], record: RecordT) -> Optional[list[RecordT]]:
    """Replace the record with the same id in place, or put it first."""
    if records is None:
        return None
    if any(r.id == record.id for r in records):
        return [record if r.id == record.id else r for r in records]
    return [record, *records]


def insert_by_sent_at(
    records: Optional[Sequence[CommunicationResponse]],
    record: CommunicationResponse,
) -> Optional[list[CommunicationResponse]]:
    """Insert into a newest-first list ahead of every record not newer than it."""
    if records is None:
        return None
    index = next(
        (i for i, r in enumerate(records) if r.sent_at <= record.sent_at),
        len(records),
    )
    return [*records[:index], record, *records[index:]]


def without(records: Optional[Sequence[RecordT]], record_id: str) -> Optional[list[RecordT]]:
    if records is None:
        return None
    return [r for r in records if r.id != record_id]


class CRMCache:
    """
    Cache facade used by interactive views.
    
    Args:
        fetcher: Domain actions for the current principal
        cache: Shared query cache, a new one is created when omitted
        clock: Time source for a new query cache
    """
    
    def __init__(
        self,
        fetcher: CRMFetcher,
        cache: Optional[QueryCache] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.fetcher = fetcher
        self.cache = cache or QueryCache(
            clock=clock or time.monotonic,
            gc_time=settings.CACHE_GC_SECONDS,
        )
        self.clients_stale_time = settings.CLIENTS_STALE_SECONDS
        self.communications_stale_time = settings.COMMUNICATIONS_STALE_SECONDS
        self.projects_stale_time = settings.PROJECTS_STALE_SECONDS
    
    def _cached_list(self, key: QueryKey, stale_time: float, fresh: bool) -> Optional[list]:
        if fresh:
            return self.cache.get_fresh_query_data(key, stale_time)
        return self.cache.get_query_data(key)
    
    # Clients
    
    async def clients(self, status: ClientFilter | str = ClientFilter.ACTIVE) -> list[ClientResponse]:
        status = ClientFilter(status)
        return await self.cache.fetch_query(
            clients_key(status),
            lambda: self.fetcher.get_clients(status),
            self.clients_stale_time,
        )
    
    def observe_clients(
        self,
        status: ClientFilter | str = ClientFilter.ACTIVE,
        listener: Optional[Listener] = None,
    ) -> QueryObserver:
        status = ClientFilter(status)
        return self.cache.observe(
            clients_key(status),
            lambda: self.fetcher.get_clients(status),
            self.clients_stale_time,
            listener,
        )
    
    def cached_client(self, client_id: str, fresh: bool = False) -> Optional[ClientResponse]:
        """
        Look for a client in every cached list, whatever the filter.
        With ``fresh`` only lists that are neither stale nor invalidated count.
        """
        for status in ClientFilter:
            for client in self._cached_list(clients_key(status), self.clients_stale_time, fresh) or ():
                if client.id == client_id:
                    return client
        return None
    
    async def _load_client(self, client_id: str) -> ClientResponse:
        cached = self.cached_client(client_id, fresh=True)
        if cached is not None:
            logger.debug(f"Client {client_id} served from a cached list")
            return cached
        
        # Not loaded or out of date: fetch every client once and keep the list
        all_clients = await self.fetcher.get_clients(ClientFilter.ALL)
        self.cache.set_query_data(clients_key(ClientFilter.ALL), all_clients)
        for client in all_clients:
            if client.id == client_id:
                return client
        raise NotFoundError("Client not found")
    
    async def client(self, client_id: str) -> ClientResponse:
        """
        Single client, taken from any cached list before hitting the network.
        
        Raises:
            NotFoundError: If the principal has no such client
        """
        return await self.cache.fetch_query(
            client_key(client_id),
            lambda: self._load_client(client_id),
            self.clients_stale_time,
        )
    
    def observe_client(self, client_id: str, listener: Optional[Listener] = None) -> QueryObserver:
        return self.cache.observe(
            client_key(client_id),
            lambda: self._load_client(client_id),
            self.clients_stale_time,
            listener,
        )
    
    def _write_client(self, client: ClientResponse) -> None:
        """Put the client in every cached list it belongs to and out of the others."""
        for status in ClientFilter:
            belongs = status is ClientFilter.ALL or status.value == client.status.value
            if belongs:
                self.cache.set_query_data(clients_key(status), lambda old: upsert(old, client))
            else:
                self.cache.set_query_data(clients_key(status), lambda old: without(old, client.id))
        self.cache.set_query_data(client_key(client.id), client)
    
    def _drop_client_dependents(self, client_id: str) -> None:
        self.cache.remove_queries(communications_key(client_id))
        self.cache.remove_queries(client_projects_key(client_id))
    
    async def create_client(self, data: ClientCreate) -> ClientResponse:
        client = await self.fetcher.create_client(data)
        self._write_client(client)
        return client
    
    async def update_client(self, client_id: str, data: ClientUpdate) -> ClientResponse:
        client = await self.fetcher.update_client(client_id, data)
        self._write_client(client)
        return client
    
    async def archive_client(self, client_id: str) -> ClientResponse:
        client = await self.fetcher.archive_client(client_id)
        self._write_client(client)
        self._drop_client_dependents(client_id)
        return client
    
    async def unarchive_client(self, client_id: str) -> ClientResponse:
        client = await self.fetcher.unarchive_client(client_id)
        self._write_client(client)
        self._drop_client_dependents(client_id)
        return client
    
    def invalidate_clients(self) -> None:
        self.cache.invalidate_queries((CLIENTS,))
        self.cache.invalidate_queries((CLIENT,))
    
    # Projects
    
    async def projects(self) -> list[ProjectResponse]:
        return await self.cache.fetch_query(
            projects_key(),
            self.fetcher.get_projects,
            self.projects_stale_time,
        )
    
    async def client_projects(self, client_id: str) -> list[ProjectResponse]:
        return await self.cache.fetch_query(
            client_projects_key(client_id),
            lambda: self.fetcher.get_client_projects(client_id),
            self.projects_stale_time,
        )
    
    def observe_client_projects(
        self,
        client_id: str,
        listener: Optional[Listener] = None,
    ) -> QueryObserver:
        return self.cache.observe(
            client_projects_key(client_id),
            lambda: self.fetcher.get_client_projects(client_id),
            self.projects_stale_time,
            listener,
        )
    
    def cached_project(self, project_id: str, fresh: bool = False) -> Optional[ProjectResponse]:
        """Look for a project in the project list and every client's list."""
        keys = [projects_key()] + [entry.key for entry in self.cache.find_entries((CLIENT_PROJECTS,))]
        for key in keys:
            for project in self._cached_list(key, self.projects_stale_time, fresh) or ():
                if project.id == project_id:
                    return project
        return None
    
    async def _load_project(self, project_id: str) -> ProjectResponse:
        cached = self.cached_project(project_id, fresh=True)
        if cached is not None:
            return cached
        return await self.fetcher.get_project(project_id)
    
    async def project(self, project_id: str) -> ProjectResponse:
        return await self.cache.fetch_query(
            project_key(project_id),
            lambda: self._load_project(project_id),
            self.projects_stale_time,
        )
    
    def _write_project(self, project: ProjectResponse) -> None:
        self.cache.set_query_data(projects_key(), lambda old: upsert(old, project))
        self.cache.set_query_data(
            client_projects_key(project.client_id),
            lambda old: upsert(old, project),
        )
        self.cache.set_query_data(project_key(project.id), project)
    
    async def create_project(self, data: ProjectCreate) -> ProjectResponse:
        project = await self.fetcher.create_project(data)
        self.cache.set_query_data(projects_key(), lambda old: upsert(old, project))
        self.cache.set_query_data(project_key(project.id), project)
        self.cache.remove_queries(client_projects_key(project.client_id))
        # project_count on the client changed
        self.invalidate_clients()
        return project
    
    async def update_project(self, project_id: str, data: ProjectUpdate) -> ProjectResponse:
        project = await self.fetcher.update_project(project_id, data)
        self._write_project(project)
        return project
    
    async def delete_project(self, project_id: str) -> ProjectResponse:
        project = await self.fetcher.delete_project(project_id)
        self.cache.set_query_data(projects_key(), lambda old: without(old, project_id))
        self.cache.remove_queries(project_key(project_id))
        # The project's communications went with it
        self._drop_client_dependents(project.client_id)
        self.invalidate_clients()
        return project
    
    # Communications
    
    async def client_communications(self, client_id: str) -> list[CommunicationResponse]:
        return await self.cache.fetch_query(
            communications_key(client_id),
            lambda: self.fetcher.get_client_communications(client_id),
            self.communications_stale_time,
        )
    
    def observe_client_communications(
        self,
        client_id: str,
        listener: Optional[Listener] = None,
    ) -> QueryObserver:
        return self.cache.observe(
            communications_key(client_id),
            lambda: self.fetcher.get_client_communications(client_id),
            self.communications_stale_time,
            listener,
        )
    
    def _cached_communication(
        self,
        client_id: str,
        communication_id: str,
    ) -> Optional[CommunicationResponse]:
        for communication in self.cache.get_query_data(communications_key(client_id)) or ():
            if communication.id == communication_id:
                return communication
        return None
    
    def _projects_touched(self, client_id: str, project_ids: set) -> None:
        """Drop project caches whose counts or last activity moved."""
        project_ids = {p for p in project_ids if p}
        if not project_ids:
            return
        self.cache.remove_queries(client_projects_key(client_id))
        self.cache.invalidate_queries(projects_key())
        for project_id in project_ids:
            self.cache.invalidate_queries(project_key(project_id))
    
    async def create_communication(
        self,
        client_id: str,
        data: CommunicationCreate,
    ) -> CommunicationResponse:
        communication = await self.fetcher.create_communication(client_id, data)
        self.cache.set_query_data(
            communications_key(client_id),
            lambda old: insert_by_sent_at(old, communication),
        )
        self._projects_touched(client_id, {communication.project_id})
        # lastContact moved
        self.invalidate_clients()
        return communication
    
    async def update_communication(
        self,
        client_id: str,
        communication_id: str,
        data: CommunicationUpdate,
    ) -> CommunicationResponse:
        previous = self._cached_communication(client_id, communication_id)
        communication = await self.fetcher.update_communication(client_id, communication_id, data)
        self.cache.set_query_data(
            communications_key(client_id),
            lambda old: upsert(old, communication),
        )
        if previous is None:
            # Previous tag unknown
            self.cache.remove_queries(client_projects_key(client_id))
            self.cache.invalidate_queries((PROJECT,))
            self.cache.invalidate_queries(projects_key())
        else:
            self._projects_touched(client_id, {previous.project_id, communication.project_id})
        return communication
    
    async def delete_communication(self, client_id: str, communication_id: str) -> None:
        previous = self._cached_communication(client_id, communication_id)
        await self.fetcher.delete_communication(client_id, communication_id)
        self.cache.set_query_data(
            communications_key(client_id),
            lambda old: without(old, communication_id),
        )
        if previous is None:
            self.cache.remove_queries(client_projects_key(client_id))
            self.cache.invalidate_queries((PROJECT,))
            self.cache.invalidate_queries(projects_key())
        else:
            self._projects_touched(client_id, {previous.project_id})
        self.invalidate_clients()
    
    def invalidate_communications(self, client_id: str) -> None:
        self.cache.invalidate_queries(communications_key(client_id))
