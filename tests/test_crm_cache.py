"""
Entity cache tests.
"""

from collections import Counter
from datetime import datetime, timezone

import pytest

from crm.cache import CRMCache, ServiceFetcher
from crm.cache.entities import (
    client_key,
    client_projects_key,
    clients_key,
    communications_key,
    project_key,
    projects_key,
)
from crm.core.exceptions import NotFoundError, UnauthorizedError
from crm.models.client import ClientStatus
from crm.models.communication import CommunicationType
from crm.models.project import ProjectStatus
from crm.schemas.client import ClientCreate, ClientFilter, ClientResponse, ClientUpdate
from crm.schemas.communication import CommunicationCreate, CommunicationResponse
from crm.schemas.project import ProjectCreate, ProjectResponse


NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_client(client_id: str, name: str, status: ClientStatus = ClientStatus.ACTIVE) -> ClientResponse:
    return ClientResponse(
        id=client_id,
        user_id="u1",
        name=name,
        status=status,
        last_contact=NOW,
        created_at=NOW,
        updated_at=NOW,
    )


def make_project(project_id: str, client_id: str, name: str = "Project") -> ProjectResponse:
    return ProjectResponse(
        id=project_id,
        user_id="u1",
        client_id=client_id,
        name=name,
        status=ProjectStatus.ACTIVE,
        client_name="Client",
        last_activity=NOW,
        created_at=NOW,
        updated_at=NOW,
    )


def make_communication(
    communication_id: str,
    client_id: str,
    project_id: str | None = None,
    sent_at: datetime = NOW,
) -> CommunicationResponse:
    return CommunicationResponse(
        id=communication_id,
        client_id=client_id,
        project_id=project_id,
        type=CommunicationType.NOTE,
        subject="Note",
        content="Content",
        sent_at=sent_at,
        created_at=NOW,
        updated_at=NOW,
    )


class FakeFetcher:
    """In-memory stand-in for the domain actions, counting every call."""
    
    def __init__(self):
        self.calls = Counter()
        self.clients = {
            "c1": make_client("c1", "Acme"),
            "c2": make_client("c2", "Globex"),
            "c3": make_client("c3", "Initech", ClientStatus.ARCHIVED),
        }
        self.projects = {
            "p1": make_project("p1", "c1"),
            "p2": make_project("p2", "c2"),
        }
        self.communications = {"c1": [make_communication("m1", "c1", "p1")]}
        self.fail_with: Exception | None = None
    
    def _call(self, name: str) -> None:
        self.calls[name] += 1
        if self.fail_with is not None:
            raise self.fail_with
    
    def _client(self, client_id: str) -> ClientResponse:
        if client_id not in self.clients:
            raise NotFoundError("Client not found")
        return self.clients[client_id]
    
    async def get_clients(self, status):
        self._call("get_clients")
        return [
            c for c in self.clients.values()
            if status is ClientFilter.ALL or c.status.value == status.value
        ]
    
    async def create_client(self, data):
        self._call("create_client")
        client = make_client(f"c{len(self.clients) + 1}", data.name)
        self.clients[client.id] = client
        return client
    
    async def update_client(self, client_id, data):
        self._call("update_client")
        client = self._client(client_id).model_copy(update={"name": data.name})
        self.clients[client_id] = client
        return client
    
    async def _set_status(self, client_id, status):
        client = self._client(client_id).model_copy(update={"status": status})
        self.clients[client_id] = client
        return client
    
    async def archive_client(self, client_id):
        self._call("archive_client")
        return await self._set_status(client_id, ClientStatus.ARCHIVED)
    
    async def unarchive_client(self, client_id):
        self._call("unarchive_client")
        return await self._set_status(client_id, ClientStatus.ACTIVE)
    
    async def get_projects(self):
        self._call("get_projects")
        return list(self.projects.values())
    
    async def get_project(self, project_id):
        self._call("get_project")
        if project_id not in self.projects:
            raise NotFoundError("Project not found")
        return self.projects[project_id]
    
    async def get_client_projects(self, client_id):
        self._call("get_client_projects")
        return [p for p in self.projects.values() if p.client_id == client_id]
    
    async def create_project(self, data):
        self._call("create_project")
        project = make_project(f"p{len(self.projects) + 1}", data.client_id, data.name)
        self.projects[project.id] = project
        return project
    
    async def update_project(self, project_id, data):
        self._call("update_project")
        project = self.projects[project_id].model_copy(update={"name": data.name})
        self.projects[project_id] = project
        return project
    
    async def delete_project(self, project_id):
        self._call("delete_project")
        return self.projects.pop(project_id)
    
    async def get_client_communications(self, client_id):
        self._call("get_client_communications")
        return list(self.communications.get(client_id, []))
    
    async def create_communication(self, client_id, data):
        self._call("create_communication")
        communication = make_communication(
            f"m{sum(map(len, self.communications.values())) + 1}",
            client_id,
            data.project_id,
            data.sent_at or NOW,
        )
        self.communications.setdefault(client_id, []).insert(0, communication)
        return communication
    
    async def update_communication(self, client_id, communication_id, data):
        self._call("update_communication")
        updated = None
        for i, c in enumerate(self.communications[client_id]):
            if c.id == communication_id:
                updated = c.model_copy(update={"subject": data.subject, "project_id": data.project_id})
                self.communications[client_id][i] = updated
        return updated
    
    async def delete_communication(self, client_id, communication_id):
        self._call("delete_communication")
        self.communications[client_id] = [
            c for c in self.communications[client_id] if c.id != communication_id
        ]


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def crm_cache(fetcher: FakeFetcher, clock) -> CRMCache:
    return CRMCache(fetcher, clock=clock)


@pytest.mark.asyncio
async def test_single_client_is_found_in_cached_list(crm_cache: CRMCache, fetcher: FakeFetcher):
    clients = await crm_cache.clients(ClientFilter.ACTIVE)
    assert {c.id for c in clients} == {"c1", "c2"}
    
    client = await crm_cache.client("c1")
    
    assert client.name == "Acme"
    assert fetcher.calls["get_clients"] == 1


@pytest.mark.asyncio
async def test_single_client_miss_fetches_all_once(crm_cache: CRMCache, fetcher: FakeFetcher):
    archived = await crm_cache.client("c3")
    
    assert archived.status == ClientStatus.ARCHIVED
    assert fetcher.calls["get_clients"] == 1
    assert {c.id for c in crm_cache.cache.get_query_data(clients_key(ClientFilter.ALL))} == {"c1", "c2", "c3"}
    
    # Another client now comes from the ALL list
    await crm_cache.client("c2")
    assert fetcher.calls["get_clients"] == 1
    
    with pytest.raises(NotFoundError):
        await crm_cache.client("missing")


@pytest.mark.asyncio
async def test_invalidated_client_is_refetched_not_read_from_stale_list(
    crm_cache: CRMCache,
    fetcher: FakeFetcher,
):
    await crm_cache.clients(ClientFilter.ACTIVE)
    assert (await crm_cache.client("c1")).last_contact == NOW
    
    await crm_cache.create_communication(
        "c1",
        CommunicationCreate(type=CommunicationType.CALL, subject="Call", content="Talked"),
    )
    contacted = datetime(2026, 10, 5, 9, 0, tzinfo=timezone.utc)
    fetcher.clients["c1"] = fetcher.clients["c1"].model_copy(update={"last_contact": contacted})
    
    stale = await crm_cache.client("c1")
    await crm_cache.cache.settle()
    
    assert stale.last_contact == NOW
    assert crm_cache.cache.get_query_data(client_key("c1")).last_contact == contacted
    assert fetcher.calls["get_clients"] == 2
    
    # Served fresh now, no further fetch
    assert (await crm_cache.client("c1")).last_contact == contacted
    assert fetcher.calls["get_clients"] == 2


@pytest.mark.asyncio
async def test_stale_client_list_is_not_used_for_lookup(
    crm_cache: CRMCache,
    fetcher: FakeFetcher,
    clock,
):
    await crm_cache.clients(ClientFilter.ACTIVE)
    clock.advance(301)
    
    await crm_cache.client("c1")
    
    assert fetcher.calls["get_clients"] == 2


@pytest.mark.asyncio
async def test_update_is_written_to_every_entry(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.clients(ClientFilter.ACTIVE)
    await crm_cache.clients(ClientFilter.ALL)
    await crm_cache.client("c1")
    
    await crm_cache.update_client("c1", ClientUpdate(name="New Name"))
    
    cache = crm_cache.cache
    for status in (ClientFilter.ACTIVE, ClientFilter.ALL):
        names = {c.id: c.name for c in cache.get_query_data(clients_key(status))}
        assert names["c1"] == "New Name"
    assert cache.get_query_data(client_key("c1")).name == "New Name"
    assert (await crm_cache.client("c1")).name == "New Name"
    assert fetcher.calls["get_clients"] == 2


@pytest.mark.asyncio
async def test_failed_mutation_leaves_cache_untouched(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.clients(ClientFilter.ACTIVE)
    fetcher.fail_with = NotFoundError("Client not found")
    
    with pytest.raises(NotFoundError):
        await crm_cache.update_client("c1", ClientUpdate(name="Never"))
    
    names = [c.name for c in crm_cache.cache.get_query_data(clients_key(ClientFilter.ACTIVE))]
    assert "Never" not in names


@pytest.mark.asyncio
async def test_create_client_is_prepended(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.clients(ClientFilter.ACTIVE)
    
    created = await crm_cache.create_client(ClientCreate(name="Hooli"))
    
    listed = crm_cache.cache.get_query_data(clients_key(ClientFilter.ACTIVE))
    assert listed[0].id == created.id
    assert clients_key(ClientFilter.ARCHIVED) not in crm_cache.cache


@pytest.mark.asyncio
async def test_archive_moves_client_between_lists(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.clients(ClientFilter.ACTIVE)
    await crm_cache.clients(ClientFilter.ARCHIVED)
    await crm_cache.client_communications("c1")
    await crm_cache.client_projects("c1")
    
    await crm_cache.archive_client("c1")
    
    cache = crm_cache.cache
    assert [c.id for c in cache.get_query_data(clients_key(ClientFilter.ACTIVE))] == ["c2"]
    assert [c.id for c in cache.get_query_data(clients_key(ClientFilter.ARCHIVED))] == ["c1", "c3"]
    assert communications_key("c1") not in cache
    assert client_projects_key("c1") not in cache
    
    await crm_cache.unarchive_client("c1")
    assert "c1" in {c.id for c in cache.get_query_data(clients_key(ClientFilter.ACTIVE))}
    assert "c1" not in {c.id for c in cache.get_query_data(clients_key(ClientFilter.ARCHIVED))}


@pytest.mark.asyncio
async def test_project_lookup_is_cache_first(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.client_projects("c2")
    
    project = await crm_cache.project("p2")
    
    assert project.id == "p2"
    assert fetcher.calls["get_project"] == 0
    
    await crm_cache.project("p1")
    assert fetcher.calls["get_project"] == 1


@pytest.mark.asyncio
async def test_invalidated_project_is_refetched(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.projects()
    await crm_cache.project("p1")
    assert fetcher.calls["get_project"] == 0
    
    await crm_cache.create_communication(
        "c1",
        CommunicationCreate(type=CommunicationType.EMAIL, subject="Update", content="Sent", project_id="p1"),
    )
    fetcher.projects["p1"] = fetcher.projects["p1"].model_copy(update={"communication_count": 2})
    
    await crm_cache.project("p1")
    await crm_cache.cache.settle()
    
    assert fetcher.calls["get_project"] == 1
    assert crm_cache.cache.get_query_data(project_key("p1")).communication_count == 2


@pytest.mark.asyncio
async def test_delete_project_clears_dependent_caches(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.projects()
    await crm_cache.client_projects("c1")
    await crm_cache.project("p1")
    
    await crm_cache.delete_project("p1")
    
    cache = crm_cache.cache
    assert [p.id for p in cache.get_query_data(projects_key())] == ["p2"]
    assert project_key("p1") not in cache
    assert client_projects_key("c1") not in cache
    
    assert await crm_cache.client_projects("c1") == []
    assert fetcher.calls["get_client_projects"] == 2


@pytest.mark.asyncio
async def test_create_project_updates_project_list(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.projects()
    await crm_cache.client_projects("c1")
    
    created = await crm_cache.create_project(ProjectCreate(name="New", client_id="c1"))
    
    cache = crm_cache.cache
    assert cache.get_query_data(projects_key())[0].id == created.id
    assert cache.get_query_data(project_key(created.id)) == created
    assert client_projects_key("c1") not in cache


@pytest.mark.asyncio
async def test_create_communication_is_prepended_when_cached(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.client_communications("c1")
    await crm_cache.client_projects("c1")
    
    created = await crm_cache.create_communication(
        "c1",
        CommunicationCreate(type=CommunicationType.CALL, subject="Call", content="Talked", project_id="p1"),
    )
    
    cache = crm_cache.cache
    assert [c.id for c in cache.get_query_data(communications_key("c1"))] == [created.id, "m1"]
    assert client_projects_key("c1") not in cache
    
    # Not cached yet: nothing is created locally
    await crm_cache.create_communication(
        "c2",
        CommunicationCreate(type=CommunicationType.NOTE, subject="Note", content="Text"),
    )
    assert communications_key("c2") not in cache


@pytest.mark.asyncio
async def test_backdated_communication_is_inserted_by_sent_at(crm_cache: CRMCache, fetcher: FakeFetcher):
    fetcher.communications["c1"] = [
        make_communication("m1", "c1", sent_at=datetime(2026, 10, 3, tzinfo=timezone.utc)),
        make_communication("m2", "c1", sent_at=datetime(2026, 9, 1, tzinfo=timezone.utc)),
    ]
    await crm_cache.client_communications("c1")
    
    backdated = await crm_cache.create_communication(
        "c1",
        CommunicationCreate(
            type=CommunicationType.MEETING,
            subject="Workshop",
            content="Notes from last month",
            sent_at=datetime(2026, 9, 15, tzinfo=timezone.utc),
        ),
    )
    
    listed = crm_cache.cache.get_query_data(communications_key("c1"))
    assert [c.id for c in listed] == ["m1", backdated.id, "m2"]


@pytest.mark.asyncio
async def test_delete_communication(crm_cache: CRMCache, fetcher: FakeFetcher):
    await crm_cache.client_communications("c1")
    await crm_cache.client_projects("c1")
    
    await crm_cache.delete_communication("c1", "m1")
    
    cache = crm_cache.cache
    assert cache.get_query_data(communications_key("c1")) == []
    # m1 was tagged with p1, so the project counts moved
    assert client_projects_key("c1") not in cache


@pytest.mark.asyncio
async def test_stale_list_is_revalidated(crm_cache: CRMCache, fetcher: FakeFetcher, clock):
    await crm_cache.client_communications("c1")
    clock.advance(121)
    fetcher.communications["c1"].insert(0, make_communication("m9", "c1"))
    
    stale = await crm_cache.client_communications("c1")
    await crm_cache.cache.settle()
    
    assert [c.id for c in stale] == ["m1"]
    assert [c.id for c in crm_cache.cache.get_query_data(communications_key("c1"))] == ["m9", "m1"]


@pytest.mark.asyncio
async def test_service_fetcher_end_to_end(session_factory, principal):
    crm_cache = CRMCache(ServiceFetcher(principal, session_factory))
    
    created = await crm_cache.create_client(ClientCreate(name="Real Client"))
    listed = await crm_cache.clients()
    project = await crm_cache.create_project(ProjectCreate(name="Real Project", client_id=created.id))
    
    assert [c.id for c in listed] == [created.id]
    assert (await crm_cache.client(created.id)).name == "Real Client"
    assert [p.id for p in await crm_cache.client_projects(created.id)] == [project.id]


@pytest.mark.asyncio
async def test_service_fetcher_without_principal(session_factory):
    crm_cache = CRMCache(ServiceFetcher(None, session_factory))
    
    with pytest.raises(UnauthorizedError):
        await crm_cache.clients()
