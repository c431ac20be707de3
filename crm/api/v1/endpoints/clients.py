"""
Client management endpoints.
Creation, editing and archival of clients.
"""

from fastapi import APIRouter, Query, status

from crm.api.deps import DbSession, CurrentUser
from crm.schemas.base import ApiResponse
from crm.schemas.client import (
    ClientCreate,
    ClientFilter,
    ClientUpdate,
    ClientResponse,
)
from crm.schemas.project import ProjectResponse
from crm.services.client import ClientService
from crm.services.project import ProjectService


router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[list[ClientResponse]],
    summary="List clients",
    description="List the current user's clients, most recently updated first",
)
async def list_clients(
    current_user: CurrentUser,
    db: DbSession,
    status_filter: ClientFilter = Query(
        ClientFilter.ACTIVE,
        alias="status",
        description="ACTIVE, ARCHIVED or ALL",
    ),
) -> ApiResponse[list[ClientResponse]]:
    clients = await ClientService(db).list(current_user, status_filter)
    return ApiResponse(data=clients)


@router.post(
    "",
    response_model=ApiResponse[ClientResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a client",
)
async def create_client(
    data: ClientCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ClientResponse]:
    """Create a new active client."""
    client = await ClientService(db).create(current_user, data)
    return ApiResponse(data=client)


@router.get(
    "/{client_id}",
    response_model=ApiResponse[ClientResponse],
    summary="Client details",
)
async def get_client(
    client_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ClientResponse]:
    client = await ClientService(db).get(current_user, client_id)
    return ApiResponse(data=client)


@router.put(
    "/{client_id}",
    response_model=ApiResponse[ClientResponse],
    summary="Update a client",
    description="Replace the editable fields of an active client",
)
async def update_client(
    client_id: str,
    data: ClientUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ClientResponse]:
    client = await ClientService(db).update(current_user, client_id, data)
    return ApiResponse(data=client)


@router.post(
    "/{client_id}/archive",
    response_model=ApiResponse[ClientResponse],
    summary="Archive a client",
)
async def archive_client(
    client_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ClientResponse]:
    """Move an active client to the archive."""
    client = await ClientService(db).archive(current_user, client_id)
    return ApiResponse(data=client)


@router.post(
    "/{client_id}/unarchive",
    response_model=ApiResponse[ClientResponse],
    summary="Restore an archived client",
)
async def unarchive_client(
    client_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ClientResponse]:
    client = await ClientService(db).unarchive(current_user, client_id)
    return ApiResponse(data=client)


@router.get(
    "/{client_id}/projects",
    response_model=ApiResponse[list[ProjectResponse]],
    summary="Projects of a client",
)
async def list_client_projects(
    client_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[list[ProjectResponse]]:
    projects = await ProjectService(db).list_for_client(current_user, client_id)
    return ApiResponse(data=projects)
