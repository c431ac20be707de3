"""
Communication log endpoints.
Nested under the client they belong to.
"""

from fastapi import APIRouter, status

from crm.api.deps import DbSession, CurrentUser
from crm.schemas.base import ApiResponse
from crm.schemas.communication import (
    CommunicationCreate,
    CommunicationUpdate,
    CommunicationResponse,
)
from crm.services.communication import CommunicationService


router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[list[CommunicationResponse]],
    summary="List communications",
    description="Communications with a client, newest first",
)
async def list_communications(
    client_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[list[CommunicationResponse]]:
    communications = await CommunicationService(db).list_for_client(current_user, client_id)
    return ApiResponse(data=communications)


@router.post(
    "",
    response_model=ApiResponse[CommunicationResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Log a communication",
    description="Record a communication and its attachments in one step",
)
async def create_communication(
    client_id: str,
    data: CommunicationCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[CommunicationResponse]:
    communication = await CommunicationService(db).create(current_user, client_id, data)
    return ApiResponse(data=communication)


@router.put(
    "/{communication_id}",
    response_model=ApiResponse[CommunicationResponse],
    summary="Update a communication",
)
async def update_communication(
    client_id: str,
    communication_id: str,
    data: CommunicationUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[CommunicationResponse]:
    communication = await CommunicationService(db).update(
        current_user, client_id, communication_id, data,
    )
    return ApiResponse(data=communication)


@router.delete(
    "/{communication_id}",
    response_model=ApiResponse[None],
    summary="Delete a communication",
)
async def delete_communication(
    client_id: str,
    communication_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[None]:
    """Delete a communication together with its attachments."""
    await CommunicationService(db).delete(current_user, client_id, communication_id)
    return ApiResponse()
