"""
Milestone endpoints.
Nested under the project they belong to.
"""

from fastapi import APIRouter, status

from crm.api.deps import DbSession, CurrentUser
from crm.schemas.base import ApiResponse
from crm.schemas.milestone import (
    MilestoneCompletion,
    MilestoneCreate,
    MilestoneReorder,
    MilestoneResponse,
    MilestoneUpdate,
)
from crm.services.milestone import MilestoneService


router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[list[MilestoneResponse]],
    summary="List milestones",
    description="Milestones of a project in plan order",
)
async def list_milestones(
    project_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[list[MilestoneResponse]]:
    milestones = await MilestoneService(db).list_for_project(current_user, project_id)
    return ApiResponse(data=milestones)


@router.post(
    "",
    response_model=ApiResponse[MilestoneResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add a milestone",
)
async def create_milestone(
    project_id: str,
    data: MilestoneCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[MilestoneResponse]:
    milestone = await MilestoneService(db).create(current_user, project_id, data)
    return ApiResponse(data=milestone)


@router.put(
    "/order",
    response_model=ApiResponse[list[MilestoneResponse]],
    summary="Reorder milestones",
)
async def reorder_milestones(
    project_id: str,
    data: MilestoneReorder,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[list[MilestoneResponse]]:
    milestones = await MilestoneService(db).reorder(current_user, project_id, data.milestone_ids)
    return ApiResponse(data=milestones)


@router.put(
    "/{milestone_id}",
    response_model=ApiResponse[MilestoneResponse],
    summary="Update a milestone",
)
async def update_milestone(
    project_id: str,
    milestone_id: str,
    data: MilestoneUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[MilestoneResponse]:
    milestone = await MilestoneService(db).update(current_user, project_id, milestone_id, data)
    return ApiResponse(data=milestone)


@router.post(
    "/{milestone_id}/complete",
    response_model=ApiResponse[MilestoneCompletion],
    summary="Complete a milestone",
    description="Approve it, or send it for client review with a notification email",
)
async def complete_milestone(
    project_id: str,
    milestone_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[MilestoneCompletion]:
    completion = await MilestoneService(db).complete(current_user, project_id, milestone_id)
    return ApiResponse(data=completion)


@router.delete(
    "/{milestone_id}",
    response_model=ApiResponse[None],
    summary="Delete a milestone",
)
async def delete_milestone(
    project_id: str,
    milestone_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[None]:
    """Delete a milestone, keeping its tasks on the project."""
    await MilestoneService(db).delete(current_user, project_id, milestone_id)
    return ApiResponse()
