"""
Project endpoints.
"""

from fastapi import APIRouter, status

from crm.api.deps import DbSession, CurrentUser
from crm.schemas.base import ApiResponse
from crm.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
)
from crm.services.project import ProjectService


router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[list[ProjectResponse]],
    summary="List projects",
    description="Every project of the current user, across all clients",
)
async def list_projects(
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[list[ProjectResponse]]:
    projects = await ProjectService(db).list(current_user)
    return ApiResponse(data=projects)


@router.post(
    "",
    response_model=ApiResponse[ProjectResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
async def create_project(
    data: ProjectCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(db).create(current_user, data)
    return ApiResponse(data=project)


@router.get(
    "/{project_id}",
    response_model=ApiResponse[ProjectResponse],
    summary="Project details",
)
async def get_project(
    project_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(db).get(current_user, project_id)
    return ApiResponse(data=project)


@router.put(
    "/{project_id}",
    response_model=ApiResponse[ProjectResponse],
    summary="Update a project",
)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(db).update(current_user, project_id, data)
    return ApiResponse(data=project)


@router.delete(
    "/{project_id}",
    response_model=ApiResponse[ProjectResponse],
    summary="Delete a project",
    description="Delete a project and the communications tagged with it",
)
async def delete_project(
    project_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(db).delete(current_user, project_id)
    return ApiResponse(data=project)
