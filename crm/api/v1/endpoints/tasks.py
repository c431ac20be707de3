"""
Task endpoints.
Nested under the project they belong to.
"""

from typing import Optional
from fastapi import APIRouter, Query, status

from crm.api.deps import DbSession, CurrentUser
from crm.schemas.base import ApiResponse
from crm.schemas.task import (
    TaskCompletion,
    TaskCreate,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from crm.services.task import TaskService


router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[list[TaskResponse]],
    summary="List tasks",
    description="Tasks of a project by status, priority and due date",
)
async def list_tasks(
    project_id: str,
    current_user: CurrentUser,
    db: DbSession,
    milestone_id: Optional[str] = Query(None, description="Only tasks of this milestone"),
) -> ApiResponse[list[TaskResponse]]:
    tasks = await TaskService(db).list_for_project(current_user, project_id, milestone_id)
    return ApiResponse(data=tasks)


@router.post(
    "",
    response_model=ApiResponse[TaskResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
)
async def create_task(
    project_id: str,
    data: TaskCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[TaskResponse]:
    task = await TaskService(db).create(current_user, project_id, data)
    return ApiResponse(data=task)


@router.put(
    "/{task_id}",
    response_model=ApiResponse[TaskResponse],
    summary="Update a task",
)
async def update_task(
    project_id: str,
    task_id: str,
    data: TaskUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[TaskResponse]:
    task = await TaskService(db).update(current_user, project_id, task_id, data)
    return ApiResponse(data=task)


@router.put(
    "/{task_id}/status",
    response_model=ApiResponse[TaskResponse],
    summary="Change a task's status",
)
async def update_task_status(
    project_id: str,
    task_id: str,
    data: TaskStatusUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[TaskResponse]:
    task = await TaskService(db).update_status(current_user, project_id, task_id, data.status)
    return ApiResponse(data=task)


@router.post(
    "/{task_id}/complete",
    response_model=ApiResponse[TaskCompletion],
    summary="Complete a task",
    description="Complete a task and report the tasks it unblocked",
)
async def complete_task(
    project_id: str,
    task_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[TaskCompletion]:
    completion = await TaskService(db).complete(current_user, project_id, task_id)
    return ApiResponse(data=completion)


@router.delete(
    "/{task_id}",
    response_model=ApiResponse[None],
    summary="Delete a task",
)
async def delete_task(
    project_id: str,
    task_id: str,
    current_user: CurrentUser,
    db: DbSession,
) -> ApiResponse[None]:
    await TaskService(db).delete(current_user, project_id, task_id)
    return ApiResponse()
