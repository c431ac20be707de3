"""
API v1 router - aggregates all endpoint routers.
"""

from fastapi import APIRouter

from crm.api.v1.endpoints import (
    users,
    clients,
    communications,
    projects,
    milestones,
    tasks,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"],
)

api_router.include_router(
    clients.router,
    prefix="/clients",
    tags=["Clients"],
)

api_router.include_router(
    communications.router,
    prefix="/clients/{client_id}/communications",
    tags=["Communications"],
)

api_router.include_router(
    projects.router,
    prefix="/projects",
    tags=["Projects"],
)

api_router.include_router(
    milestones.router,
    prefix="/projects/{project_id}/milestones",
    tags=["Milestones"],
)

api_router.include_router(
    tasks.router,
    prefix="/projects/{project_id}/tasks",
    tags=["Tasks"],
)

api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Webhooks"],
)
