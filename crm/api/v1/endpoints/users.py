"""
User endpoints.
"""

from fastapi import APIRouter

from crm.api.deps import CurrentUser
from crm.schemas.base import ApiResponse
from crm.schemas.user import UserResponse


router = APIRouter()


@router.get(
    "/me",
    response_model=ApiResponse[UserResponse],
    summary="Current user",
    description="Internal record of the authenticated principal, created on first call",
)
async def get_me(current_user: CurrentUser) -> ApiResponse[UserResponse]:
    return ApiResponse(data=UserResponse.model_validate(current_user))
