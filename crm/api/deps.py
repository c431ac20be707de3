"""
API Dependencies.
Common dependencies for authentication and database sessions.
"""

import logging
from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from crm.core.database import get_db
from crm.core.exceptions import UnauthorizedError
from crm.core.security import Principal, decode_session_token
from crm.models.user import User
from crm.services.identity import IdentityService


logger = logging.getLogger(__name__)

# Session token issued by the auth provider
security = HTTPBearer(auto_error=False)


async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    """
    Verify the bearer session token.
    
    Raises:
        UnauthorizedError: If the token is missing, invalid or expired
    """
    if not credentials:
        logger.warning("Request without session token")
        raise UnauthorizedError()
    
    principal = decode_session_token(credentials.credentials)
    if principal is None:
        logger.warning("Invalid or expired session token")
        raise UnauthorizedError()
    
    return principal


async def get_current_user(
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the principal to an internal user, creating it on first sight.
    
    Raises:
        UnauthorizedError: If a new principal has no primary email
    """
    user = await IdentityService(db).resolve(principal)
    logger.debug(f"Authenticated user {user.id}")
    return user


# Type aliases for cleaner route signatures
CurrentPrincipal = Annotated[Principal, Depends(get_principal)]
CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
