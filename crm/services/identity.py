"""
Identity service.
Maps principals of the external auth provider to internal users.
"""

import logging
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from crm.core.exceptions import UnauthorizedError, UnknownError, ValidationError
from crm.core.security import Principal
from crm.models.user import User
from crm.schemas.webhook import WebhookUserData
from crm.services.base import BaseService


logger = logging.getLogger(__name__)


class IdentityService(BaseService):
    """Service for user identity operations."""
    
    async def get_by_external_id(self, external_id: str) -> User | None:
        """Get user by auth provider ID."""
        result = await self.db.execute(
            select(User).where(User.external_id == external_id)
        )
        return result.scalar_one_or_none()
    
    async def resolve(self, principal: Principal | None) -> User:
        """
        Return the user behind a principal, creating it on first sight.
        
        Args:
            principal: Verified identity, None when the request carried none
            
        Returns:
            Internal user record
            
        Raises:
            UnauthorizedError: If there is no principal, or a new one has no email
        """
        if principal is None:
            raise UnauthorizedError()
        
        user = await self.get_by_external_id(principal.external_id)
        if user:
            logger.debug(f"Resolved principal {principal.external_id} to user {user.id}")
            return user
        
        if not principal.email:
            logger.warning(f"Principal {principal.external_id} has no primary email")
            raise UnauthorizedError("No primary email address found")
        
        user = User(
            external_id=principal.external_id,
            email=principal.email,
            name=principal.name,
            image_url=principal.image_url,
        )
        self.db.add(user)
        
        try:
            await self.db.flush()
        except IntegrityError:
            # Another request created the same user first
            await self.db.rollback()
            user = await self.get_by_external_id(principal.external_id)
            if user is None:
                raise UnknownError("Could not create user")
            return user
        
        logger.info(f"Created user {user.id} for principal {principal.external_id}")
        return user
    
    async def sync(self, data: WebhookUserData) -> User:
        """
        Create or update a user from a lifecycle webhook.
        
        Raises:
            ValidationError: If the payload carries no email address
        """
        email = data.primary_email
        if not email:
            raise ValidationError.for_field("email_addresses", "No email addresses found")
        
        user = await self.get_by_external_id(data.id)
        if user is None:
            user = User(external_id=data.id, email=email)
            self.db.add(user)
        
        user.email = email
        user.name = data.display_name
        user.image_url = data.image_url
        
        await self._flush("sync user")
        logger.info(f"User {data.id} synchronised from webhook")
        return user
    
    async def delete(self, external_id: str) -> bool:
        """
        Delete a user and everything it owns.
        
        Returns:
            False if no such user existed
        """
        user = await self.get_by_external_id(external_id)
        if user is None:
            logger.warning(f"Webhook deletion for unknown user {external_id}")
            return False
        
        await self.db.delete(user)
        await self._flush("delete user")
        logger.info(f"User {external_id} deleted from webhook")
        return True
