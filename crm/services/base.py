"""
Shared plumbing for domain services.
"""

import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.core.exceptions import UnknownError


logger = logging.getLogger(__name__)


class BaseService:
    """Holds the request session and turns storage failures into UnknownError."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def _flush(self, action: str) -> None:
        """
        Flush pending writes as one unit.
        
        On failure the whole session is rolled back so no partial record
        survives, then the error is re-raised as UnknownError.
        """
        try:
            await self.db.flush()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Failed to {action}", exc_info=True)
            raise UnknownError(f"Could not {action}") from exc
