"""
Auth provider lifecycle webhooks.
Keeps the users table in step with the provider's user directory.
"""

import logging
from fastapi import APIRouter, HTTPException, Request, status
from pydantic import ValidationError as PydanticValidationError

from crm.api.deps import DbSession
from crm.core.config import settings
from crm.core.exceptions import ValidationError, parse_payload
from crm.core.security import WebhookSecretError, WebhookVerificationError, verify_webhook
from crm.schemas.base import ApiResponse
from crm.schemas.webhook import WebhookEvent, WebhookResult, WebhookUserData
from crm.services.identity import IdentityService


logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


@router.post(
    "/auth",
    response_model=ApiResponse[WebhookResult],
    summary="Auth provider webhook",
    description="Signed user.created / user.updated / user.deleted notifications",
)
async def auth_webhook(request: Request, db: DbSession) -> ApiResponse[WebhookResult]:
    if not settings.WEBHOOK_SECRET:
        logger.error("WEBHOOK_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )
    
    message_id, timestamp, signature = (request.headers.get(h) for h in SIGNATURE_HEADERS)
    if not (message_id and timestamp and signature):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing webhook signature headers",
        )
    
    body = await request.body()
    try:
        verify_webhook(settings.WEBHOOK_SECRET, message_id, timestamp, signature, body)
    except WebhookSecretError:
        logger.error("WEBHOOK_SECRET is not a valid whsec_ key", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret misconfigured",
        )
    except WebhookVerificationError as exc:
        logger.warning(f"Rejected webhook {message_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature",
        )
    
    try:
        event = WebhookEvent.model_validate_json(body)
        service = IdentityService(db)
        
        if event.type in ("user.created", "user.updated"):
            await service.sync(parse_payload(WebhookUserData, event.data))
            processed = True
        elif event.type == "user.deleted":
            processed = await service.delete(parse_payload(WebhookUserData, event.data).id)
        else:
            logger.debug(f"Ignoring webhook event {event.type}")
            processed = False
    except (PydanticValidationError, ValidationError) as exc:
        logger.warning(f"Malformed webhook {message_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed webhook payload",
        )
    
    return ApiResponse(data=WebhookResult(event=event.type, processed=processed))
