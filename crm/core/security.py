"""
Security utilities.
Session token verification and webhook signature checks for the auth provider.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Any, Mapping, Optional
from jose import JWTError, jwt
from pydantic import BaseModel

from crm.core.config import settings


logger = logging.getLogger(__name__)

WEBHOOK_SECRET_PREFIX = "whsec_"


class Principal(BaseModel):
    """Authenticated external identity making a request."""
    external_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    image_url: Optional[str] = None


class WebhookVerificationError(Exception):
    """Webhook signature or timestamp could not be verified."""


class WebhookSecretError(Exception):
    """Configured webhook secret is not a valid base64 key."""


def _display_name(claims: Mapping[str, Any]) -> Optional[str]:
    if claims.get("name"):
        return claims["name"]
    full_name = f"{claims.get('first_name') or ''} {claims.get('last_name') or ''}".strip()
    return full_name or None


def decode_session_token(token: str) -> Optional[Principal]:
    """
    Decode and validate a session token issued by the auth provider.
    
    Args:
        token: Bearer token from the request
        
    Returns:
        Principal if the token is valid, None otherwise
    """
    options = {"verify_aud": settings.AUTH_JWT_AUDIENCE is not None}
    try:
        claims = jwt.decode(
            token,
            settings.AUTH_JWT_KEY,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            issuer=settings.AUTH_JWT_ISSUER,
            options=options,
        )
    except JWTError as exc:
        logger.debug(f"Rejected session token: {exc}")
        return None
    
    external_id = claims.get("sub")
    if not external_id:
        return None
    
    return Principal(
        external_id=external_id,
        email=claims.get("email") or claims.get("primary_email"),
        name=_display_name(claims),
        image_url=claims.get("image_url") or claims.get("picture"),
    )


def _secret_bytes(secret: str) -> bytes:
    if secret.startswith(WEBHOOK_SECRET_PREFIX):
        secret = secret[len(WEBHOOK_SECRET_PREFIX):]
    try:
        return base64.b64decode(secret, validate=True)
    except binascii.Error as exc:
        raise WebhookSecretError("Webhook secret is not valid base64") from exc


def sign_webhook(secret: str, message_id: str, timestamp: str, body: bytes) -> str:
    """Compute the base64 HMAC-SHA256 signature of a webhook delivery."""
    to_sign = f"{message_id}.{timestamp}.".encode() + body
    digest = hmac.new(_secret_bytes(secret), to_sign, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_webhook(
    secret: str,
    message_id: str,
    timestamp: str,
    signature_header: str,
    body: bytes,
    tolerance: int | None = None,
    now: float | None = None,
) -> None:
    """
    Verify a signed webhook delivery.
    
    The signature header holds space separated `v1,<base64>` entries, any of
    which may match (the provider sends several during secret rotation).
    
    Raises:
        WebhookVerificationError: if the timestamp is stale or no signature matches
        WebhookSecretError: if the configured secret cannot be decoded
    """
    tolerance = settings.WEBHOOK_TOLERANCE_SECONDS if tolerance is None else tolerance
    now = time.time() if now is None else now
    
    try:
        sent_at = int(timestamp)
    except ValueError as exc:
        raise WebhookVerificationError("Invalid timestamp") from exc
    
    if abs(now - sent_at) > tolerance:
        raise WebhookVerificationError("Timestamp outside tolerance")
    
    expected = sign_webhook(secret, message_id, timestamp, body)
    for entry in signature_header.split():
        version, _, signature = entry.partition(",")
        if version == "v1" and hmac.compare_digest(signature, expected):
            return
    
    raise WebhookVerificationError("No matching signature")
