"""
Payloads delivered by the auth provider's lifecycle webhooks.
"""

from typing import Any
from pydantic import Field

from crm.schemas.base import BaseSchema


class WebhookEmailAddress(BaseSchema):
    id: str | None = None
    email_address: str


class WebhookUserData(BaseSchema):
    """User object of user.created / user.updated / user.deleted events."""
    
    id: str
    email_addresses: list[WebhookEmailAddress] = Field(default_factory=list)
    primary_email_address_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None
    
    @property
    def primary_email(self) -> str | None:
        for address in self.email_addresses:
            if address.id and address.id == self.primary_email_address_id:
                return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return None
    
    @property
    def display_name(self) -> str | None:
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full_name or None


class WebhookEvent(BaseSchema):
    """Envelope of every webhook delivery."""
    
    type: str
    object: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class WebhookResult(BaseSchema):
    """Acknowledgement returned to the provider."""
    
    event: str
    processed: bool
