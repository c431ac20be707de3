"""
Auth provider webhook endpoint tests.
"""

import json
import time

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm.core.config import settings
from crm.core.security import sign_webhook
from crm.models.user import User


WEBHOOK_URL = "/api/v1/webhooks/auth"


def signed(event: dict, message_id: str = "msg_1", timestamp: int | None = None) -> tuple[bytes, dict]:
    body = json.dumps(event).encode()
    ts = str(timestamp or int(time.time()))
    headers = {
        "svix-id": message_id,
        "svix-timestamp": ts,
        "svix-signature": f"v1,{sign_webhook(settings.WEBHOOK_SECRET, message_id, ts, body)}",
        "content-type": "application/json",
    }
    return body, headers


def user_event(event_type: str, **data) -> dict:
    payload = {
        "id": "user_hook",
        "email_addresses": [{"id": "idn_1", "email_address": "hook@example.com"}],
        "primary_email_address_id": "idn_1",
        "first_name": "Hook",
        "last_name": "User",
    }
    payload.update(data)
    return {"type": event_type, "object": "event", "data": payload}


async def find_user(db: AsyncSession, external_id: str) -> User | None:
    result = await db.execute(select(User).where(User.external_id == external_id))
    return result.scalar_one_or_none()


@pytest.mark.asyncio
async def test_user_created_then_updated(client: AsyncClient, db_session: AsyncSession):
    body, headers = signed(user_event("user.created"))
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 200
    assert response.json()["data"] == {"event": "user.created", "processed": True}
    user = await find_user(db_session, "user_hook")
    assert user.email == "hook@example.com"
    assert user.name == "Hook User"
    
    body, headers = signed(user_event("user.updated", first_name="Renamed", last_name=None), message_id="msg_2")
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 200
    user = await find_user(db_session, "user_hook")
    await db_session.refresh(user)
    assert user.name == "Renamed"


@pytest.mark.asyncio
async def test_user_deleted(client: AsyncClient, db_session: AsyncSession, test_user: User):
    body, headers = signed({"type": "user.deleted", "data": {"id": test_user.external_id, "deleted": True}})
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 200
    assert response.json()["data"]["processed"] is True
    assert await find_user(db_session, "user_test") is None


@pytest.mark.asyncio
async def test_unknown_event_is_acknowledged(client: AsyncClient):
    body, headers = signed({"type": "session.created", "data": {"id": "sess_1"}})
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 200
    assert response.json()["data"] == {"event": "session.created", "processed": False}


@pytest.mark.asyncio
async def test_missing_headers(client: AsyncClient):
    response = await client.post(WEBHOOK_URL, json=user_event("user.created"))
    
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_bad_signature(client: AsyncClient, db_session: AsyncSession):
    body, headers = signed(user_event("user.created"))
    headers["svix-signature"] = "v1,invalid"
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 400
    assert await find_user(db_session, "user_hook") is None


@pytest.mark.asyncio
async def test_stale_timestamp(client: AsyncClient):
    body, headers = signed(user_event("user.created"), timestamp=int(time.time()) - 3600)
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_user_without_email(client: AsyncClient):
    body, headers = signed(user_event("user.created", email_addresses=[]))
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_missing_secret(client: AsyncClient, monkeypatch):
    body, headers = signed(user_event("user.created"))
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", None)
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_malformed_secret_is_a_server_error(client: AsyncClient, monkeypatch):
    body, headers = signed(user_event("user.created"))
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", "whsec_not*base64!")
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 500
    payload = response.json()
    assert payload["success"] is False
    assert payload["error"] == "Webhook secret misconfigured"


@pytest.mark.asyncio
async def test_user_event_without_id_is_rejected(client: AsyncClient, db_session: AsyncSession):
    event = user_event("user.created")
    del event["data"]["id"]
    body, headers = signed(event)
    response = await client.post(WEBHOOK_URL, content=body, headers=headers)
    
    assert response.status_code == 400
    assert response.json()["reason"] == "HTTPError"
