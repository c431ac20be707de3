"""
Identity resolution tests.
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from crm.core.exceptions import UnauthorizedError, ValidationError
from crm.core.security import Principal
from crm.models.client import Client
from crm.models.user import User
from crm.schemas.webhook import WebhookUserData
from crm.services.identity import IdentityService


async def count_users(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(User.id)))).scalar_one()


@pytest.mark.asyncio
async def test_resolve_without_principal_is_unauthorized(db_session: AsyncSession):
    with pytest.raises(UnauthorizedError):
        await IdentityService(db_session).resolve(None)


@pytest.mark.asyncio
async def test_resolve_creates_user_on_first_sight(db_session: AsyncSession, principal: Principal):
    service = IdentityService(db_session)
    
    user = await service.resolve(principal)
    again = await service.resolve(principal)
    
    assert user.id == again.id
    assert user.external_id == "user_test"
    assert user.email == "test@example.com"
    assert user.name == "Test User"
    assert await count_users(db_session) == 1


@pytest.mark.asyncio
async def test_resolve_existing_user(db_session: AsyncSession, test_user: User, principal: Principal):
    user = await IdentityService(db_session).resolve(principal)
    assert user.id == test_user.id


@pytest.mark.asyncio
async def test_new_principal_without_email_is_unauthorized(db_session: AsyncSession):
    with pytest.raises(UnauthorizedError) as exc_info:
        await IdentityService(db_session).resolve(Principal(external_id="user_anonymous"))
    
    assert exc_info.value.message == "No primary email address found"
    assert await count_users(db_session) == 0


@pytest.mark.asyncio
async def test_sync_picks_primary_email(db_session: AsyncSession):
    data = WebhookUserData.model_validate({
        "id": "user_hook",
        "email_addresses": [
            {"id": "idn_1", "email_address": "old@example.com"},
            {"id": "idn_2", "email_address": "primary@example.com"},
        ],
        "primary_email_address_id": "idn_2",
        "first_name": "Ada",
        "last_name": "Lovelace",
    })
    
    user = await IdentityService(db_session).sync(data)
    
    assert user.email == "primary@example.com"
    assert user.name == "Ada Lovelace"


@pytest.mark.asyncio
async def test_sync_updates_existing_user(db_session: AsyncSession, test_user: User):
    data = WebhookUserData.model_validate({
        "id": test_user.external_id,
        "email_addresses": [{"id": "idn_1", "email_address": "renamed@example.com"}],
        "first_name": "Renamed",
    })
    
    user = await IdentityService(db_session).sync(data)
    
    assert user.id == test_user.id
    assert user.email == "renamed@example.com"
    assert user.name == "Renamed"
    assert await count_users(db_session) == 1


@pytest.mark.asyncio
async def test_sync_without_email_is_rejected(db_session: AsyncSession):
    with pytest.raises(ValidationError):
        await IdentityService(db_session).sync(WebhookUserData(id="user_hook"))


@pytest.mark.asyncio
async def test_delete_cascades_to_owned_records(
    db_session: AsyncSession,
    test_user: User,
    test_client_record: Client,
):
    deleted = await IdentityService(db_session).delete(test_user.external_id)
    
    assert deleted is True
    assert await count_users(db_session) == 0
    assert (await db_session.execute(select(func.count(Client.id)))).scalar_one() == 0


@pytest.mark.asyncio
async def test_delete_unknown_user(db_session: AsyncSession):
    assert await IdentityService(db_session).delete("user_missing") is False
