"""
Project service tests.
"""

from datetime import date

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from crm.core.exceptions import NotFoundError, ValidationError, parse_payload
from crm.models.client import Client
from crm.models.communication import Attachment, Communication, CommunicationType
from crm.models.project import ProjectStatus
from crm.models.user import User
from crm.schemas.communication import AttachmentCreate, CommunicationCreate
from crm.schemas.project import ProjectCreate, ProjectUpdate
from crm.services.client import ClientService
from crm.services.communication import CommunicationService
from crm.services.project import ProjectService


@pytest.mark.asyncio
async def test_create_project_defaults_to_proposal(
    db_session: AsyncSession,
    test_user: User,
    test_client_record: Client,
):
    project = await ProjectService(db_session).create(
        test_user,
        ProjectCreate(name="Website", client_id=test_client_record.id),
    )
    
    assert project.status == ProjectStatus.PROPOSAL
    assert project.client_name == "Acme Corp"
    assert project.client_company == "Acme"
    assert project.communication_count == 0
    assert project.last_activity == project.updated_at


@pytest.mark.asyncio
async def test_create_project_for_foreign_client_is_not_found(
    db_session: AsyncSession,
    test_client_record: Client,
    other_user: User,
):
    with pytest.raises(NotFoundError):
        await ProjectService(db_session).create(
            other_user,
            ProjectCreate(name="Stolen", client_id=test_client_record.id),
        )


@pytest.mark.asyncio
async def test_end_date_before_start_date_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        parse_payload(ProjectCreate, {
            "name": "Backwards",
            "client_id": "c1",
            "start_date": "2026-03-10",
            "end_date": "2026-03-01",
        })
    
    assert exc_info.value.errors[0]["field"] == "end_date"


@pytest.mark.asyncio
async def test_update_accepts_any_status_and_keeps_it_when_missing(
    db_session: AsyncSession,
    test_user: User,
    test_client_record: Client,
):
    service = ProjectService(db_session)
    project = await service.create(
        test_user,
        ProjectCreate(name="Website", client_id=test_client_record.id, status=ProjectStatus.ACTIVE),
    )
    
    # No transition graph: straight from ACTIVE to CANCELED and back
    canceled = await service.update(
        test_user, project.id, ProjectUpdate(name="Website", status=ProjectStatus.CANCELED),
    )
    assert canceled.status == ProjectStatus.CANCELED
    
    renamed = await service.update(
        test_user,
        project.id,
        ProjectUpdate(name="Website v2", start_date=date(2026, 1, 1)),
    )
    assert renamed.name == "Website v2"
    assert renamed.status == ProjectStatus.CANCELED
    assert renamed.start_date == date(2026, 1, 1)


@pytest.mark.asyncio
async def test_list_for_client_and_counts(
    db_session: AsyncSession,
    test_user: User,
    test_client_record: Client,
):
    projects = ProjectService(db_session)
    tagged = await projects.create(
        test_user, ProjectCreate(name="Tagged", client_id=test_client_record.id),
    )
    await projects.create(
        test_user, ProjectCreate(name="Quiet", client_id=test_client_record.id),
    )
    communication = await CommunicationService(db_session).create(
        test_user,
        test_client_record.id,
        CommunicationCreate(
            type=CommunicationType.CALL,
            subject="Kickoff",
            content="Discussed scope",
            project_id=tagged.id,
        ),
    )
    
    listed = {p.name: p for p in await projects.list_for_client(test_user, test_client_record.id)}
    assert listed["Tagged"].communication_count == 1
    assert listed["Tagged"].last_activity == communication.sent_at
    assert listed["Quiet"].communication_count == 0
    
    client = await ClientService(db_session).get(test_user, test_client_record.id)
    assert client.project_count == 2
    assert client.last_contact == communication.sent_at


@pytest.mark.asyncio
async def test_list_for_foreign_client_is_not_found(
    db_session: AsyncSession,
    test_client_record: Client,
    other_user: User,
):
    with pytest.raises(NotFoundError):
        await ProjectService(db_session).list_for_client(other_user, test_client_record.id)


@pytest.mark.asyncio
async def test_delete_cascades_to_communications_and_attachments(
    db_session: AsyncSession,
    test_user: User,
    test_client_record: Client,
):
    projects = ProjectService(db_session)
    project = await projects.create(
        test_user, ProjectCreate(name="Doomed", client_id=test_client_record.id),
    )
    await CommunicationService(db_session).create(
        test_user,
        test_client_record.id,
        CommunicationCreate(
            type=CommunicationType.EMAIL,
            subject="Proposal",
            content="See attached",
            project_id=project.id,
            attachments=[AttachmentCreate(name="quote.pdf", url="https://files/quote.pdf", size=10, mime_type="application/pdf")],
        ),
    )
    untagged = await CommunicationService(db_session).create(
        test_user,
        test_client_record.id,
        CommunicationCreate(type=CommunicationType.NOTE, subject="General", content="Unrelated"),
    )
    
    deleted = await projects.delete(test_user, project.id)
    assert deleted.id == project.id
    assert deleted.communication_count == 1
    
    remaining = (await db_session.execute(select(Communication.id))).scalars().all()
    assert remaining == [untagged.id]
    assert (await db_session.execute(select(func.count(Attachment.id)))).scalar_one() == 0
    with pytest.raises(NotFoundError):
        await projects.get(test_user, project.id)


@pytest.mark.asyncio
async def test_other_user_cannot_touch_project(
    db_session: AsyncSession,
    test_user: User,
    test_client_record: Client,
    other_user: User,
):
    projects = ProjectService(db_session)
    project = await projects.create(
        test_user, ProjectCreate(name="Private", client_id=test_client_record.id),
    )
    
    with pytest.raises(NotFoundError):
        await projects.get(other_user, project.id)
    with pytest.raises(NotFoundError):
        await projects.update(other_user, project.id, ProjectUpdate(name="Mine now"))
    with pytest.raises(NotFoundError):
        await projects.delete(other_user, project.id)
    assert await projects.list(other_user) == []
