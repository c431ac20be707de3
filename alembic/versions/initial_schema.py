"""initial schema: users, clients, projects, communications, attachments

Revision ID: initial_001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'initial_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


client_status = sa.Enum('ACTIVE', 'ARCHIVED', name='client_status')
project_status = sa.Enum(
    'PROPOSAL', 'ACTIVE', 'ON_HOLD', 'COMPLETED', 'CANCELED', name='project_status'
)
communication_type = sa.Enum(
    'EMAIL', 'CALL', 'MEETING', 'NOTE', 'OTHER', name='communication_type'
)


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('external_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('image_url', sa.String(1024), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_users_external_id', 'users', ['external_id'], unique=True)

    op.create_table(
        'clients',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(32), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('status', client_status, nullable=False),
        *timestamps(),
    )
    op.create_index('ix_clients_user_id', 'clients', ['user_id'])
    op.create_index('ix_clients_status', 'clients', ['status'])

    op.create_table(
        'projects',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(32), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('client_id', sa.String(32), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', project_status, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_projects_user_id', 'projects', ['user_id'])
    op.create_index('ix_projects_client_id', 'projects', ['client_id'])

    op.create_table(
        'communications',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('client_id', sa.String(32), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.String(32), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=True),
        sa.Column('type', communication_type, nullable=False),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        *timestamps(),
    )
    op.create_index('ix_communications_client_id', 'communications', ['client_id'])
    op.create_index('ix_communications_project_id', 'communications', ['project_id'])
    op.create_index('ix_communications_sent_at', 'communications', ['sent_at'])

    op.create_table(
        'attachments',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column(
            'communication_id', sa.String(32),
            sa.ForeignKey('communications.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(255), nullable=False),
        *timestamps(),
        sa.CheckConstraint('size >= 0', name='ck_attachments_size_positive'),
    )
    op.create_index('ix_attachments_communication_id', 'attachments', ['communication_id'])


def downgrade() -> None:
    op.drop_table('attachments')
    op.drop_table('communications')
    op.drop_table('projects')
    op.drop_table('clients')
    op.drop_table('users')
    communication_type.drop(op.get_bind(), checkfirst=True)
    project_status.drop(op.get_bind(), checkfirst=True)
    client_status.drop(op.get_bind(), checkfirst=True)
