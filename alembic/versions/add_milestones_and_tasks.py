"""add milestones and tasks

Revision ID: milestones_002
Revises: initial_001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'milestones_002'
down_revision: Union[str, None] = 'initial_001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


milestone_status = sa.Enum(
    'PENDING', 'IN_PROGRESS', 'REVIEW', 'APPROVED', 'REJECTED', name='milestone_status'
)
task_status = sa.Enum('TODO', 'IN_PROGRESS', 'REVIEW', 'COMPLETED', name='task_status')
task_priority = sa.Enum('LOW', 'MEDIUM', 'HIGH', 'URGENT', name='task_priority')


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'milestones',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(32), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.String(32), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', milestone_status, nullable=False),
        sa.Column('deliverables', sa.JSON(), nullable=False),
        sa.Column('payment_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('client_approval_required', sa.Boolean(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_milestones_user_id', 'milestones', ['user_id'])
    op.create_index('ix_milestones_project_id', 'milestones', ['project_id'])

    op.create_table(
        'tasks',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(32), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.String(32), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'milestone_id', sa.String(32),
            sa.ForeignKey('milestones.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', task_status, nullable=False),
        sa.Column('priority', task_priority, nullable=False),
        sa.Column('estimated_hours', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('dependencies', sa.JSON(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_tasks_user_id', 'tasks', ['user_id'])
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_milestone_id', 'tasks', ['milestone_id'])


def downgrade() -> None:
    op.drop_table('tasks')
    op.drop_table('milestones')
    task_priority.drop(op.get_bind(), checkfirst=True)
    task_status.drop(op.get_bind(), checkfirst=True)
    milestone_status.drop(op.get_bind(), checkfirst=True)
