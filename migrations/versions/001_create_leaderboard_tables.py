"""Create users, events, leaderboards and aggregation_runs tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(128), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('role', sa.String(32), nullable=True),
        sa.Column('city', sa.String(255), nullable=True),
        sa.Column('events_attended', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('events_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_users_company', 'users', ['company'])

    op.create_table(
        'events',
        sa.Column('id', sa.String(128), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('sport_type', sa.String(100), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('participants', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.String(128), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_events_status', 'events', ['status'])

    op.create_table(
        'leaderboards',
        sa.Column('id', sa.String(255), nullable=False),
        sa.Column('scope', sa.String(20), nullable=False),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('sport_type', sa.String(100), nullable=False),
        sa.Column('rankings', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_leaderboards_scope_sport', 'leaderboards', ['scope', 'sport_type'])
    op.create_index('idx_leaderboards_company', 'leaderboards', ['company'])

    op.create_table(
        'aggregation_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('trigger', sa.String(20), nullable=False),
        sa.Column('triggered_by', sa.String(128), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('events_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('users_ranked', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('partitions_published', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_aggregation_runs_status', 'aggregation_runs', ['status'])


def downgrade() -> None:
    op.drop_index('idx_aggregation_runs_status', table_name='aggregation_runs')
    op.drop_table('aggregation_runs')
    op.drop_index('idx_leaderboards_company', table_name='leaderboards')
    op.drop_index('idx_leaderboards_scope_sport', table_name='leaderboards')
    op.drop_table('leaderboards')
    op.drop_index('idx_events_status', table_name='events')
    op.drop_table('events')
    op.drop_index('idx_users_company', table_name='users')
    op.drop_table('users')
