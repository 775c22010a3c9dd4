"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - links table: short code -> destination mappings
    - click_events table: one row per redirect, for analytics
    - counters table: named counters for sequential allocation

    click_events references links by code only, with no foreign key, so
    events survive for soft-deleted links.
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'links' not in existing_tables:
        op.create_table(
            'links',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('code', sa.String(length=20), nullable=False),
            sa.Column('destination_url', sa.Text(), nullable=False),
            sa.Column('alias', sa.String(length=20), nullable=True),
            sa.Column('custom_domain', sa.String(length=253), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('clicks', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('tags', sa.JSON(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_links_code', 'links', ['code'], unique=True)
        op.create_index('ix_links_alias', 'links', ['alias'], unique=True)
        op.create_index('ix_links_created_at', 'links', ['created_at'])
        op.create_index('ix_links_expires_at', 'links', ['expires_at'])
        op.create_index('ix_links_active', 'links', ['active'])

    if 'click_events' not in existing_tables:
        op.create_table(
            'click_events',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('code', sa.String(length=20), nullable=False),
            sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
            sa.Column('ip', sa.String(length=45), nullable=False),
            sa.Column('user_agent', sa.String(length=500), nullable=False),
            sa.Column('referrer', sa.String(length=2048), nullable=False),
            sa.Column('device', sa.String(length=20), nullable=False),
            sa.Column('browser', sa.String(length=100), nullable=False),
            sa.Column('os', sa.String(length=100), nullable=False),
            sa.Column('country', sa.String(length=2), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_click_events_code', 'click_events', ['code'])
        op.create_index('ix_click_events_timestamp', 'click_events', ['timestamp'])

    if 'counters' not in existing_tables:
        op.create_table(
            'counters',
            sa.Column('namespace', sa.String(length=64), nullable=False),
            sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
            sa.PrimaryKeyConstraint('namespace')
        )


def downgrade() -> None:
    """Drop all tables and indexes."""
    op.drop_table('counters')

    op.drop_index('ix_click_events_timestamp', table_name='click_events')
    op.drop_index('ix_click_events_code', table_name='click_events')
    op.drop_table('click_events')

    op.drop_index('ix_links_active', table_name='links')
    op.drop_index('ix_links_expires_at', table_name='links')
    op.drop_index('ix_links_created_at', table_name='links')
    op.drop_index('ix_links_alias', table_name='links')
    op.drop_index('ix_links_code', table_name='links')
    op.drop_table('links')
