"""pending_orders and enrollment_reconciliations tables

Revision ID: d7e8f9a0b1c2
Revises: c1a2b3d4e5f6
Create Date: 2026-10-12 10:15:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'd7e8f9a0b1c2'
down_revision: Union[str, Sequence[str], None] = 'c1a2b3d4e5f6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'pending_orders',
        sa.Column('order_id', sa.String(length=64), primary_key=True),
        sa.Column('course_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_slug', sa.Text(), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='ZAR'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='CREATED'),
        sa.Column('provider_status', sa.String(length=32), nullable=True),
        sa.Column('approval_url', sa.Text(), nullable=True),
        sa.Column('idempotency_key', sa.String(length=255), nullable=True, unique=True),
        sa.Column('payer_email', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_pending_orders_user_id', 'pending_orders', ['user_id'])
    op.create_index('ix_pending_orders_status', 'pending_orders', ['status'])
    op.create_index('ix_pending_orders_expires_at', 'pending_orders', ['expires_at'])

    op.create_table(
        'enrollment_reconciliations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('order_id', sa.String(length=64), nullable=False, unique=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('course_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_enrollment_reconciliations_status', 'enrollment_reconciliations', ['status'])


def downgrade() -> None:
    op.drop_index('ix_enrollment_reconciliations_status', table_name='enrollment_reconciliations')
    op.drop_table('enrollment_reconciliations')
    op.drop_index('ix_pending_orders_expires_at', table_name='pending_orders')
    op.drop_index('ix_pending_orders_status', table_name='pending_orders')
    op.drop_index('ix_pending_orders_user_id', table_name='pending_orders')
    op.drop_table('pending_orders')
