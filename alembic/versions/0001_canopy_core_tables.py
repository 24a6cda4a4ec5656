"""Pipeline stages, candidate assignments, credits, points and subscriptions

Revision ID: 0001_canopy_core_tables
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_canopy_core_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Create the pipeline and billing tables."""

    # 1. pipeline_stage
    op.create_table(
        'pipeline_stage',
        *_base_columns(),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('phase_group', sa.String(length=50), nullable=True),
        sa.Column('config', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_pipeline_stage_tenant_code'),
    )
    op.create_index('ix_pipeline_stage_tenant_id', 'pipeline_stage', ['tenant_id'])

    # 2. candidate_assignment
    op.create_table(
        'candidate_assignment',
        *_base_columns(),
        sa.Column('candidate_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('role_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stage_key', sa.String(length=50), nullable=False, server_default='applied'),
        sa.Column('offer_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('interview_scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('source', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_candidate_assignment_tenant_id', 'candidate_assignment', ['tenant_id'])
    op.create_index('ix_candidate_assignment_candidate_id', 'candidate_assignment', ['candidate_id'])
    op.create_index('ix_candidate_assignment_role_id', 'candidate_assignment', ['role_id'])

    # 3. credit_balance
    op.create_table(
        'credit_balance',
        *_base_columns(),
        sa.Column('credit_type', sa.String(length=50), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'credit_type', name='uq_credit_balance_tenant_type'),
        sa.CheckConstraint('balance >= 0', name='ck_credit_balance_non_negative'),
    )
    op.create_index('ix_credit_balance_tenant_id', 'credit_balance', ['tenant_id'])

    # 4. points_balance
    op.create_table(
        'points_balance',
        *_base_columns(),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', name='uq_points_balance_tenant'),
        sa.CheckConstraint('balance >= 0', name='ck_points_balance_non_negative'),
    )
    op.create_index('ix_points_balance_tenant_id', 'points_balance', ['tenant_id'])

    # 5. credit_grant
    op.create_table(
        'credit_grant',
        *_base_columns(),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('credit_type', sa.String(length=50), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('source', sa.String(length=50), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'idempotency_key', name='uq_credit_grant_idempotency'),
    )
    op.create_index('ix_credit_grant_tenant_id', 'credit_grant', ['tenant_id'])

    # 6. subscription
    op.create_table(
        'subscription',
        *_base_columns(),
        sa.Column('plan_tier', sa.String(length=50), nullable=False, server_default='FREE'),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='ACTIVE'),
        sa.Column('past_due_since', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', name='uq_subscription_tenant'),
    )
    op.create_index('ix_subscription_tenant_id', 'subscription', ['tenant_id'])


def downgrade() -> None:
    for table in (
        'subscription',
        'credit_grant',
        'points_balance',
        'credit_balance',
        'candidate_assignment',
        'pipeline_stage',
    ):
        op.drop_index(f'ix_{table}_tenant_id', table_name=table)
        op.drop_table(table)
