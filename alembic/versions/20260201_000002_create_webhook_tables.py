"""Create webhook_subscriptions and webhook_deliveries tables

Revision ID: 20260201_000002
Revises: 20260201_000001
Create Date: 2026-02-01

Outbound webhook configuration per owner, plus a log of every delivery
attempt.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260201_000002'
down_revision: Union[str, None] = '20260201_000001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the webhook tables."""
    op.create_table(
        'webhook_subscriptions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('owner', sa.String(128), nullable=False),
        sa.Column('url', sa.String(1000), nullable=False),
        sa.Column('secret', sa.String(128), nullable=False),
        sa.Column('events', sa.JSON(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_webhook_subscriptions_owner', 'webhook_subscriptions', ['owner'])

    op.create_table(
        'webhook_deliveries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('subscription_id', sa.String(36), nullable=False),
        sa.Column('event', sa.String(64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['subscription_id'],
            ['webhook_subscriptions.id'],
            name='fk_webhook_deliveries_subscription_id',
            ondelete='CASCADE'
        ),
    )
    op.create_index('ix_webhook_deliveries_subscription_id', 'webhook_deliveries', ['subscription_id'])


def downgrade() -> None:
    """Drop the webhook tables."""
    op.drop_index('ix_webhook_deliveries_subscription_id', table_name='webhook_deliveries')
    op.drop_table('webhook_deliveries')
    op.drop_index('ix_webhook_subscriptions_owner', table_name='webhook_subscriptions')
    op.drop_table('webhook_subscriptions')
