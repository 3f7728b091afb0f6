"""Create payment_links and transactions tables

Revision ID: 20260201_000001
Revises: None
Create Date: 2026-02-01

Payment links carry the settlement status machine; transactions are the
append-only ledger of deposits and outbound transfers per link.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260201_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LINK_KINDS = ('direct', 'escrow', 'split')
LINK_STATUSES = (
    'created', 'awaiting_deposit', 'processing', 'deposit_received',
    'condition_pending', 'condition_met', 'releasing', 'completed',
    'failed', 'refunded',
)
TRANSACTION_KINDS = ('deposit', 'auto_release', 'escrow_release', 'split_distribution', 'refund')
TRANSACTION_STATUSES = ('pending', 'completed', 'failed')


def upgrade() -> None:
    """Create the payment_links and transactions tables."""
    op.create_table(
        'payment_links',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('kind', sa.Enum(*LINK_KINDS, name='link_kind', create_constraint=True), nullable=False),
        sa.Column('owner', sa.String(128), nullable=False),
        sa.Column('label', sa.String(255), nullable=True),
        sa.Column('settle_address', sa.String(128), nullable=True),
        sa.Column('deposit_coin', sa.String(32), nullable=False),
        sa.Column('deposit_network', sa.String(32), nullable=False),
        sa.Column('expected_amount', sa.Numeric(precision=24, scale=8), nullable=True),
        sa.Column('order_ref', sa.String(64), nullable=False),
        sa.Column('deposit_address', sa.String(256), nullable=False),
        sa.Column('deposit_min', sa.Numeric(precision=24, scale=8), nullable=True),
        sa.Column('deposit_max', sa.Numeric(precision=24, scale=8), nullable=True),
        sa.Column('custody_address', sa.String(128), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*LINK_STATUSES, name='link_status', create_constraint=True),
            nullable=False,
            server_default='awaiting_deposit'
        ),
        sa.Column('received_amount', sa.Numeric(precision=24, scale=8), nullable=True),
        sa.Column('settled_amount', sa.Numeric(precision=24, scale=8), nullable=True),
        sa.Column('deposit_hash', sa.String(128), nullable=True),
        sa.Column('settle_hash', sa.String(128), nullable=True),
        sa.Column('escrow_condition', sa.JSON(), nullable=True),
        sa.Column('split_table', sa.JSON(), nullable=True),
        sa.Column('condition_verified_at', sa.DateTime(), nullable=True),
        sa.Column('condition_approved_by', sa.String(128), nullable=True),
        sa.Column('release_reason', sa.String(500), nullable=True),
        sa.Column('release_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_release_error', sa.String(500), nullable=True),
        sa.Column('needs_review', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('release_claimed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_ref', name='uq_payment_links_order_ref'),
    )
    op.create_index('ix_payment_links_owner', 'payment_links', ['owner'])
    op.create_index('ix_payment_links_order_ref', 'payment_links', ['order_ref'])
    op.create_index('ix_payment_links_status', 'payment_links', ['status'])
    op.create_index('ix_payment_links_created_at', 'payment_links', ['created_at'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('link_id', sa.String(36), nullable=False),
        sa.Column(
            'kind',
            sa.Enum(*TRANSACTION_KINDS, name='transaction_kind', create_constraint=True),
            nullable=False
        ),
        sa.Column('amount', sa.Numeric(precision=24, scale=8), nullable=False),
        sa.Column('recipient', sa.String(128), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*TRANSACTION_STATUSES, name='transaction_status', create_constraint=True),
            nullable=False,
            server_default='pending'
        ),
        sa.Column('external_ref', sa.String(128), nullable=True),
        sa.Column('note', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['link_id'],
            ['payment_links.id'],
            name='fk_transactions_link_id',
            ondelete='RESTRICT'
        ),
    )
    op.create_index('ix_transactions_link_id', 'transactions', ['link_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])


def downgrade() -> None:
    """Drop the payment_links and transactions tables."""
    op.drop_index('ix_transactions_status', table_name='transactions')
    op.drop_index('ix_transactions_link_id', table_name='transactions')
    op.drop_table('transactions')

    op.drop_index('ix_payment_links_created_at', table_name='payment_links')
    op.drop_index('ix_payment_links_status', table_name='payment_links')
    op.drop_index('ix_payment_links_order_ref', table_name='payment_links')
    op.drop_index('ix_payment_links_owner', table_name='payment_links')
    op.drop_table('payment_links')

    # Drop the enum types (no-op outside PostgreSQL)
    if op.get_bind().dialect.name == 'postgresql':
        for name in ('transaction_status', 'transaction_kind', 'link_status', 'link_kind'):
            op.execute(f"DROP TYPE IF EXISTS {name}")
