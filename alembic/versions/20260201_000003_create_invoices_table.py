"""Create invoices table

Revision ID: 20260201_000003
Revises: 20260201_000002
Create Date: 2026-02-01

This migration creates the invoices table for owner-issued invoices.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260201_000003'
down_revision: Union[str, None] = '20260201_000002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the invoices table."""
    op.create_table(
        'invoices',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('invoice_number', sa.String(40), nullable=False),
        sa.Column('owner', sa.String(128), nullable=False),
        sa.Column('link_id', sa.String(36), nullable=True),
        sa.Column('client_name', sa.String(255), nullable=False, server_default='Customer'),
        sa.Column('client_email', sa.String(255), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('tax', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False, server_default='USD'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('pending', 'paid', 'overdue', 'cancelled', name='invoice_status', create_constraint=True),
            nullable=False,
            server_default='pending'
        ),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_invoice_number'),
        sa.ForeignKeyConstraint(
            ['link_id'],
            ['payment_links.id'],
            name='fk_invoices_link_id',
            ondelete='SET NULL'
        ),
    )

    # Create indexes for common queries
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'])
    op.create_index('ix_invoices_owner', 'invoices', ['owner'])
    op.create_index('ix_invoices_link_id', 'invoices', ['link_id'])
    op.create_index('ix_invoices_due_date', 'invoices', ['due_date'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])


def downgrade() -> None:
    """Drop the invoices table."""
    op.drop_index('ix_invoices_status', table_name='invoices')
    op.drop_index('ix_invoices_due_date', table_name='invoices')
    op.drop_index('ix_invoices_link_id', table_name='invoices')
    op.drop_index('ix_invoices_owner', table_name='invoices')
    op.drop_index('ix_invoices_invoice_number', table_name='invoices')
    op.drop_table('invoices')

    if op.get_bind().dialect.name == 'postgresql':
        op.execute("DROP TYPE IF EXISTS invoice_status")
