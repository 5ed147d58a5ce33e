"""Create orders table

Revision ID: 20261019_000001
Revises: None
Create Date: 2026-10-19

This migration creates the orders table with the fields captured at checkout.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the orders table."""
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('payment_reference', sa.String(128), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ILS'),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='fulfilling'),
        sa.Column('audit_log', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', name='uq_orders_order_id'),
    )

    # Create indexes for common queries
    op.create_index('ix_orders_order_id', 'orders', ['order_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])


def downgrade() -> None:
    """Drop the orders table."""
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_order_id', table_name='orders')
    op.drop_table('orders')
