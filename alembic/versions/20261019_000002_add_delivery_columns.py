"""Add delivery and fulfillment columns to orders

Revision ID: 20261019_000002
Revises: 20261019_000001
Create Date: 2026-10-19

All columns are nullable (or defaulted) so orders created before this
revision keep loading; missing values read as empty.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_000002"
down_revision: Union[str, None] = "20261019_000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NEW_COLUMNS = (
    "invoice_url",
    "amount_usd",
    "payment_confirmed",
    "scheduled_for",
    "txid",
    "delivery_proof_image",
    "fulfillment_id",
    "delivery_node",
    "execution_time",
    "updated_at",
)


def upgrade() -> None:
    with op.batch_alter_table("orders") as batch:
        batch.add_column(sa.Column("invoice_url", sa.String(1024), nullable=True))
        batch.add_column(sa.Column("amount_usd", sa.Numeric(precision=12, scale=2), nullable=True))
        batch.add_column(sa.Column("payment_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()))
        batch.add_column(sa.Column("scheduled_for", sa.DateTime(), nullable=True))
        batch.add_column(sa.Column("txid", sa.String(255), nullable=True))
        batch.add_column(sa.Column("delivery_proof_image", sa.String(1024), nullable=True))
        batch.add_column(sa.Column("fulfillment_id", sa.String(64), nullable=True))
        batch.add_column(sa.Column("delivery_node", sa.String(64), nullable=True))
        batch.add_column(sa.Column("execution_time", sa.DateTime(), nullable=True))
        batch.add_column(sa.Column("updated_at", sa.DateTime(), nullable=True))
        batch.create_unique_constraint("uq_orders_fulfillment_id", ["fulfillment_id"])


def downgrade() -> None:
    with op.batch_alter_table("orders") as batch:
        batch.drop_constraint("uq_orders_fulfillment_id", type_="unique")
        for name in reversed(NEW_COLUMNS):
            batch.drop_column(name)
