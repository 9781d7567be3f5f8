"""add_usage_invoice_charge_marker

Revision ID: 9b2f0c6e1a44
Revises: 4c1e9a7d2b10
Create Date: 2026-10-19 15:40:27.208114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9b2f0c6e1a44'
down_revision: Union[str, Sequence[str], None] = '4c1e9a7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column('usage_invoices', sa.Column('charge_reference', sa.String(length=64), nullable=True))
    op.add_column('usage_invoices', sa.Column('charge_started_at', sa.DateTime(timezone=True), nullable=True))
    op.create_index(op.f('ix_usage_invoices_charge_reference'), 'usage_invoices', ['charge_reference'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_usage_invoices_charge_reference'), table_name='usage_invoices')
    op.drop_column('usage_invoices', 'charge_started_at')
    op.drop_column('usage_invoices', 'charge_reference')
