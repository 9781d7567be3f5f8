"""create_billing_tables

Revision ID: 4c1e9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:04.511203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1e9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Client billing records
    op.create_table(
        'billing_clients',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('voice_agent_id', sa.String(length=255), nullable=True),
        sa.Column('gateway_customer_id', sa.String(length=255), nullable=True),
        sa.Column('gateway_subscription_id', sa.String(length=255), nullable=True),
        sa.Column('plan_key', sa.String(length=50), nullable=False, server_default='none'),
        sa.Column('plan_rank', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('minute_allowance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_per_minute', sa.Numeric(10, 4), nullable=False, server_default='0'),
        sa.Column('agent_status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('paused_reason', sa.String(length=50), nullable=True),
        sa.Column('usage_invoice_due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('usage_invoice_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_usage_billed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('renewal_status', sa.String(length=20), nullable=True),
        sa.Column('next_billing_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_billing_clients_voice_agent_id'), 'billing_clients', ['voice_agent_id'], unique=True)
    op.create_index(op.f('ix_billing_clients_gateway_customer_id'), 'billing_clients', ['gateway_customer_id'], unique=False)
    op.create_index(op.f('ix_billing_clients_gateway_subscription_id'), 'billing_clients', ['gateway_subscription_id'], unique=False)
    op.create_index(op.f('ix_billing_clients_agent_status'), 'billing_clients', ['agent_status'], unique=False)
    op.create_index(op.f('ix_billing_clients_usage_invoice_due_at'), 'billing_clients', ['usage_invoice_due_at'], unique=False)
    op.create_index('idx_billing_clients_status_due', 'billing_clients', ['agent_status', 'usage_invoice_due_at'], unique=False)

    # Usage ledger, one row per call
    op.create_table(
        'usage_entries',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('external_call_id', sa.String(length=255), nullable=False),
        sa.Column('voice_agent_id', sa.String(length=255), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('duration_minutes_exact', sa.Float(), nullable=False, server_default='0'),
        sa.Column('minutes_rounded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('outcome_success', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('source', sa.String(length=20), nullable=False, server_default='calls'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['billing_clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_call_id')
    )
    op.create_index(op.f('ix_usage_entries_id'), 'usage_entries', ['id'], unique=False)
    op.create_index(op.f('ix_usage_entries_client_id'), 'usage_entries', ['client_id'], unique=False)
    op.create_index('idx_usage_entries_client_created', 'usage_entries', ['client_id', 'created_at'], unique=False)

    # Payments, keyed by gateway event
    op.create_table(
        'payments',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('external_event_id', sa.String(length=255), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('plan_key', sa.String(length=50), nullable=False),
        sa.Column('payment_kind', sa.String(length=20), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('gateway_invoice_id', sa.String(length=255), nullable=True),
        sa.Column('gateway_order_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['billing_clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_event_id')
    )
    op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
    op.create_index(op.f('ix_payments_client_id'), 'payments', ['client_id'], unique=False)
    op.create_index('idx_payments_client_paid', 'payments', ['client_id', 'paid_at'], unique=False)

    # Usage invoices, keyed by billing window
    op.create_table(
        'usage_invoices',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('window_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('window_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('minutes_exact', sa.Float(), nullable=False),
        sa.Column('price_per_minute', sa.Numeric(10, 4), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open'),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('gateway_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['billing_clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id')
    )
    op.create_index(op.f('ix_usage_invoices_id'), 'usage_invoices', ['id'], unique=False)
    op.create_index(op.f('ix_usage_invoices_client_id'), 'usage_invoices', ['client_id'], unique=False)
    op.create_index('idx_usage_invoices_client_status', 'usage_invoices', ['client_id', 'status'], unique=False)
    op.create_index('idx_usage_invoices_client_window_end', 'usage_invoices', ['client_id', 'window_end'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_usage_invoices_client_window_end', table_name='usage_invoices')
    op.drop_index('idx_usage_invoices_client_status', table_name='usage_invoices')
    op.drop_index(op.f('ix_usage_invoices_client_id'), table_name='usage_invoices')
    op.drop_index(op.f('ix_usage_invoices_id'), table_name='usage_invoices')
    op.drop_table('usage_invoices')

    op.drop_index('idx_payments_client_paid', table_name='payments')
    op.drop_index(op.f('ix_payments_client_id'), table_name='payments')
    op.drop_index(op.f('ix_payments_id'), table_name='payments')
    op.drop_table('payments')

    op.drop_index('idx_usage_entries_client_created', table_name='usage_entries')
    op.drop_index(op.f('ix_usage_entries_client_id'), table_name='usage_entries')
    op.drop_index(op.f('ix_usage_entries_id'), table_name='usage_entries')
    op.drop_table('usage_entries')

    op.drop_index('idx_billing_clients_status_due', table_name='billing_clients')
    op.drop_index(op.f('ix_billing_clients_usage_invoice_due_at'), table_name='billing_clients')
    op.drop_index(op.f('ix_billing_clients_agent_status'), table_name='billing_clients')
    op.drop_index(op.f('ix_billing_clients_gateway_subscription_id'), table_name='billing_clients')
    op.drop_index(op.f('ix_billing_clients_gateway_customer_id'), table_name='billing_clients')
    op.drop_index(op.f('ix_billing_clients_voice_agent_id'), table_name='billing_clients')
    op.drop_table('billing_clients')
