"""Initial back-office schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision=12, scale=2), server_default='0', nullable=False)


def upgrade() -> None:
    """Upgrade database schema."""
    # Create agents table
    op.create_table('agents',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        _money('balance'),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(name) > 0', name='ck_agent_name_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_agents_name'), 'agents', ['name'], unique=False)
    op.create_index(op.f('ix_agents_is_deleted'), 'agents', ['is_deleted'], unique=False)

    # Create issued_partners table
    op.create_table('issued_partners',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        _money('balance'),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(name) > 0', name='ck_issued_partner_name_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_issued_partners_name'), 'issued_partners', ['name'], unique=False)
    op.create_index(op.f('ix_issued_partners_is_deleted'), 'issued_partners', ['is_deleted'], unique=False)

    # Create passengers table
    op.create_table('passengers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=20), nullable=True),
        sa.Column('first_name', sa.String(length=128), nullable=True),
        sa.Column('surname', sa.String(length=128), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('passport_number', sa.String(length=64), nullable=True),
        sa.Column('contact_info', sa.Text(), nullable=True),
        sa.Column('phone_number', sa.String(length=64), nullable=True),
        sa.Column('passenger_type', sa.String(length=10), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(name) > 0', name='ck_passenger_name_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_passengers_name'), 'passengers', ['name'], unique=False)
    op.create_index(op.f('ix_passengers_passport_number'), 'passengers', ['passport_number'], unique=False)
    op.create_index(op.f('ix_passengers_is_deleted'), 'passengers', ['is_deleted'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('pnr', sa.String(length=32), nullable=False),
        sa.Column('airline', sa.String(length=64), nullable=True),
        sa.Column('origin', sa.String(length=64), nullable=True),
        sa.Column('destination', sa.String(length=64), nullable=True),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=True),
        sa.Column('return_date', sa.Date(), nullable=True),
        sa.Column('ticket_issued_date', sa.Date(), nullable=True),
        sa.Column('status_date', sa.Date(), nullable=False),
        sa.Column('refund_date', sa.Date(), nullable=True),
        sa.Column('ticket_status', sa.String(length=20), nullable=False),
        sa.Column('booking_source', sa.String(length=20), nullable=False),
        sa.Column('platform', sa.String(length=64), nullable=True),
        sa.Column('payment_method', sa.String(length=64), nullable=True),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        _money('advance_payment'),
        sa.Column('agent_id', sa.Uuid(), nullable=True),
        sa.Column('issued_partner_id', sa.Uuid(), nullable=True),
        sa.Column('parent_booking_id', sa.Uuid(), nullable=True),
        _money('total_cost'),
        _money('total_sale'),
        _money('refund_partner_total'),
        _money('refund_customer_total'),
        _money('profit'),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(pnr) > 0', name='ck_booking_pnr_not_empty'),
        sa.CheckConstraint('total_cost >= 0', name='ck_booking_total_cost_non_negative'),
        sa.CheckConstraint('total_sale >= 0', name='ck_booking_total_sale_non_negative'),
        sa.CheckConstraint('advance_payment >= 0', name='ck_booking_advance_payment_non_negative'),
        sa.ForeignKeyConstraint(['agent_id'], ['agents.id']),
        sa.ForeignKeyConstraint(['issued_partner_id'], ['issued_partners.id']),
        sa.ForeignKeyConstraint(['parent_booking_id'], ['bookings.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_pnr'), 'bookings', ['pnr'], unique=False)
    op.create_index(op.f('ix_bookings_airline'), 'bookings', ['airline'], unique=False)
    op.create_index(op.f('ix_bookings_status_date'), 'bookings', ['status_date'], unique=False)
    op.create_index(op.f('ix_bookings_ticket_status'), 'bookings', ['ticket_status'], unique=False)
    op.create_index(op.f('ix_bookings_platform'), 'bookings', ['platform'], unique=False)
    op.create_index(op.f('ix_bookings_agent_id'), 'bookings', ['agent_id'], unique=False)
    op.create_index(op.f('ix_bookings_issued_partner_id'), 'bookings', ['issued_partner_id'], unique=False)
    op.create_index(op.f('ix_bookings_parent_booking_id'), 'bookings', ['parent_booking_id'], unique=False)
    op.create_index(op.f('ix_bookings_is_deleted'), 'bookings', ['is_deleted'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)

    # Create booking_passengers table
    op.create_table('booking_passengers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('passenger_id', sa.Uuid(), nullable=True),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('title', sa.String(length=20), nullable=True),
        sa.Column('first_name', sa.String(length=128), nullable=True),
        sa.Column('surname', sa.String(length=128), nullable=True),
        sa.Column('pax_type', sa.String(length=10), nullable=False),
        sa.Column('ticket_number', sa.String(length=32), nullable=True),
        sa.Column('ticket_status', sa.String(length=20), nullable=True),
        _money('cost_price'),
        _money('sale_price'),
        _money('refund_amount_partner'),
        _money('refund_amount_customer'),
        sa.CheckConstraint('cost_price >= 0', name='ck_booking_passenger_cost_non_negative'),
        sa.CheckConstraint('sale_price >= 0', name='ck_booking_passenger_sale_non_negative'),
        sa.CheckConstraint('refund_amount_partner >= 0', name='ck_booking_passenger_refund_partner_non_negative'),
        sa.CheckConstraint('refund_amount_customer >= 0', name='ck_booking_passenger_refund_customer_non_negative'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['passenger_id'], ['passengers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_passengers_booking_id'), 'booking_passengers', ['booking_id'], unique=False)
    op.create_index(op.f('ix_booking_passengers_passenger_id'), 'booking_passengers', ['passenger_id'], unique=False)
    op.create_index(op.f('ix_booking_passengers_ticket_number'), 'booking_passengers', ['ticket_number'], unique=False)

    # Create booking_history table
    op.create_table('booking_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('previous_status', sa.String(length=20), nullable=True),
        sa.Column('new_status', sa.String(length=20), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_history_booking_id'), 'booking_history', ['booking_id'], unique=False)
    op.create_index(op.f('ix_booking_history_created_at'), 'booking_history', ['created_at'], unique=False)

    # Create credit_transactions table
    op.create_table('credit_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('agent_id', sa.Uuid(), nullable=True),
        sa.Column('issued_partner_id', sa.Uuid(), nullable=True),
        sa.Column('booking_id', sa.Uuid(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('transaction_type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('transaction_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            '(agent_id IS NULL) <> (issued_partner_id IS NULL)',
            name='ck_credit_transaction_single_owner'
        ),
        sa.ForeignKeyConstraint(['agent_id'], ['agents.id']),
        sa.ForeignKeyConstraint(['issued_partner_id'], ['issued_partners.id']),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_credit_transactions_agent_id'), 'credit_transactions', ['agent_id'], unique=False)
    op.create_index(op.f('ix_credit_transactions_issued_partner_id'), 'credit_transactions', ['issued_partner_id'], unique=False)
    op.create_index(op.f('ix_credit_transactions_booking_id'), 'credit_transactions', ['booking_id'], unique=False)
    op.create_index(op.f('ix_credit_transactions_transaction_type'), 'credit_transactions', ['transaction_type'], unique=False)
    op.create_index(op.f('ix_credit_transactions_transaction_date'), 'credit_transactions', ['transaction_date'], unique=False)

    # Create idempotency_records table
    op.create_table('idempotency_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('method', sa.String(length=100), nullable=False),
        sa.Column('request_body_hash', sa.String(length=64), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=False),
        sa.Column('response_body', sa.Text(), nullable=False),
        sa.Column('response_headers', sa.Text(), nullable=True),
        sa.Column('resource_id', sa.String(length=36), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(idempotency_key) > 0', name='ck_idempotency_key_not_empty'),
        sa.CheckConstraint("method IN ('booking/create', 'booking/reissue', 'ledger/topup')", name='ck_idempotency_method_valid'),
        sa.CheckConstraint('length(request_body_hash) = 64', name='ck_idempotency_hash_length'),
        sa.CheckConstraint('response_status_code BETWEEN 100 AND 599', name='ck_idempotency_status_code_valid'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key', 'method', name='uq_idempotency_key_method')
    )
    op.create_index(op.f('ix_idempotency_records_expires_at'), 'idempotency_records', ['expires_at'], unique=False)
    op.create_index(op.f('ix_idempotency_records_idempotency_key'), 'idempotency_records', ['idempotency_key'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('idempotency_records')
    op.drop_table('credit_transactions')
    op.drop_table('booking_history')
    op.drop_table('booking_passengers')
    op.drop_table('bookings')
    op.drop_table('passengers')
    op.drop_table('issued_partners')
    op.drop_table('agents')
