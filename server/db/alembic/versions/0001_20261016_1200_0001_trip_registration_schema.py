"""Trip registration schema

Revision ID: 0001
Revises:
Create Date: 2026-10-16 12:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create members table
    op.create_table('members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_members_organization_id'), 'members', ['organization_id'], unique=False)

    # Create trips table
    op.create_table('trips',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trip_type', sa.String(length=20), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('registration_deadline', sa.Date(), nullable=True),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('deposit_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('available_spots', sa.Integer(), nullable=False),
        sa.Column('waitlist_capacity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('capacity >= 0', name='ck_trip_capacity_non_negative'),
        sa.CheckConstraint('available_spots >= 0', name='ck_trip_available_spots_non_negative'),
        sa.CheckConstraint('available_spots <= capacity', name='ck_trip_available_spots_lte_capacity'),
        sa.CheckConstraint('waitlist_capacity >= 0', name='ck_trip_waitlist_capacity_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_trip_price_non_negative'),
        sa.CheckConstraint('deposit_amount >= 0', name='ck_trip_deposit_non_negative'),
        sa.CheckConstraint('deposit_amount <= price', name='ck_trip_deposit_lte_price'),
        sa.CheckConstraint('start_date <= end_date', name='ck_trip_dates_ordered'),
        sa.CheckConstraint('length(currency) = 3', name='ck_trip_currency_length'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trips_organization_id'), 'trips', ['organization_id'], unique=False)
    op.create_index(op.f('ix_trips_status'), 'trips', ['status'], unique=False)
    op.create_index('ix_trips_organization_start_date', 'trips', ['organization_id', 'start_date'], unique=False)

    # Create registrations table
    op.create_table('registrations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('trip_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('registration_number', sa.String(length=50), nullable=False),
        sa.Column('registration_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('deposit_paid', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('balance_due', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('room_type', sa.String(length=20), nullable=True),
        sa.Column('passport_number', sa.String(length=50), nullable=True),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('visa_status', sa.String(length=20), nullable=False),
        sa.Column('visa_number', sa.String(length=100), nullable=True),
        sa.Column('visa_issue_date', sa.Date(), nullable=True),
        sa.Column('visa_expiry_date', sa.Date(), nullable=True),
        sa.Column('visa_notes', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('refund_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('refund_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('total_amount >= 0', name='ck_registration_total_non_negative'),
        sa.CheckConstraint('amount_paid >= 0', name='ck_registration_amount_paid_non_negative'),
        sa.CheckConstraint('deposit_paid >= 0', name='ck_registration_deposit_paid_non_negative'),
        sa.CheckConstraint('balance_due >= 0', name='ck_registration_balance_non_negative'),
        sa.CheckConstraint('refund_amount IS NULL OR refund_amount >= 0', name='ck_registration_refund_non_negative'),
        sa.CheckConstraint('length(registration_number) > 0', name='ck_registration_number_not_empty'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trip_id', 'registration_number', name='uq_registration_trip_number')
    )
    op.create_index(op.f('ix_registrations_organization_id'), 'registrations', ['organization_id'], unique=False)
    op.create_index(op.f('ix_registrations_trip_id'), 'registrations', ['trip_id'], unique=False)
    op.create_index(op.f('ix_registrations_member_id'), 'registrations', ['member_id'], unique=False)
    op.create_index(op.f('ix_registrations_registration_number'), 'registrations', ['registration_number'], unique=False)
    op.create_index(op.f('ix_registrations_status'), 'registrations', ['status'], unique=False)
    op.create_index(op.f('ix_registrations_payment_status'), 'registrations', ['payment_status'], unique=False)

    # Create registration payment ledger
    op.create_table('registration_payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('registration_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('method', sa.String(length=50), nullable=False),
        sa.Column('reference_number', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('amount_paid_before', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount_paid_after', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_status_after', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_registration_payment_amount_positive'),
        sa.CheckConstraint('length(method) > 0', name='ck_registration_payment_method_not_empty'),
        sa.ForeignKeyConstraint(['registration_id'], ['registrations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_registration_payments_registration_id'), 'registration_payments', ['registration_id'], unique=False)
    op.create_index(op.f('ix_registration_payments_created_at'), 'registration_payments', ['created_at'], unique=False)

    # Create capacity adjustment audit table
    op.create_table('capacity_adjustments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('trip_id', sa.Uuid(), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('capacity_before', sa.Integer(), nullable=False),
        sa.Column('capacity_after', sa.Integer(), nullable=False),
        sa.Column('available_before', sa.Integer(), nullable=False),
        sa.Column('available_after', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('delta != 0', name='ck_capacity_adjustment_delta_nonzero'),
        sa.CheckConstraint('length(reason) > 0', name='ck_capacity_adjustment_reason_not_empty'),
        sa.CheckConstraint('length(actor) > 0', name='ck_capacity_adjustment_actor_not_empty'),
        sa.CheckConstraint('available_after >= 0', name='ck_capacity_adjustment_available_after_non_negative'),
        sa.CheckConstraint('available_after <= capacity_after', name='ck_capacity_adjustment_available_lte_capacity'),
        sa.CheckConstraint('capacity_after = capacity_before + delta', name='ck_capacity_adjustment_delta_consistency'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_capacity_adjustments_trip_id'), 'capacity_adjustments', ['trip_id'], unique=False)
    op.create_index(op.f('ix_capacity_adjustments_created_at'), 'capacity_adjustments', ['created_at'], unique=False)

    # Create idempotency_records table
    op.create_table('idempotency_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('operation', sa.String(length=100), nullable=False),
        sa.Column('request_hash', sa.String(length=64), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=False),
        sa.Column('response_body', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('length(idempotency_key) > 0', name='ck_idempotency_key_not_empty'),
        sa.CheckConstraint('length(request_hash) = 64', name='ck_idempotency_hash_length'),
        sa.CheckConstraint(
            'response_status_code >= 100 AND response_status_code <= 599',
            name='ck_idempotency_status_code_valid'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key', 'operation', name='uq_idempotency_key_operation')
    )
    op.create_index(op.f('ix_idempotency_records_idempotency_key'), 'idempotency_records', ['idempotency_key'], unique=False)
    op.create_index(op.f('ix_idempotency_records_expires_at'), 'idempotency_records', ['expires_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('idempotency_records')
    op.drop_table('capacity_adjustments')
    op.drop_table('registration_payments')
    op.drop_table('registrations')
    op.drop_table('trips')
    op.drop_table('members')
