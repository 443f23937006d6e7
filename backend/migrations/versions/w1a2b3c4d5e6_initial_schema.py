"""initial schema

Revision ID: w1a2b3c4d5e6
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete schema from scratch:
- waste_batches / waste_auctions / waste_bids: material lots and their auctions
- staff / vehicles / customers: resources and master data
- appointments / appointment_history: pickup bookings and their trail
- service_items: billable pricing lines (active/retired)

Every mutable row with a lifecycle carries version_id for optimistic locking.
Money columns are integer cents.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'w1a2b3c4d5e6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # waste_batches
    # ============================================================================
    op.create_table(
        'waste_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_number', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('estimated_weight', sa.Float(), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('waste_type', sa.String(length=64), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='draft'),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_waste_batches_batch_number', 'waste_batches', ['batch_number'], unique=True)
    op.create_index('ix_waste_batches_status', 'waste_batches', ['status'])
    op.create_index('ix_waste_batches_created_by', 'waste_batches', ['created_by'])
    op.create_index('ix_waste_batches_status_created', 'waste_batches', ['status', 'created_at'])

    # ============================================================================
    # waste_auctions: one per batch
    # ============================================================================
    op.create_table(
        'waste_auctions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('base_price_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('reserve_price_cents', sa.BigInteger(), nullable=True),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('winner_id', sa.Integer(), nullable=True),
        sa.Column('winning_bid_id', sa.Integer(), nullable=True),
        sa.Column('winning_bid_cents', sa.BigInteger(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['batch_id'], ['waste_batches.id']),
        sa.UniqueConstraint('batch_id', name='uq_waste_auctions_batch'),
        sa.CheckConstraint('end_time > start_time', name='ck_waste_auctions_window'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_waste_auctions_end_time', 'waste_auctions', ['end_time'])
    op.create_index('ix_waste_auctions_created_by', 'waste_auctions', ['created_by'])

    # ============================================================================
    # waste_bids
    # ============================================================================
    op.create_table(
        'waste_bids',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('auction_id', sa.Integer(), nullable=False),
        sa.Column('bidder_id', sa.Integer(), nullable=False),
        sa.Column('bid_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('bid_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['auction_id'], ['waste_auctions.id']),
        sqlite_autoincrement=True
    )
    op.create_index('ix_waste_bids_auction_id', 'waste_bids', ['auction_id'])
    op.create_index('ix_waste_bids_auction_status', 'waste_bids', ['auction_id', 'status'])
    op.create_index('ix_waste_bids_bidder_time', 'waste_bids', ['bidder_id', 'bid_time'])

    # ============================================================================
    # staff / vehicles / customers
    # ============================================================================
    op.create_table(
        'staff',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('id_card', sa.String(length=32), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('position', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_staff_id_card', 'staff', ['id_card'], unique=True)

    op.create_table(
        'vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('plate_number', sa.String(length=32), nullable=False),
        sa.Column('model', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vehicles_plate_number', 'vehicles', ['plate_number'], unique=True)

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('company', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # appointments / appointment_history
    # ============================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('appointment_number', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('contact_phone', sa.String(length=32), nullable=True),
        sa.Column('contact_address', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('document_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('appointment_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('service_type', sa.String(length=64), nullable=True),
        sa.Column('document_category', sa.String(length=64), nullable=True),
        sa.Column('staff_id', sa.Integer(), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('estimated_completion_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processing_notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('last_updated_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id']),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id']),
        sqlite_autoincrement=True
    )
    op.create_index('ix_appointments_appointment_number', 'appointments', ['appointment_number'], unique=True)
    op.create_index('ix_appointments_appointment_time', 'appointments', ['appointment_time'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])
    op.create_index('ix_appointments_staff_id', 'appointments', ['staff_id'])
    op.create_index('ix_appointments_vehicle_id', 'appointments', ['vehicle_id'])
    op.create_index('ix_appointments_status_time', 'appointments', ['status', 'appointment_time'])

    op.create_table(
        'appointment_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('appointment_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('staff_id', sa.Integer(), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='CASCADE'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_appointment_history_appointment_time', 'appointment_history',
                    ['appointment_id', 'updated_at'])

    # ============================================================================
    # service_items
    # ============================================================================
    op.create_table(
        'service_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('price_cents', sa.BigInteger(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_service_items_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_service_items_status', 'service_items', ['status'])


def downgrade():
    op.drop_table('service_items')
    op.drop_table('appointment_history')
    op.drop_table('appointments')
    op.drop_table('customers')
    op.drop_table('vehicles')
    op.drop_table('staff')
    op.drop_table('waste_bids')
    op.drop_table('waste_auctions')
    op.drop_table('waste_batches')
