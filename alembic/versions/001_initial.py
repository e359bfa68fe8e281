"""Initial migration

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create restaurants table
    op.create_table(
        'restaurants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(63), unique=True),
        sa.Column('subdomain', sa.String(63), unique=True),
        sa.Column('novaref_id', sa.String(64), unique=True),
        sa.Column('description', sa.Text()),
        sa.Column('address', sa.Text()),
        sa.Column('phone', sa.String(20)),
        sa.Column('email', sa.String(255)),
        sa.Column('settings', postgresql.JSON(), default={}),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_restaurants_subdomain', 'restaurants', ['subdomain'])

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id')),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('role', sa.Enum('SUPER_ADMIN', 'MANAGER', 'STAFF', name='userrole'), default='STAFF'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('refresh_token', sa.String(500)),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create reservations table
    op.create_table(
        'reservations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('date_time', sa.DateTime(), nullable=False),
        sa.Column('slot_start_time', sa.String(8)),
        sa.Column('slot_end_time', sa.String(8)),
        sa.Column('status', sa.String(20), nullable=False, default='confirmed'),
        sa.Column('table_id', sa.String(64)),
        sa.Column('novacustomer_id', sa.String(64)),
        sa.Column('payment_amount', sa.Numeric(10, 2)),
        sa.Column('special_requests', sa.Text()),
        sa.Column('special_occasion_type', sa.String(50)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_reservations_tenant_id', 'reservations', ['tenant_id'])
    # Capacity counts scan by tenant, slot and day
    op.create_index(
        'ix_reservations_slot_day',
        'reservations',
        ['tenant_id', 'slot_start_time', 'slot_end_time', 'date_time'],
    )

    # Create time_slots table
    op.create_table(
        'time_slots',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('day_of_week', sa.Integer()),
        sa.Column('specific_date', sa.Date()),
        sa.Column('start_time', sa.String(8), nullable=False),
        sa.Column('end_time', sa.String(8), nullable=False),
        sa.Column('max_reservations', sa.Integer(), nullable=False, default=6),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('is_default', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_time_slots_tenant_id', 'time_slots', ['tenant_id'])

    # Create message_history table
    op.create_table(
        'message_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('reservation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('reservations.id'), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, default='sent'),
        sa.Column('sent_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_message_history_reservation_id', 'message_history', ['reservation_id'])

    # Create tables table
    op.create_table(
        'tables',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('seats', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), default='available'),
        sa.Column('location', sa.String(100)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_tables_tenant_id', 'tables', ['tenant_id'])

    # Create waitlist_entries table
    op.create_table(
        'waitlist_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('check_in_time', sa.DateTime(), default=sa.func.now()),
        sa.Column('quoted_wait_time', sa.String(50)),
        sa.Column('status', sa.String(20), default='waiting'),
        sa.Column('table_id', sa.String(64)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_waitlist_entries_tenant_id', 'waitlist_entries', ['tenant_id'])


def downgrade() -> None:
    op.drop_table('waitlist_entries')
    op.drop_table('tables')
    op.drop_table('message_history')
    op.drop_table('time_slots')
    op.drop_table('reservations')
    op.drop_table('users')
    op.drop_table('restaurants')
    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
