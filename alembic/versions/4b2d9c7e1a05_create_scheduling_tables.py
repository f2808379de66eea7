"""create scheduling tables

Revision ID: 4b2d9c7e1a05
Revises:
Create Date: 2026-10-18 10:40:12.418305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4b2d9c7e1a05'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPOINTMENT_STATUS = sa.Enum(
    'scheduled', 'confirmed', 'completed', 'cancelled', 'no_show', name='appointment_status'
)
RECURRENCE_PATTERN = sa.Enum('daily', 'weekly', 'monthly', 'custom', name='recurrence_pattern')


def upgrade() -> None:
    """Upgrade schema."""

    # 1. Directory records referenced by appointments
    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_clients_account_id', 'clients', ['account_id'])

    op.create_table(
        'professionals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('user_account_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('working_hours', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(20), server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_professionals_account_id', 'professionals', ['account_id'])

    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_services_account_id', 'services', ['account_id'])
    op.create_index('ix_services_is_active', 'services', ['is_active'])

    # 2. Breaks / time off per professional
    op.create_table(
        'schedule_settings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('professional_id', sa.Uuid(), sa.ForeignKey('professionals.id'), nullable=False, unique=True),
        sa.Column('breaks', sa.JSON(), nullable=True),
        sa.Column('time_off_dates', sa.JSON(), nullable=True),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )

    # 3. Appointments (series children point at their root)
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('professional_id', sa.Uuid(), sa.ForeignKey('professionals.id'), nullable=False),
        sa.Column('service_id', sa.Uuid(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('color', sa.String(30), server_default='default'),
        sa.Column('status', APPOINTMENT_STATUS, nullable=False, server_default='scheduled'),
        sa.Column('send_reminder', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_override', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurrence_pattern', RECURRENCE_PATTERN, nullable=True),
        sa.Column('recurrence_interval', sa.Integer(), nullable=True),
        sa.Column('recurrence_end_date', sa.Date(), nullable=True),
        sa.Column('recurrence_occurrences', sa.Integer(), nullable=True),
        sa.Column('parent_appointment_id', sa.Uuid(), sa.ForeignKey('appointments.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )

    # Indexes for appointments
    op.create_index('ix_appointments_account_id', 'appointments', ['account_id'])
    op.create_index('ix_appointments_professional_id', 'appointments', ['professional_id'])
    op.create_index('ix_appointments_start_at', 'appointments', ['start_at'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])
    op.create_index('ix_appointments_parent_appointment_id', 'appointments', ['parent_appointment_id'])
    # Day-scoped availability reads
    op.create_index('idx_appointments_professional_start', 'appointments', ['professional_id', 'start_at'])

    # 4. In-app notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), nullable=True),
        sa.Column('recipient_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('related_model', sa.String(50), nullable=True),
        sa.Column('related_id', sa.Uuid(), nullable=True),
        sa.Column('is_read', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_notifications_account_id', 'notifications', ['account_id'])
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('notifications')
    op.drop_index('idx_appointments_professional_start', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('schedule_settings')
    op.drop_table('services')
    op.drop_table('professionals')
    op.drop_table('clients')

    RECURRENCE_PATTERN.drop(op.get_bind(), checkfirst=True)
    APPOINTMENT_STATUS.drop(op.get_bind(), checkfirst=True)
