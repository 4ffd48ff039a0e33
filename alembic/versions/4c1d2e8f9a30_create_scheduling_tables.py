"""create scheduling tables

Revision ID: 4c1d2e8f9a30
Revises:
Create Date: 2026-10-18 10:12:41.503219

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4c1d2e8f9a30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # 1. Owners
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    # 2. Weekly availability
    op.create_table(
        'availability_schedules',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False, server_default='Working hours'),
        sa.Column('is_default', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index(
        'uq_availability_schedules_owner_default', 'availability_schedules', ['owner_id'],
        unique=True, postgresql_where=sa.text('is_default')
    )

    op.create_table(
        'availability_rules',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('schedule_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('availability_schedules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer, nullable=False),
        sa.Column('start_time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
        sa.UniqueConstraint('schedule_id', 'day_of_week', name='uq_availability_rules_schedule_day'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_availability_rules_day'),
        sa.CheckConstraint('start_time < end_time', name='ck_availability_rules_range')
    )

    # 3. Date overrides
    op.create_table(
        'date_overrides',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('is_available', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('start_time', sa.Time, nullable=True),
        sa.Column('end_time', sa.Time, nullable=True),
        sa.Column('label', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('owner_id', 'date', name='uq_date_overrides_owner_date'),
        sa.CheckConstraint(
            'is_available = false OR (start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)',
            name='ck_date_overrides_hours'
        )
    )

    # 4. Time blocks (civil datetimes in the owner's zone)
    op.create_table(
        'time_blocks',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=False), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=False), nullable=False),
        sa.Column('all_day', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('block_type', sa.String(20), nullable=False, server_default='custom'),
        sa.Column('recurrence', sa.String(20), nullable=False, server_default='none'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint('end_at >= start_at', name='ck_time_blocks_range')
    )
    op.create_index('ix_time_blocks_owner', 'time_blocks', ['owner_id'])

    # 5. Booking links and their questions
    op.create_table(
        'booking_links',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('duration', sa.Integer, nullable=False),
        sa.Column('buffer_before', sa.Integer, nullable=False, server_default='0'),
        sa.Column('buffer_after', sa.Integer, nullable=False, server_default='0'),
        sa.Column('availability_schedule_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('availability_schedules.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('booking_window_days', sa.Integer, nullable=False, server_default='30'),
        sa.Column('lead_time_minutes', sa.Integer, nullable=False, server_default='60'),
        sa.Column('max_bookings_per_day', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('owner_id', 'slug', name='uq_booking_links_owner_slug'),
        sa.CheckConstraint('duration > 0', name='ck_booking_links_duration'),
        sa.CheckConstraint('buffer_before >= 0 AND buffer_after >= 0', name='ck_booking_links_buffers')
    )

    op.create_table(
        'custom_questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('booking_link_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('booking_links.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(500), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='text'),
        sa.Column('required', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('options', sa.JSON, nullable=True),
        sa.Column('order_index', sa.Integer, nullable=False, server_default='0'),
        sa.Column('enabled', sa.Boolean, nullable=False, server_default=sa.true())
    )

    # 6. Bookings and the owner-day admission lock rows
    op.create_table(
        'bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('booking_link_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('booking_links.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('buffer_before', sa.Integer, nullable=False, server_default='0'),
        sa.Column('buffer_after', sa.Integer, nullable=False, server_default='0'),
        sa.Column('invitee_name', sa.String(200), nullable=False),
        sa.Column('invitee_email', sa.String(255), nullable=False),
        sa.Column('timezone', sa.String(50), nullable=False),
        sa.Column('custom_answers', sa.JSON, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('end_time > start_time', name='ck_bookings_range')
    )
    op.create_index('ix_bookings_owner_status_start', 'bookings', ['owner_id', 'status', 'start_time'])

    op.create_table(
        'booking_day_locks',
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day', sa.Date, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('owner_id', 'day', name='pk_booking_day_locks')
    )

    # 7. Meeting polls
    op.create_table(
        'meeting_polls',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('duration', sa.Integer, nullable=False),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('selected_option_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True)
    )

    op.create_table(
        'poll_options',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('poll_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('meeting_polls.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False)
    )

    op.create_table(
        'poll_votes',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('poll_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('meeting_polls.id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('poll_options.id', ondelete='CASCADE'), nullable=False),
        sa.Column('voter_name', sa.String(200), nullable=True),
        sa.Column('voter_email', sa.String(255), nullable=False),
        sa.Column('vote', sa.String(20), nullable=False, server_default='yes'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('option_id', 'voter_email', name='uq_poll_votes_option_voter')
    )
    op.create_index('ix_poll_votes_poll', 'poll_votes', ['poll_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_poll_votes_poll', table_name='poll_votes')
    op.drop_table('poll_votes')
    op.drop_table('poll_options')
    op.drop_table('meeting_polls')
    op.drop_table('booking_day_locks')
    op.drop_index('ix_bookings_owner_status_start', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('custom_questions')
    op.drop_table('booking_links')
    op.drop_index('ix_time_blocks_owner', table_name='time_blocks')
    op.drop_table('time_blocks')
    op.drop_table('date_overrides')
    op.drop_table('availability_rules')
    op.drop_index('uq_availability_schedules_owner_default', table_name='availability_schedules')
    op.drop_table('availability_schedules')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
