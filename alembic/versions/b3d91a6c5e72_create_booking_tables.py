"""create booking tables

Revision ID: b3d91a6c5e72
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'b3d91a6c5e72'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


slot_status = sa.Enum('SCHEDULED', 'CANCELLED', 'COMPLETED', name='slot_status')
enrollment_status = sa.Enum('CONFIRMED', 'WAITLIST', 'CANCELLED', 'COMPLETED', name='enrollment_status')


def upgrade() -> None:
    # Courses with their weekly schedule
    op.create_table('courses',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('instrument', sa.String(length=50), nullable=False, server_default='OTHER'),
    sa.Column('price_per_slot', sa.Float(), nullable=True),
    sa.Column('currency', sa.String(length=3), nullable=False, server_default='INR'),
    sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
    sa.Column('max_students_per_slot', sa.Integer(), nullable=True, server_default='1'),
    sa.Column('start_date', sa.Date(), nullable=True),
    sa.Column('end_date', sa.Date(), nullable=True),
    sa.Column('days_of_week', sa.JSON(), nullable=True),
    sa.Column('default_start_time', sa.String(length=5), nullable=True),
    sa.Column('default_end_time', sa.String(length=5), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('max_students_per_slot > 0'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_courses_active', 'courses', ['is_active'], unique=False)

    # Dated slots generated from the course schedule
    op.create_table('time_slots',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('course_id', sa.UUID(), nullable=False),
    sa.Column('slot_date', sa.Date(), nullable=False),
    sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
    sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
    sa.Column('teacher_id', sa.UUID(), nullable=True),
    sa.Column('max_capacity', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('current_enrollment', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('status', slot_status, nullable=False, server_default='SCHEDULED'),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint(
        'current_enrollment >= 0 AND current_enrollment <= max_capacity',
        name='ck_time_slots_enrollment_within_capacity'
    ),
    sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('course_id', 'start_time', name='uq_time_slots_course_start')
    )
    op.create_index('idx_time_slots_date', 'time_slots', ['slot_date', 'start_time'], unique=False)
    op.create_index('idx_time_slots_course', 'time_slots', ['course_id'], unique=False)
    op.create_index('idx_time_slots_teacher', 'time_slots', ['teacher_id', 'slot_date'], unique=False)

    op.create_table('cart_items',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('student_id', sa.UUID(), nullable=False),
    sa.Column('slot_id', sa.UUID(), nullable=False),
    sa.Column('price_at_add', sa.Float(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['slot_id'], ['time_slots.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('student_id', 'slot_id', name='uq_cart_items_student_slot')
    )
    op.create_index('idx_cart_items_student', 'cart_items', ['student_id'], unique=False)

    op.create_table('slot_enrollments',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('slot_id', sa.UUID(), nullable=False),
    sa.Column('student_id', sa.UUID(), nullable=False),
    sa.Column('status', enrollment_status, nullable=False, server_default='CONFIRMED'),
    sa.Column('waitlist_position', sa.Integer(), nullable=True),
    sa.Column('payment_id', sa.String(length=100), nullable=True),
    sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('cancelled_by', sa.UUID(), nullable=True),
    sa.Column('cancel_reason', sa.String(length=500), nullable=True),
    sa.Column('promoted_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('promoted_from_waitlist', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['slot_id'], ['time_slots.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    # One live enrollment per student per slot; cancelled rows are history
    op.create_index(
        'uq_slot_enrollments_active', 'slot_enrollments', ['slot_id', 'student_id'],
        unique=True, postgresql_where=sa.text("status <> 'CANCELLED'")
    )
    op.create_index('idx_slot_enrollments_waitlist', 'slot_enrollments', ['slot_id', 'status', 'waitlist_position'], unique=False)
    op.create_index('idx_slot_enrollments_student', 'slot_enrollments', ['student_id'], unique=False)

    op.create_table('notifications',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('title', sa.String(length=200), nullable=False),
    sa.Column('message', sa.Text(), nullable=False),
    sa.Column('type', sa.String(length=30), nullable=False),
    sa.Column('action_url', sa.String(length=500), nullable=True),
    sa.Column('payload', sa.JSON(), nullable=True),
    sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_notifications_user_read', 'notifications', ['user_id', 'is_read'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_notifications_user_read', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('idx_slot_enrollments_student', table_name='slot_enrollments')
    op.drop_index('idx_slot_enrollments_waitlist', table_name='slot_enrollments')
    op.drop_index('uq_slot_enrollments_active', table_name='slot_enrollments')
    op.drop_table('slot_enrollments')

    op.drop_index('idx_cart_items_student', table_name='cart_items')
    op.drop_table('cart_items')

    op.drop_index('idx_time_slots_teacher', table_name='time_slots')
    op.drop_index('idx_time_slots_course', table_name='time_slots')
    op.drop_index('idx_time_slots_date', table_name='time_slots')
    op.drop_table('time_slots')

    op.drop_index('idx_courses_active', table_name='courses')
    op.drop_table('courses')

    # Drop enum types
    enrollment_status.drop(op.get_bind(), checkfirst=True)
    slot_status.drop(op.get_bind(), checkfirst=True)
