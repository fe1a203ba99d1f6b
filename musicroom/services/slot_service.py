"""
Time Slot Service

Expands a course's recurring weekly schedule into dated time slots and manages
slot lifecycle: availability queries, status changes, whole-slot cancellation
and the periodic completion of slots that have already ended.
"""

import logging
import time as timer
import uuid
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Any, List, Optional, Union

from sqlalchemy import select, update, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from musicroom import config
from musicroom.database import AsyncSessionLocal, refresh_columns
from musicroom.exceptions import NotFoundError, InvalidStateError, ValidationError
from musicroom.models.cart_item import CartItem
from musicroom.models.course import Course
from musicroom.models.slot_enrollment import SlotEnrollment, EnrollmentStatus
from musicroom.models.time_slot import TimeSlot, SlotStatus
from musicroom.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

LIVE_ENROLLMENT_STATUSES = (EnrollmentStatus.CONFIRMED, EnrollmentStatus.WAITLIST)


def parse_time_of_day(value: str) -> time:
    """
    Parse an "HH:MM" string.

    Raises:
        ValidationError: If the string is not a valid 24-hour time
    """
    try:
        hour_text, minute_text = value.strip().split(":")
        return time(int(hour_text), int(minute_text))
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time of day: {value!r}. Expected HH:MM")


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday, the convention used by days_of_week"""
    return day.isoweekday() % 7


def expand_course_schedule(course: Course, tz: tzinfo = None) -> List[Dict[str, Any]]:
    """
    Build one slot row for every scheduled day of a course.

    Walks every calendar day from start_date to end_date inclusive and keeps
    those whose weekday is in days_of_week.

    Raises:
        ValidationError: If the schedule fields are missing or malformed
    """
    if not course.start_date or not course.end_date or not course.days_of_week:
        raise ValidationError("Course schedule not configured")

    tz = tz or config.SCHEDULE_TIMEZONE
    start_of_day = parse_time_of_day(course.default_start_time or config.DEFAULT_SLOT_START_TIME)
    end_of_day = parse_time_of_day(course.default_end_time or config.DEFAULT_SLOT_END_TIME)
    days = {int(day) for day in course.days_of_week}
    capacity = course.max_students_per_slot or 1

    slots = []
    current = course.start_date
    while current <= course.end_date:
        if sunday_based_weekday(current) in days:
            slots.append({
                "id": uuid.uuid4(),
                "course_id": course.id,
                "slot_date": current,
                "start_time": datetime.combine(current, start_of_day, tzinfo=tz),
                "end_time": datetime.combine(current, end_of_day, tzinfo=tz),
                "max_capacity": capacity,
                "current_enrollment": 0,
                "status": SlotStatus.SCHEDULED,
                "is_active": True,
            })
        current += timedelta(days=1)

    return slots


def _insert_skipping_duplicates(session: AsyncSession, rows: List[Dict[str, Any]]):
    """INSERT ... ON CONFLICT (course_id, start_time) DO NOTHING RETURNING id"""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise RuntimeError(f"Unsupported database dialect for slot generation: {dialect}")

    table = TimeSlot.__table__
    return (
        insert(table)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["course_id", "start_time"])
        .returning(table.c.id)
    )


async def lock_slot(session: AsyncSession, slot_id: uuid.UUID) -> TimeSlot:
    """
    Load a slot with SELECT ... FOR UPDATE, course included.

    Every change to a slot's seat counter or waitlist happens after this lock
    is taken, inside the same transaction.

    Raises:
        NotFoundError: Slot does not exist
    """
    result = await session.execute(
        select(TimeSlot)
        .where(TimeSlot.id == slot_id)
        .options(selectinload(TimeSlot.course))
        .with_for_update(of=TimeSlot)
        .execution_options(populate_existing=True)
    )
    slot = result.scalar_one_or_none()
    if slot is None:
        raise NotFoundError("Slot not found")
    return slot


class SlotService:
    """Slot generation and slot lifecycle operations"""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        notifications: Optional[NotificationService] = None,
    ):
        self.session_factory = session_factory
        self.notifications = notifications or NotificationService(session_factory)

    async def generate_slots_for_course(self, course_id: uuid.UUID) -> Dict[str, Any]:
        """
        Generate time slots for a course from its weekly schedule.

        Slots that already exist for the same course and start time are
        skipped, so the operation can be re-run after extending a course.

        Returns:
            Dict with:
                - course_id: The course the slots belong to
                - slots_considered: Number of scheduled days in the range
                - slots_created: Number of rows actually inserted
                - duration_ms: Generation time
        """
        start_time = timer.time()

        async with self.session_factory() as session:
            async with session.begin():
                course = await session.get(Course, course_id)
                if course is None:
                    raise ValidationError("Course not found")

                rows = expand_course_schedule(course)

                created = 0
                if rows:
                    result = await session.execute(_insert_skipping_duplicates(session, rows))
                    created = len(result.scalars().all())

        duration_ms = (timer.time() - start_time) * 1000
        logger.info(
            f"Generated slots for course {course_id}: {created} created, "
            f"{len(rows) - created} duplicates skipped, {duration_ms:.2f}ms"
        )

        return {
            "course_id": str(course_id),
            "slots_considered": len(rows),
            "slots_created": created,
            "duration_ms": round(duration_ms, 2),
        }

    async def get_available_slots(
        self,
        course_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: SlotStatus = SlotStatus.SCHEDULED,
        teacher_id: Optional[uuid.UUID] = None,
    ) -> List[TimeSlot]:
        """Active slots matching the filters, earliest first"""
        async with self.session_factory() as session:
            query = (
                select(TimeSlot)
                .where(TimeSlot.is_active.is_(True), TimeSlot.status == status)
                .options(selectinload(TimeSlot.course))
                .order_by(TimeSlot.slot_date.asc(), TimeSlot.start_time.asc())
            )
            if course_id:
                query = query.where(TimeSlot.course_id == course_id)
            if teacher_id:
                query = query.where(TimeSlot.teacher_id == teacher_id)
            if start_date:
                query = query.where(TimeSlot.slot_date >= start_date)
            if end_date:
                query = query.where(TimeSlot.slot_date <= end_date)

            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_slot_by_id(self, slot_id: uuid.UUID) -> TimeSlot:
        """Slot with its course and its CONFIRMED and WAITLIST enrollments"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TimeSlot)
                .where(TimeSlot.id == slot_id)
                .options(
                    selectinload(TimeSlot.course),
                    selectinload(TimeSlot.enrollments.and_(
                        SlotEnrollment.status.in_(LIVE_ENROLLMENT_STATUSES)
                    )),
                )
            )
            slot = result.scalar_one_or_none()

        if slot is None:
            raise NotFoundError("Slot not found")
        return slot

    async def get_slots_by_teacher(
        self,
        teacher_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[TimeSlot]:
        """
        Active slots taught by a teacher, earliest first.

        Each slot carries its course and its CONFIRMED enrollments.
        """
        query = (
            select(TimeSlot)
            .where(TimeSlot.teacher_id == teacher_id, TimeSlot.is_active.is_(True))
            .options(
                selectinload(TimeSlot.course),
                selectinload(TimeSlot.enrollments.and_(
                    SlotEnrollment.status == EnrollmentStatus.CONFIRMED
                )),
            )
            .order_by(TimeSlot.slot_date.asc(), TimeSlot.start_time.asc())
        )
        if start_date:
            query = query.where(TimeSlot.slot_date >= start_date)
        if end_date:
            query = query.where(TimeSlot.slot_date <= end_date)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def assign_teacher_to_slot(self, slot_id: uuid.UUID, teacher_id: Optional[uuid.UUID]) -> TimeSlot:
        """
        Set the teacher of a slot. None clears the assignment.

        Raises:
            NotFoundError: Slot does not exist
            InvalidStateError: Slot is already COMPLETED
        """
        async with self.session_factory() as session:
            async with session.begin():
                slot = await lock_slot(session, slot_id)

                if slot.status == SlotStatus.COMPLETED:
                    raise InvalidStateError("Cannot assign a teacher to a completed slot")

                slot.teacher_id = teacher_id
                await session.flush()
                await refresh_columns(session, slot)

        logger.info(f"Slot {slot_id} assigned to teacher {teacher_id}")
        return slot

    async def update_slot_status(self, slot_id: uuid.UUID, status: Union[SlotStatus, str]) -> TimeSlot:
        """
        Move a slot to a new status.

        CANCELLED and COMPLETED go through the same handling as cancel_slot and
        the completion sweep so enrollments follow the slot. A COMPLETED slot
        cannot change status again.
        """
        try:
            status = SlotStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid slot status: {status}")

        if status == SlotStatus.CANCELLED:
            return await self.cancel_slot(slot_id)

        async with self.session_factory() as session:
            async with session.begin():
                slot = await lock_slot(session, slot_id)

                if slot.status == SlotStatus.COMPLETED:
                    raise InvalidStateError("Completed slots cannot change status")

                if status == SlotStatus.COMPLETED:
                    await self._complete_slot(session, slot)
                else:
                    slot.status = SlotStatus.SCHEDULED
                    slot.is_active = True

                await session.flush()
                await refresh_columns(session, slot)

        logger.info(f"Slot {slot_id} status set to {status.value}")
        return slot

    async def cancel_slot(self, slot_id: uuid.UUID, reason: Optional[str] = None) -> TimeSlot:
        """
        Cancel a slot and every live enrollment on it.

        Confirmed and waitlisted students are cancelled and notified, the seat
        counter goes back to zero and the slot is removed from all carts.
        """
        reason = reason or "Slot cancelled"
        now = datetime.now(timezone.utc)

        async with self.session_factory() as session:
            async with session.begin():
                slot = await lock_slot(session, slot_id)

                if slot.status == SlotStatus.CANCELLED:
                    raise InvalidStateError("Slot already cancelled")

                result = await session.execute(
                    select(SlotEnrollment).where(
                        SlotEnrollment.slot_id == slot.id,
                        SlotEnrollment.status.in_([EnrollmentStatus.CONFIRMED, EnrollmentStatus.WAITLIST]),
                    )
                )
                enrollments = list(result.scalars().all())

                for enrollment in enrollments:
                    enrollment.status = EnrollmentStatus.CANCELLED
                    enrollment.waitlist_position = None
                    enrollment.cancelled_at = now
                    enrollment.cancel_reason = reason

                slot.status = SlotStatus.CANCELLED
                slot.is_active = False
                slot.current_enrollment = 0

                await session.execute(delete(CartItem).where(CartItem.slot_id == slot.id))
                await session.flush()

                course_name = slot.course.name if slot.course else None
                for enrollment in enrollments:
                    await self.notifications.notify_slot_cancelled(
                        session, enrollment, slot, course_name, reason=reason
                    )

                await refresh_columns(session, slot)

        logger.info(f"Slot {slot_id} cancelled: {len(enrollments)} enrollments cancelled ({reason})")
        return slot

    async def complete_past_slots(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Complete every scheduled slot whose end time has passed.

        Returns:
            Summary dict with slots_completed, enrollments_completed,
            waitlist_released and duration_ms
        """
        start_time = timer.time()
        now = (now or datetime.now(timezone.utc)).astimezone(config.SCHEDULE_TIMEZONE)

        summary = {"slots_completed": 0, "enrollments_completed": 0, "waitlist_released": 0}

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(TimeSlot)
                    .where(
                        TimeSlot.status == SlotStatus.SCHEDULED,
                        TimeSlot.end_time < now,
                    )
                    .order_by(TimeSlot.id)
                    .with_for_update()
                )
                for slot in result.scalars().all():
                    completed, released = await self._complete_slot(session, slot)
                    summary["slots_completed"] += 1
                    summary["enrollments_completed"] += completed
                    summary["waitlist_released"] += released

        summary["duration_ms"] = round((timer.time() - start_time) * 1000, 2)
        logger.info(
            f"Completion sweep: {summary['slots_completed']} slots, "
            f"{summary['enrollments_completed']} enrollments completed, "
            f"{summary['waitlist_released']} waitlist entries released"
        )
        return summary

    async def _complete_slot(self, session: AsyncSession, slot: TimeSlot):
        """Close out a slot. Returns (enrollments completed, waitlist entries released)."""
        completed = await session.execute(
            update(SlotEnrollment)
            .where(
                SlotEnrollment.slot_id == slot.id,
                SlotEnrollment.status == EnrollmentStatus.CONFIRMED,
            )
            .values(status=EnrollmentStatus.COMPLETED)
            .execution_options(synchronize_session=False)
        )

        # Waitlisted students never held a seat, so they are released rather than completed
        released = await session.execute(
            update(SlotEnrollment)
            .where(
                SlotEnrollment.slot_id == slot.id,
                SlotEnrollment.status == EnrollmentStatus.WAITLIST,
            )
            .values(
                status=EnrollmentStatus.CANCELLED,
                waitlist_position=None,
                cancelled_at=datetime.now(timezone.utc),
                cancel_reason="Slot completed",
            )
            .execution_options(synchronize_session=False)
        )

        slot.status = SlotStatus.COMPLETED
        await session.flush()
        return completed.rowcount, released.rowcount


# Global service instance
_slot_service: Optional[SlotService] = None


def get_slot_service() -> SlotService:
    """Get or create global SlotService instance."""
    global _slot_service
    if _slot_service is None:
        _slot_service = SlotService()
    return _slot_service
