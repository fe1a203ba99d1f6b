"""
Integration tests for SlotService

Tests slot generation with duplicate skipping, availability queries, status
changes, whole-slot cancellation and the completion sweep.
"""
import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select, update, func

from musicroom import config
from musicroom.exceptions import InvalidStateError, NotFoundError, ValidationError
from musicroom.models.cart_item import CartItem
from musicroom.models.course import Course
from musicroom.models.notification import Notification
from musicroom.models.slot_enrollment import SlotEnrollment, EnrollmentStatus
from musicroom.models.time_slot import TimeSlot, SlotStatus


async def enrollment_statuses(session_factory, slot_id):
    async with session_factory() as session:
        result = await session.execute(
            select(SlotEnrollment.student_id, SlotEnrollment.status, SlotEnrollment.waitlist_position)
            .where(SlotEnrollment.slot_id == slot_id)
        )
        return {row.student_id: (row.status, row.waitlist_position) for row in result}


class TestGenerateSlots:
    """Test slot generation from course schedules"""

    @pytest.mark.asyncio
    async def test_generates_one_slot_per_scheduled_day(self, slot_service, make_course, session_factory):
        course = await make_course(max_students_per_slot=5)

        summary = await slot_service.generate_slots_for_course(course.id)

        assert summary["course_id"] == str(course.id)
        assert summary["slots_considered"] == 3
        assert summary["slots_created"] == 3
        assert summary["duration_ms"] >= 0

        async with session_factory() as session:
            slots = (await session.scalars(
                select(TimeSlot).where(TimeSlot.course_id == course.id).order_by(TimeSlot.slot_date)
            )).all()

        assert [s.slot_date for s in slots] == [date(2030, 1, 7), date(2030, 1, 9), date(2030, 1, 11)]
        assert all(s.max_capacity == 5 and s.current_enrollment == 0 for s in slots)
        assert all(s.status == SlotStatus.SCHEDULED and s.is_active for s in slots)

    @pytest.mark.asyncio
    async def test_rerun_skips_existing_slots(self, slot_service, make_course):
        course = await make_course()
        await slot_service.generate_slots_for_course(course.id)

        summary = await slot_service.generate_slots_for_course(course.id)

        assert summary["slots_considered"] == 3
        assert summary["slots_created"] == 0

    @pytest.mark.asyncio
    async def test_extended_course_only_adds_new_days(self, slot_service, make_course, session_factory):
        course = await make_course()
        await slot_service.generate_slots_for_course(course.id)

        async with session_factory() as session:
            await session.execute(update(Course).where(Course.id == course.id).values(end_date=date(2030, 1, 19)))
            await session.commit()

        summary = await slot_service.generate_slots_for_course(course.id)

        assert summary["slots_considered"] == 6
        assert summary["slots_created"] == 3

        async with session_factory() as session:
            total = await session.scalar(select(func.count(TimeSlot.id)).where(TimeSlot.course_id == course.id))
        assert total == 6

    @pytest.mark.asyncio
    async def test_unknown_course_rejected(self, slot_service):
        with pytest.raises(ValidationError, match="Course not found"):
            await slot_service.generate_slots_for_course(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_course_without_schedule_rejected(self, slot_service, make_course):
        course = await make_course(days_of_week=None)

        with pytest.raises(ValidationError, match="schedule not configured"):
            await slot_service.generate_slots_for_course(course.id)

    @pytest.mark.asyncio
    async def test_no_matching_days_creates_nothing(self, slot_service, make_course):
        course = await make_course(start_date=date(2030, 1, 7), end_date=date(2030, 1, 7), days_of_week=[0])

        summary = await slot_service.generate_slots_for_course(course.id)

        assert summary["slots_considered"] == 0
        assert summary["slots_created"] == 0


class TestSlotQueries:

    @pytest.mark.asyncio
    async def test_available_slots_filtered_by_course_and_date(self, slot_service, make_course):
        course = await make_course()
        other = await make_course(name="Violin Basics")
        await slot_service.generate_slots_for_course(course.id)
        await slot_service.generate_slots_for_course(other.id)

        slots = await slot_service.get_available_slots(
            course_id=course.id,
            start_date=date(2030, 1, 8),
            end_date=date(2030, 1, 11),
        )

        assert [s.slot_date for s in slots] == [date(2030, 1, 9), date(2030, 1, 11)]
        assert all(s.course.name == "Piano Basics" for s in slots)

    @pytest.mark.asyncio
    async def test_available_slots_exclude_cancelled(self, slot_service, make_slot, make_course):
        course = await make_course()
        kept = await make_slot(course=course)
        dropped = await make_slot(course=course, start=kept.start_time.replace(hour=16))
        await slot_service.cancel_slot(dropped.id)

        slots = await slot_service.get_available_slots(course_id=course.id)
        assert [s.id for s in slots] == [kept.id]

        cancelled = await slot_service.get_available_slots(course_id=course.id, status=SlotStatus.CANCELLED)
        assert cancelled == []  # cancelled slots are also inactive

    @pytest.mark.asyncio
    async def test_get_slot_by_id(self, slot_service, make_slot):
        slot = await make_slot()

        found = await slot_service.get_slot_by_id(slot.id)

        assert found.id == slot.id
        assert found.course is not None
        assert found.enrollments == []

    @pytest.mark.asyncio
    async def test_get_slot_by_id_lists_live_enrollments(self, slot_service, booking_service, make_slot, student_ids):
        student_a, student_b, student_c = student_ids
        slot = await make_slot(capacity=1)
        await booking_service.book_slot(student_a, slot.id)
        await booking_service.book_slot(student_b, slot.id)
        dropped = await booking_service.book_slot(student_c, slot.id)
        await booking_service.cancel_booking(student_c, dropped.id)

        found = await slot_service.get_slot_by_id(slot.id)

        roster = {e.student_id: e.status for e in found.enrollments}
        assert roster == {
            student_a: EnrollmentStatus.CONFIRMED,
            student_b: EnrollmentStatus.WAITLIST,
        }

    @pytest.mark.asyncio
    async def test_get_slot_by_id_not_found(self, slot_service):
        with pytest.raises(NotFoundError):
            await slot_service.get_slot_by_id(uuid.uuid4())



class TestTeacherSchedule:
    """Test teacher assignment and per-teacher schedules"""

    @pytest.mark.asyncio
    async def test_assign_and_clear_teacher(self, slot_service, make_slot):
        slot = await make_slot()
        teacher_id = uuid.uuid4()

        assigned = await slot_service.assign_teacher_to_slot(slot.id, teacher_id)
        assert assigned.teacher_id == teacher_id

        cleared = await slot_service.assign_teacher_to_slot(slot.id, None)
        assert cleared.teacher_id is None

    @pytest.mark.asyncio
    async def test_assign_teacher_unknown_slot(self, slot_service):
        with pytest.raises(NotFoundError):
            await slot_service.assign_teacher_to_slot(uuid.uuid4(), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_completed_slot_cannot_change_teacher(self, slot_service, make_slot):
        slot = await make_slot()
        await slot_service.update_slot_status(slot.id, SlotStatus.COMPLETED)

        with pytest.raises(InvalidStateError):
            await slot_service.assign_teacher_to_slot(slot.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_schedule_lists_active_slots_with_confirmed_students(
        self, slot_service, booking_service, make_course, make_slot, student_ids
    ):
        student_a, student_b, _ = student_ids
        teacher_id = uuid.uuid4()
        course = await make_course(max_students_per_slot=1)
        monday = await make_slot(capacity=1, course=course)
        wednesday = await make_slot(
            capacity=1, course=course, start=datetime(2030, 1, 9, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE)
        )
        cancelled = await make_slot(
            capacity=1, course=course, start=datetime(2030, 1, 11, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE)
        )
        unassigned = await make_slot(
            capacity=1, course=course, start=datetime(2030, 1, 8, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE)
        )
        for slot in (wednesday, monday, cancelled):
            await slot_service.assign_teacher_to_slot(slot.id, teacher_id)
        await slot_service.cancel_slot(cancelled.id)
        await booking_service.book_slot(student_a, monday.id)
        await booking_service.book_slot(student_b, monday.id)

        schedule = await slot_service.get_slots_by_teacher(teacher_id)

        assert [s.id for s in schedule] == [monday.id, wednesday.id]
        assert unassigned.id not in {s.id for s in schedule}
        assert schedule[0].course.name == "Piano Basics"
        assert [(e.student_id, e.status) for e in schedule[0].enrollments] == [
            (student_a, EnrollmentStatus.CONFIRMED)
        ]
        assert schedule[1].enrollments == []

    @pytest.mark.asyncio
    async def test_schedule_date_range(self, slot_service, make_course, make_slot):
        teacher_id = uuid.uuid4()
        course = await make_course()
        monday = await make_slot(course=course)
        wednesday = await make_slot(
            course=course, start=datetime(2030, 1, 9, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE)
        )
        for slot in (monday, wednesday):
            await slot_service.assign_teacher_to_slot(slot.id, teacher_id)

        schedule = await slot_service.get_slots_by_teacher(
            teacher_id, start_date=date(2030, 1, 8), end_date=date(2030, 1, 12)
        )

        assert [s.id for s in schedule] == [wednesday.id]

    @pytest.mark.asyncio
    async def test_available_slots_filtered_by_teacher(self, slot_service, make_course, make_slot):
        teacher_id = uuid.uuid4()
        course = await make_course()
        taught = await make_slot(course=course)
        await make_slot(course=course, start=datetime(2030, 1, 9, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE))
        await slot_service.assign_teacher_to_slot(taught.id, teacher_id)

        slots = await slot_service.get_available_slots(teacher_id=teacher_id)

        assert [s.id for s in slots] == [taught.id]

class TestCancelSlot:
    """Test whole-slot cancellation"""

    @pytest.mark.asyncio
    async def test_cancel_slot_cancels_every_live_enrollment(
        self, slot_service, booking_service, make_slot, session_factory, student_ids
    ):
        student_a, student_b, student_c = student_ids
        slot = await make_slot(capacity=1)
        await booking_service.book_slot(student_a, slot.id)
        await booking_service.book_slot(student_b, slot.id)
        await booking_service.add_to_cart(student_c, slot.id)

        cancelled = await slot_service.cancel_slot(slot.id, reason="Instructor unwell")

        assert cancelled.status == SlotStatus.CANCELLED
        assert cancelled.is_active is False
        assert cancelled.current_enrollment == 0

        statuses = await enrollment_statuses(session_factory, slot.id)
        assert statuses == {
            student_a: (EnrollmentStatus.CANCELLED, None),
            student_b: (EnrollmentStatus.CANCELLED, None),
        }

        async with session_factory() as session:
            cart_count = await session.scalar(select(func.count(CartItem.id)).where(CartItem.slot_id == slot.id))
            notified = (await session.scalars(
                select(Notification.user_id).where(Notification.type == "cancellation")
            )).all()

        assert cart_count == 0
        assert set(notified) == {student_a, student_b}

    @pytest.mark.asyncio
    async def test_cancelled_slot_cannot_be_cancelled_again(self, slot_service, make_slot):
        slot = await make_slot()
        await slot_service.cancel_slot(slot.id)

        with pytest.raises(InvalidStateError):
            await slot_service.cancel_slot(slot.id)

    @pytest.mark.asyncio
    async def test_cancelled_slot_cannot_be_booked(self, slot_service, booking_service, make_slot):
        slot = await make_slot()
        await slot_service.cancel_slot(slot.id)

        with pytest.raises(InvalidStateError):
            await booking_service.book_slot(uuid.uuid4(), slot.id)

    @pytest.mark.asyncio
    async def test_cancel_unknown_slot(self, slot_service):
        with pytest.raises(NotFoundError):
            await slot_service.cancel_slot(uuid.uuid4())


class TestUpdateSlotStatus:

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, slot_service, make_slot):
        slot = await make_slot()

        with pytest.raises(ValidationError):
            await slot_service.update_slot_status(slot.id, "POSTPONED")

    @pytest.mark.asyncio
    async def test_cancelled_status_cancels_enrollments(self, slot_service, booking_service, make_slot, session_factory):
        slot = await make_slot()
        student_id = uuid.uuid4()
        await booking_service.book_slot(student_id, slot.id)

        updated = await slot_service.update_slot_status(slot.id, "CANCELLED")

        assert updated.status == SlotStatus.CANCELLED
        statuses = await enrollment_statuses(session_factory, slot.id)
        assert statuses[student_id][0] == EnrollmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_completed_status_completes_enrollments(
        self, slot_service, booking_service, make_slot, session_factory, student_ids
    ):
        student_a, student_b, _ = student_ids
        slot = await make_slot(capacity=1)
        await booking_service.book_slot(student_a, slot.id)
        await booking_service.book_slot(student_b, slot.id)

        updated = await slot_service.update_slot_status(slot.id, SlotStatus.COMPLETED)

        assert updated.status == SlotStatus.COMPLETED
        statuses = await enrollment_statuses(session_factory, slot.id)
        assert statuses[student_a] == (EnrollmentStatus.COMPLETED, None)
        assert statuses[student_b] == (EnrollmentStatus.CANCELLED, None)

    @pytest.mark.asyncio
    async def test_completed_slot_is_final(self, slot_service, make_slot):
        slot = await make_slot()
        await slot_service.update_slot_status(slot.id, SlotStatus.COMPLETED)

        with pytest.raises(InvalidStateError):
            await slot_service.update_slot_status(slot.id, SlotStatus.SCHEDULED)

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rescheduled(self, slot_service, make_slot):
        slot = await make_slot()
        await slot_service.cancel_slot(slot.id)

        updated = await slot_service.update_slot_status(slot.id, SlotStatus.SCHEDULED)

        assert updated.status == SlotStatus.SCHEDULED
        assert updated.is_active is True


class TestCompletePastSlots:
    """Test the periodic completion sweep"""

    @pytest.mark.asyncio
    async def test_only_ended_slots_are_completed(
        self, slot_service, booking_service, make_slot, make_course, session_factory
    ):
        course = await make_course()
        past = await make_slot(course=course, start=datetime(2030, 1, 7, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE))
        future = await make_slot(course=course, start=datetime(2030, 1, 9, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE))
        student_id = uuid.uuid4()
        await booking_service.book_slot(student_id, past.id)
        await booking_service.book_slot(student_id, future.id)

        # Between the two lessons
        now = datetime(2030, 1, 8, 12, 0, tzinfo=config.SCHEDULE_TIMEZONE).astimezone(timezone.utc)
        summary = await slot_service.complete_past_slots(now=now)

        assert summary["slots_completed"] == 1
        assert summary["enrollments_completed"] == 1

        async with session_factory() as session:
            past_status = (await session.get(TimeSlot, past.id)).status
            future_status = (await session.get(TimeSlot, future.id)).status
        assert past_status == SlotStatus.COMPLETED
        assert future_status == SlotStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_waitlist_released_on_completion(
        self, slot_service, booking_service, make_slot, session_factory, student_ids
    ):
        student_a, student_b, _ = student_ids
        slot = await make_slot(capacity=1)
        await booking_service.book_slot(student_a, slot.id)
        await booking_service.book_slot(student_b, slot.id)

        summary = await slot_service.complete_past_slots(now=datetime(2030, 2, 1, tzinfo=timezone.utc))

        assert summary["waitlist_released"] == 1
        statuses = await enrollment_statuses(session_factory, slot.id)
        assert statuses[student_a] == (EnrollmentStatus.COMPLETED, None)
        assert statuses[student_b] == (EnrollmentStatus.CANCELLED, None)

    @pytest.mark.asyncio
    async def test_slot_still_running_is_left_alone(self, slot_service, make_slot):
        slot = await make_slot()
        during_lesson = slot.start_time + (slot.end_time - slot.start_time) / 2

        summary = await slot_service.complete_past_slots(now=during_lesson)

        assert summary["slots_completed"] == 0
