"""
Shared test fixtures

Each test gets its own SQLite database file with the full schema, services
bound to it, and factories for courses and slots.
"""
import uuid
from datetime import date, datetime, timedelta

import httpx
import pytest
import pytest_asyncio

from musicroom import config
from musicroom.database import Base, build_engine, build_session_factory, get_db
from musicroom.models.course import Course
from musicroom.models.time_slot import TimeSlot, SlotStatus
from musicroom.services.booking_service import BookingService, get_booking_service
from musicroom.services.notification_service import NotificationService, get_notification_service
from musicroom.services.slot_service import SlotService, get_slot_service


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Test database engine with all tables created"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'musicroom_test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def notification_service(session_factory):
    return NotificationService(session_factory)


@pytest.fixture
def slot_service(session_factory, notification_service):
    return SlotService(session_factory, notifications=notification_service)


@pytest.fixture
def booking_service(session_factory, notification_service):
    return BookingService(session_factory, notifications=notification_service)


@pytest.fixture
def make_course(session_factory):
    """Factory creating a course with a Mon/Wed/Fri schedule by default"""
    async def _make_course(**overrides) -> Course:
        fields = {
            "name": "Piano Basics",
            "instrument": "PIANO",
            "price_per_slot": 500.0,
            "currency": "INR",
            "duration_minutes": 60,
            "max_students_per_slot": 2,
            "start_date": date(2030, 1, 6),  # Sunday
            "end_date": date(2030, 1, 12),  # Saturday
            "days_of_week": [1, 3, 5],
            "default_start_time": "10:00",
            "default_end_time": "11:00",
        }
        fields.update(overrides)

        async with session_factory() as session:
            course = Course(**fields)
            session.add(course)
            await session.commit()
        return course

    return _make_course


@pytest.fixture
def make_slot(session_factory, make_course):
    """Factory creating a single future slot (and its course unless given)"""
    async def _make_slot(capacity: int = 2, course: Course = None, start: datetime = None, **overrides) -> TimeSlot:
        if course is None:
            course = await make_course(max_students_per_slot=capacity)

        start = start or datetime(2030, 1, 7, 10, 0, tzinfo=config.SCHEDULE_TIMEZONE)
        fields = {
            "course_id": course.id,
            "slot_date": start.date(),
            "start_time": start,
            "end_time": start + timedelta(hours=1),
            "max_capacity": capacity,
            "current_enrollment": 0,
            "status": SlotStatus.SCHEDULED,
            "is_active": True,
        }
        fields.update(overrides)

        async with session_factory() as session:
            slot = TimeSlot(**fields)
            session.add(slot)
            await session.commit()
        return slot

    return _make_slot


@pytest.fixture
def student_ids():
    """Three distinct students A, B, C"""
    return uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


@pytest_asyncio.fixture
async def client(session_factory, slot_service, booking_service, notification_service):
    """HTTP client against the app with services bound to the test database"""
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_slot_service] = lambda: slot_service
    app.dependency_overrides[get_booking_service] = lambda: booking_service
    app.dependency_overrides[get_notification_service] = lambda: notification_service

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer headers for a student id"""
    def _auth_headers(student_id) -> dict:
        return {"Authorization": f"Bearer {student_id}"}
    return _auth_headers


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {config.ADMIN_API_TOKEN}"}
