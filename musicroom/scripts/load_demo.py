"""
Demo Scenario Loader

Loads pre-configured demo scenarios for consistent presentations.
Usage: python -m musicroom.scripts.load_demo --scenario weekly_lessons
"""
import asyncio
import argparse
import random
import uuid
from datetime import date, timedelta

from faker import Faker
from sqlalchemy import text

from musicroom.database import AsyncSessionLocal
from musicroom.models.course import Course
from musicroom.services.booking_service import get_booking_service
from musicroom.services.slot_service import get_slot_service

fake = Faker()

INSTRUMENTS = ["PIANO", "GUITAR", "VIOLIN", "DRUMS", "VOCALS", "FLUTE"]


async def clear_demo_data():
    """Clear all existing data"""
    async with AsyncSessionLocal() as session:
        tables = ["notifications", "cart_items", "slot_enrollments", "time_slots", "courses"]
        for table in tables:
            await session.execute(text(f"DELETE FROM {table}"))
        await session.commit()
    print("✓ Cleared existing data")


async def create_course(**fields) -> Course:
    async with AsyncSessionLocal() as session:
        course = Course(**fields)
        session.add(course)
        await session.commit()
    return course


async def load_weekly_lessons_scenario():
    """
    Load Weekly Lessons scenario.

    Scenario: one course per instrument over the next four weeks, a handful
    of students with bookings spread across the generated slots.
    """
    print("\nLoading Weekly Lessons scenario...")

    start = date.today() + timedelta(days=1)
    courses = []
    for instrument in INSTRUMENTS:
        start_hour = random.choice([9, 16, 18])
        course = await create_course(
            name=f"{instrument.title()} {fake.word().title()} Class",
            description=fake.sentence(nb_words=12),
            instrument=instrument,
            price_per_slot=random.choice([500.0, 750.0, 1000.0]),
            duration_minutes=60,
            max_students_per_slot=random.randint(2, 6),
            start_date=start,
            end_date=start + timedelta(weeks=4),
            days_of_week=sorted(random.sample(range(7), 3)),
            default_start_time=f"{start_hour:02d}:00",
            default_end_time=f"{start_hour + 1:02d}:00",
        )
        courses.append(course)
    print(f"  Created {len(courses)} courses")

    slot_service = get_slot_service()
    total_slots = 0
    for course in courses:
        summary = await slot_service.generate_slots_for_course(course.id)
        total_slots += summary["slots_created"]
    print(f"  Generated {total_slots} time slots")

    booking_service = get_booking_service()
    students = [uuid.UUID(fake.uuid4()) for _ in range(12)]
    bookings = 0
    for student_id in students:
        slots = await slot_service.get_available_slots(course_id=random.choice(courses).id)
        for slot in random.sample(slots, k=min(3, len(slots))):
            await booking_service.book_slot(student_id, slot.id, payment_id=f"demo_{fake.bothify('????####')}")
            bookings += 1
    print(f"  Booked {bookings} lessons for {len(students)} students")

    print("\n  Demo student tokens:")
    for student_id in students[:3]:
        print(f"    {student_id}")


async def load_waitlist_scenario():
    """
    Load Waitlist scenario.

    Scenario: a two-seat masterclass that is already full with three students
    waiting, ready to demonstrate cancellation and promotion.
    """
    print("\nLoading Waitlist scenario...")

    tomorrow = date.today() + timedelta(days=1)
    course = await create_course(
        name="Piano Masterclass",
        description=fake.sentence(nb_words=10),
        instrument="PIANO",
        price_per_slot=1500.0,
        duration_minutes=90,
        max_students_per_slot=2,
        start_date=tomorrow,
        end_date=tomorrow,
        days_of_week=[tomorrow.isoweekday() % 7],
        default_start_time="17:00",
        default_end_time="18:30",
    )

    await get_slot_service().generate_slots_for_course(course.id)
    slot = (await get_slot_service().get_available_slots(course_id=course.id))[0]
    print(f"  Created masterclass slot {slot.id}")

    booking_service = get_booking_service()
    for _ in range(5):
        student_id = uuid.UUID(fake.uuid4())
        enrollment = await booking_service.book_slot(student_id, slot.id)
        position = f" (position {enrollment.waitlist_position})" if enrollment.waitlist_position else ""
        print(f"    Student {student_id}: {enrollment.status.value}{position}")


async def load_scenario(scenario_name: str):
    """Load a specific demo scenario"""
    scenarios = {
        "weekly_lessons": load_weekly_lessons_scenario,
        "waitlist": load_waitlist_scenario,
    }

    if scenario_name not in scenarios:
        print(f"Unknown scenario: {scenario_name}")
        print(f"Available scenarios: {', '.join(scenarios.keys())}")
        return

    # Clear existing data
    await clear_demo_data()

    # Load scenario
    await scenarios[scenario_name]()

    print(f"\n✅ Scenario '{scenario_name}' loaded successfully!")
    print("Demo is ready for presentation")


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load demo scenarios")
    parser.add_argument(
        "--scenario",
        "-s",
        choices=["weekly_lessons", "waitlist"],
        required=True,
        help="Scenario to load"
    )

    args = parser.parse_args()
    asyncio.run(load_scenario(args.scenario))


if __name__ == "__main__":
    main()
