"""
Slot Job Runner Script

Manually trigger slot generation or the completion sweep.
Usage: python -m musicroom.scripts.run_slot_jobs [--course-id ID | --all] [--sweep]
"""
import asyncio
import argparse
import sys
import uuid

from sqlalchemy import select

from musicroom.database import AsyncSessionLocal
from musicroom.exceptions import BookingError
from musicroom.models.course import Course
from musicroom.services.slot_service import get_slot_service


async def generate_for_course(course_id: uuid.UUID):
    """Generate slots for one course"""
    print(f"\n=== Generating slots for course {course_id} ===")

    summary = await get_slot_service().generate_slots_for_course(course_id)

    print(f"\n✓ Slots created: {summary['slots_created']} of {summary['slots_considered']} scheduled days")
    print(f"  Duplicates skipped: {summary['slots_considered'] - summary['slots_created']}")
    print(f"  Duration: {summary['duration_ms']:.1f}ms")


async def generate_for_all_courses():
    """Generate slots for every active course with a schedule"""
    print("\n=== Generating slots for all active courses ===")

    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Course.id, Course.name).where(Course.is_active.is_(True)).order_by(Course.name)
        )
        courses = result.all()

    service = get_slot_service()
    total = 0
    for course_id, name in courses:
        try:
            summary = await service.generate_slots_for_course(course_id)
        except BookingError as e:
            print(f"  {name}: skipped ({e.message})")
            continue
        total += summary["slots_created"]
        print(f"  {name}: {summary['slots_created']} created")

    print(f"\n✅ Slot generation complete! {total} slots created across {len(courses)} courses")


async def run_completion_sweep():
    """Complete every slot that has already ended"""
    print("\n=== Running slot completion sweep ===")

    summary = await get_slot_service().complete_past_slots()

    print(f"\n✓ Slots completed: {summary['slots_completed']}")
    print(f"  Enrollments completed: {summary['enrollments_completed']}")
    print(f"  Waitlist entries released: {summary['waitlist_released']}")


async def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Generate time slots and close out finished slots")
    parser.add_argument(
        "--course-id",
        "-c",
        type=uuid.UUID,
        help="Generate slots for a specific course"
    )
    parser.add_argument(
        "--all",
        "-a",
        action="store_true",
        help="Generate slots for all active courses"
    )
    parser.add_argument(
        "--sweep",
        action="store_true",
        help="Complete slots whose end time has passed"
    )

    args = parser.parse_args()

    if not (args.course_id or args.all or args.sweep):
        print("ERROR: Specify --course-id, --all or --sweep")
        parser.print_help()
        sys.exit(1)

    try:
        if args.all:
            await generate_for_all_courses()
        elif args.course_id:
            await generate_for_course(args.course_id)

        if args.sweep:
            await run_completion_sweep()
    except BookingError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
