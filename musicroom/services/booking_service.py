"""
Booking Service

Cart management, checkout, direct slot booking, cancellation and waitlist
promotion.

Every operation that touches seat capacity runs in a single transaction that
first locks the TimeSlot row. Seats are claimed with a conditional UPDATE
(current_enrollment < max_capacity), so two requests that read the same
counter can never both confirm the last seat.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Union

from sqlalchemy import select, update, delete, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from musicroom.database import AsyncSessionLocal, refresh_columns
from musicroom.exceptions import NotFoundError, InvalidStateError, ConflictError, ValidationError
from musicroom.models.cart_item import CartItem
from musicroom.models.slot_enrollment import SlotEnrollment, EnrollmentStatus
from musicroom.models.time_slot import TimeSlot
from musicroom.services.notification_service import NotificationService
from musicroom.services.slot_service import lock_slot
from musicroom.services.waitlist import WaitlistQueue

logger = logging.getLogger(__name__)


class BookingService:
    """Cart, booking, cancellation and waitlist operations for students"""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        notifications: Optional[NotificationService] = None,
    ):
        self.session_factory = session_factory
        self.notifications = notifications or NotificationService(session_factory)

    # Cart

    async def add_to_cart(self, student_id: uuid.UUID, slot_id: uuid.UUID) -> CartItem:
        """
        Add a slot to the student's cart with the current course price.

        The cart is a wishlist: no seat is held and no enrollment is created.

        Raises:
            NotFoundError: Slot does not exist
            InvalidStateError: Slot is inactive or not SCHEDULED
            ConflictError: Slot already in cart, or student already enrolled
        """
        async with self.session_factory() as session:
            async with session.begin():
                slot = await self._get_bookable_slot(session, slot_id)

                existing_item = await session.scalar(
                    select(CartItem.id).where(
                        CartItem.student_id == student_id,
                        CartItem.slot_id == slot_id,
                    )
                )
                if existing_item is not None:
                    raise ConflictError("Slot already in cart")

                if await self._active_enrollment(session, slot_id, student_id) is not None:
                    raise ConflictError("Already enrolled in this slot")

                price = (slot.course.price_per_slot if slot.course else None) or 0
                cart_item = CartItem(student_id=student_id, slot=slot, price_at_add=price)
                session.add(cart_item)
                await session.flush()
                await refresh_columns(session, cart_item)

        logger.info(f"Student {student_id} added slot {slot_id} to cart at {price}")
        return cart_item

    async def get_cart(self, student_id: uuid.UUID) -> Dict[str, Any]:
        """Cart items newest first, with their total price"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(CartItem)
                .where(CartItem.student_id == student_id)
                .options(selectinload(CartItem.slot).selectinload(TimeSlot.course))
                .order_by(CartItem.created_at.desc())
            )
            items = list(result.scalars().all())

        return {
            "items": items,
            "total": sum(item.price_at_add for item in items),
            "item_count": len(items),
        }

    async def remove_from_cart(self, student_id: uuid.UUID, cart_item_id: uuid.UUID) -> Dict[str, Any]:
        async with self.session_factory() as session:
            async with session.begin():
                cart_item = await session.scalar(
                    select(CartItem).where(
                        CartItem.id == cart_item_id,
                        CartItem.student_id == student_id,
                    )
                )
                if cart_item is None:
                    raise NotFoundError("Cart item not found")
                await session.delete(cart_item)

        return {"message": "Item removed from cart"}

    async def clear_cart(self, student_id: uuid.UUID) -> Dict[str, Any]:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(CartItem)
                    .where(CartItem.student_id == student_id)
                    .execution_options(synchronize_session=False)
                )

        return {"message": "Cart cleared", "removed": result.rowcount}

    async def checkout_cart(self, student_id: uuid.UUID, payment_id: Optional[str] = None) -> List[SlotEnrollment]:
        """
        Book every slot in the cart and empty it.

        All slots are booked in one transaction: if any slot is unavailable or
        already booked, nothing is enrolled and the cart is left untouched.

        Raises:
            InvalidStateError: Cart is empty, or a slot is no longer bookable
            NotFoundError: A cart slot no longer exists
            ConflictError: Student already enrolled in one of the slots
        """
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(CartItem).where(CartItem.student_id == student_id)
                )
                items = list(result.scalars().all())
                if not items:
                    raise InvalidStateError("Cart is empty")

                # Lock slots in a stable order so concurrent checkouts cannot deadlock
                enrollments = []
                for item in sorted(items, key=lambda i: str(i.slot_id)):
                    slot = await self._get_bookable_slot(session, item.slot_id, lock=True)
                    enrollments.append(await self._book_locked_slot(session, student_id, slot, payment_id))

                await session.execute(
                    delete(CartItem)
                    .where(CartItem.student_id == student_id)
                    .execution_options(synchronize_session=False)
                )

        logger.info(f"Student {student_id} checked out {len(enrollments)} slots (payment {payment_id})")
        return enrollments

    # Bookings

    async def book_slot(
        self,
        student_id: uuid.UUID,
        slot_id: uuid.UUID,
        payment_id: Optional[str] = None,
    ) -> SlotEnrollment:
        """
        Book a slot directly, without the cart.

        Below capacity the enrollment is CONFIRMED and the slot counter goes up
        by one; at capacity the student joins the tail of the waitlist and the
        counter is unchanged.

        Raises:
            NotFoundError: Slot does not exist
            InvalidStateError: Slot is inactive or not SCHEDULED
            ConflictError: Student already holds a non-cancelled enrollment
        """
        async with self.session_factory() as session:
            async with session.begin():
                slot = await self._get_bookable_slot(session, slot_id, lock=True)
                enrollment = await self._book_locked_slot(session, student_id, slot, payment_id)

        return enrollment

    async def get_my_bookings(
        self,
        student_id: uuid.UUID,
        status: Optional[Union[EnrollmentStatus, str]] = None,
    ) -> List[SlotEnrollment]:
        """Student's enrollments newest first, with slot and course loaded"""
        query = (
            select(SlotEnrollment)
            .where(SlotEnrollment.student_id == student_id)
            .options(selectinload(SlotEnrollment.slot).selectinload(TimeSlot.course))
            .order_by(SlotEnrollment.created_at.desc())
        )
        if status:
            try:
                query = query.where(SlotEnrollment.status == EnrollmentStatus(status))
            except ValueError:
                raise ValidationError(f"Invalid booking status: {status}")

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def cancel_booking(
        self,
        student_id: uuid.UUID,
        enrollment_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Cancel a student's booking.

        A confirmed booking frees its seat and the head of the waitlist is
        promoted into it. A waitlisted booking only leaves the queue; everyone
        behind it moves up one place.

        Raises:
            NotFoundError: Enrollment missing or owned by another student
            InvalidStateError: Enrollment already CANCELLED or COMPLETED
        """
        async with self.session_factory() as session:
            async with session.begin():
                enrollment = await session.scalar(
                    select(SlotEnrollment).where(
                        SlotEnrollment.id == enrollment_id,
                        SlotEnrollment.student_id == student_id,
                    )
                )
                if enrollment is None:
                    raise NotFoundError("Booking not found")

                slot = await lock_slot(session, enrollment.slot_id)
                # Re-read under the slot lock; a concurrent request may have changed it
                await refresh_columns(session, enrollment)

                if enrollment.is_terminal:
                    raise InvalidStateError(f"Booking already {enrollment.status.value.lower()}")

                was_confirmed = enrollment.status == EnrollmentStatus.CONFIRMED

                if enrollment.status == EnrollmentStatus.WAITLIST:
                    await WaitlistQueue(session, slot.id).remove(enrollment)

                enrollment.status = EnrollmentStatus.CANCELLED
                enrollment.cancelled_at = datetime.now(timezone.utc)
                enrollment.cancelled_by = student_id
                enrollment.cancel_reason = reason
                await session.flush()

                promoted = None
                if was_confirmed:
                    await self._release_seat(session, slot.id)
                    promoted = await self._promote_head(session, slot)

        logger.info(
            f"Student {student_id} cancelled enrollment {enrollment_id} "
            f"({'confirmed' if was_confirmed else 'waitlisted'})"
            + (f", promoted {promoted.id}" if promoted else "")
        )

        return {
            "message": "Booking cancelled successfully",
            "enrollment_id": str(enrollment_id),
            "promoted_enrollment_id": str(promoted.id) if promoted else None,
        }

    async def promote_from_waitlist(self, slot_id: uuid.UUID) -> Optional[SlotEnrollment]:
        """
        Promote the head of a slot's waitlist into a free seat.

        Returns the promoted enrollment, or None when the waitlist is empty or
        the slot has no free seat.
        """
        async with self.session_factory() as session:
            async with session.begin():
                slot = await lock_slot(session, slot_id)
                return await self._promote_head(session, slot)

    async def get_waitlist_position(self, student_id: uuid.UUID, slot_id: uuid.UUID) -> Optional[Dict[str, Any]]:
        """
        Student's standing on a slot.

        Returns None when the student never enrolled, otherwise
        {"status", "position"} where position is only set while WAITLIST.
        The live enrollment wins over cancelled history.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(SlotEnrollment)
                .where(
                    SlotEnrollment.slot_id == slot_id,
                    SlotEnrollment.student_id == student_id,
                )
                .order_by(
                    case((SlotEnrollment.status == EnrollmentStatus.CANCELLED, 1), else_=0),
                    SlotEnrollment.created_at.desc(),
                )
                .limit(1)
            )
            enrollment = result.scalar_one_or_none()

        if enrollment is None:
            return None

        if enrollment.status != EnrollmentStatus.WAITLIST:
            return {"status": enrollment.status.value, "position": None}

        return {"status": EnrollmentStatus.WAITLIST.value, "position": enrollment.waitlist_position}

    # Internals; all run inside the caller's transaction

    async def _get_bookable_slot(self, session: AsyncSession, slot_id: uuid.UUID, lock: bool = False) -> TimeSlot:
        if lock:
            slot = await lock_slot(session, slot_id)
        else:
            slot = await session.scalar(
                select(TimeSlot)
                .where(TimeSlot.id == slot_id)
                .options(selectinload(TimeSlot.course))
            )
            if slot is None:
                raise NotFoundError("Slot not found")

        if not slot.is_bookable:
            logger.warning(f"Rejected booking request for slot {slot_id}: status={slot.status}, active={slot.is_active}")
            raise InvalidStateError("Slot is not available for booking")
        return slot

    async def _active_enrollment(
        self,
        session: AsyncSession,
        slot_id: uuid.UUID,
        student_id: uuid.UUID,
    ) -> Optional[SlotEnrollment]:
        return await session.scalar(
            select(SlotEnrollment).where(
                SlotEnrollment.slot_id == slot_id,
                SlotEnrollment.student_id == student_id,
                SlotEnrollment.status != EnrollmentStatus.CANCELLED,
            )
        )

    async def _claim_seat(self, session: AsyncSession, slot_id: uuid.UUID) -> bool:
        """Atomically take one seat if any is free"""
        result = await session.execute(
            update(TimeSlot)
            .where(
                TimeSlot.id == slot_id,
                TimeSlot.current_enrollment < TimeSlot.max_capacity,
            )
            .values(current_enrollment=TimeSlot.current_enrollment + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _release_seat(self, session: AsyncSession, slot_id: uuid.UUID) -> None:
        await session.execute(
            update(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.current_enrollment > 0)
            .values(current_enrollment=TimeSlot.current_enrollment - 1)
            .execution_options(synchronize_session=False)
        )

    async def _book_locked_slot(
        self,
        session: AsyncSession,
        student_id: uuid.UUID,
        slot: TimeSlot,
        payment_id: Optional[str],
    ) -> SlotEnrollment:
        if await self._active_enrollment(session, slot.id, student_id) is not None:
            raise ConflictError("Already enrolled in this slot")

        enrollment = SlotEnrollment(slot_id=slot.id, student_id=student_id, payment_id=payment_id)
        session.add(enrollment)
        course_name = slot.course.name if slot.course else None

        # Without FOR UPDATE (SQLite) a concurrent duplicate is caught by the partial unique index
        try:
            if await self._claim_seat(session, slot.id):
                enrollment.status = EnrollmentStatus.CONFIRMED
                await session.flush()
                position = None
            else:
                position = await WaitlistQueue(session, slot.id).append(enrollment)
        except IntegrityError:
            logger.warning(f"Duplicate enrollment of student {student_id} on slot {slot.id} rejected by the database")
            raise ConflictError("Already enrolled in this slot")

        if position is None:
            await self.notifications.notify_booking_confirmed(session, enrollment, slot, course_name)
            logger.info(f"Student {student_id} confirmed on slot {slot.id}")
        else:
            await self.notifications.notify_waitlisted(session, enrollment, slot, course_name)
            logger.info(f"Slot {slot.id} full; student {student_id} waitlisted at position {position}")

        await refresh_columns(session, enrollment)
        await refresh_columns(session, slot)
        return enrollment

    async def _promote_head(self, session: AsyncSession, slot: TimeSlot) -> Optional[SlotEnrollment]:
        queue = WaitlistQueue(session, slot.id)
        if await queue.head() is None:
            return None

        if not await self._claim_seat(session, slot.id):
            logger.warning(f"Slot {slot.id} has a waitlist but no free seat; promotion skipped")
            return None

        promoted = await queue.pop_head()
        promoted.status = EnrollmentStatus.CONFIRMED
        promoted.promoted_at = datetime.now(timezone.utc)
        promoted.promoted_from_waitlist = True
        await session.flush()

        course_name = slot.course.name if slot.course else None
        await self.notifications.notify_waitlist_promotion(session, promoted, slot, course_name)
        await refresh_columns(session, promoted)
        await refresh_columns(session, slot)

        logger.info(f"Promoted enrollment {promoted.id} from waitlist on slot {slot.id}")
        return promoted


# Global service instance
_booking_service: Optional[BookingService] = None


def get_booking_service() -> BookingService:
    """Get or create global BookingService instance."""
    global _booking_service
    if _booking_service is None:
        _booking_service = BookingService()
    return _booking_service
