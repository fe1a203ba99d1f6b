"""
In-App Notification Service

Records notifications for booking confirmations, waitlist placement, waitlist
promotions and slot cancellations. Booking flows pass their own session so the
notification commits (or rolls back) together with the change it describes.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from musicroom.database import AsyncSessionLocal
from musicroom.exceptions import NotFoundError
from musicroom.models.notification import Notification
from musicroom.models.slot_enrollment import SlotEnrollment
from musicroom.models.time_slot import TimeSlot

logger = logging.getLogger(__name__)


def _slot_details(enrollment: SlotEnrollment, slot: TimeSlot, course_name: Optional[str]) -> Dict[str, Any]:
    """Human-readable slot description plus ids for the notification payload"""
    return {
        "course_name": course_name or "your lesson",
        "date": slot.start_time.strftime("%a %d %b %Y, %H:%M"),
        "enrollment_id": str(enrollment.id),
        "slot_id": str(slot.id),
    }


class NotificationService:
    """Creates, lists and updates student notifications"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def create_notification(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        type: str,
        action_url: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncSession] = None,
    ) -> Notification:
        """
        Create a notification.

        When a session is given the notification joins that session's
        transaction; otherwise it is committed on its own.
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            action_url=action_url,
            payload=payload,
        )

        if session is not None:
            session.add(notification)
            await session.flush()
            await session.refresh(notification)
        else:
            async with self.session_factory() as own_session:
                async with own_session.begin():
                    own_session.add(notification)
                    await own_session.flush()
                    await own_session.refresh(notification)

        logger.debug(f"Notification '{type}' queued for user {user_id}")
        return notification

    async def get_notifications(
        self,
        user_id: uuid.UUID,
        limit: int = 50,
        unread_only: bool = False,
    ) -> Dict[str, Any]:
        """Return the newest notifications for a user and their unread count"""
        async with self.session_factory() as session:
            query = select(Notification).where(Notification.user_id == user_id)
            if unread_only:
                query = query.where(Notification.is_read.is_(False))
            query = query.order_by(Notification.created_at.desc()).limit(limit)

            result = await session.execute(query)
            notifications = list(result.scalars().all())

            unread_count = await session.scalar(
                select(func.count(Notification.id)).where(
                    Notification.user_id == user_id,
                    Notification.is_read.is_(False),
                )
            )

        return {
            "notifications": notifications,
            "unread_count": unread_count or 0,
        }

    async def mark_as_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        async with self.session_factory() as session:
            async with session.begin():
                notification = await self._get_owned(session, user_id, notification_id)
                notification.is_read = True
                notification.read_at = datetime.now(timezone.utc)
                await session.flush()
                await session.refresh(notification)
        return notification

    async def mark_all_as_read(self, user_id: uuid.UUID) -> Dict[str, Any]:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Notification)
                    .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                    .values(is_read=True, read_at=datetime.now(timezone.utc))
                    .execution_options(synchronize_session=False)
                )
        return {"message": "All notifications marked as read", "updated": result.rowcount}

    async def delete_notification(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Dict[str, Any]:
        async with self.session_factory() as session:
            async with session.begin():
                notification = await self._get_owned(session, user_id, notification_id)
                await session.delete(notification)
        return {"message": "Notification deleted"}

    async def _get_owned(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> Notification:
        result = await session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification not found")
        return notification

    # Helpers for booking events

    async def notify_booking_confirmed(
        self,
        session: AsyncSession,
        enrollment: SlotEnrollment,
        slot: TimeSlot,
        course_name: Optional[str] = None,
    ) -> Notification:
        details = _slot_details(enrollment, slot, course_name)
        return await self.create_notification(
            enrollment.student_id,
            "Booking Confirmed",
            f"Your booking for {details['course_name']} on {details['date']} has been confirmed.",
            "booking",
            action_url=f"/bookings/{details['enrollment_id']}",
            payload={"enrollment_id": details["enrollment_id"], "slot_id": details["slot_id"]},
            session=session,
        )

    async def notify_waitlisted(
        self,
        session: AsyncSession,
        enrollment: SlotEnrollment,
        slot: TimeSlot,
        course_name: Optional[str] = None,
    ) -> Notification:
        details = _slot_details(enrollment, slot, course_name)
        return await self.create_notification(
            enrollment.student_id,
            "Added to Waitlist",
            f"{details['course_name']} on {details['date']} is full. "
            f"You are number {enrollment.waitlist_position} on the waitlist.",
            "waitlist",
            action_url=f"/bookings/{details['enrollment_id']}",
            payload={
                "enrollment_id": details["enrollment_id"],
                "slot_id": details["slot_id"],
                "position": enrollment.waitlist_position,
            },
            session=session,
        )

    async def notify_waitlist_promotion(
        self,
        session: AsyncSession,
        enrollment: SlotEnrollment,
        slot: TimeSlot,
        course_name: Optional[str] = None,
    ) -> Notification:
        details = _slot_details(enrollment, slot, course_name)
        return await self.create_notification(
            enrollment.student_id,
            "Slot Available!",
            f"Good news! You've been promoted from the waitlist for "
            f"{details['course_name']} on {details['date']}.",
            "promotion",
            action_url=f"/bookings/{details['enrollment_id']}",
            payload={"enrollment_id": details["enrollment_id"], "slot_id": details["slot_id"]},
            session=session,
        )

    async def notify_slot_cancelled(
        self,
        session: AsyncSession,
        enrollment: SlotEnrollment,
        slot: TimeSlot,
        course_name: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Notification:
        details = _slot_details(enrollment, slot, course_name)
        message = f"{details['course_name']} on {details['date']} has been cancelled."
        if reason:
            message = f"{message} Reason: {reason}"
        return await self.create_notification(
            enrollment.student_id,
            "Lesson Cancelled",
            message,
            "cancellation",
            payload={"enrollment_id": details["enrollment_id"], "slot_id": details["slot_id"]},
            session=session,
        )


# Global service instance
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create global NotificationService instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
