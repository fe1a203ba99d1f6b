"""
Slot Waitlist Queue

FIFO queue of WAITLIST enrollments for one slot, stored as a dense 1..N
waitlist_position column. Append goes to the tail, promotion pops the head,
and removing an entry from anywhere closes the gap it leaves.

All methods expect to run inside a transaction that already holds the lock on
the slot row, so positions cannot interleave between concurrent requests.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from musicroom.models.slot_enrollment import SlotEnrollment, EnrollmentStatus

logger = logging.getLogger(__name__)


class WaitlistQueue:
    """Waitlist of a single slot"""

    def __init__(self, session: AsyncSession, slot_id: uuid.UUID):
        self.session = session
        self.slot_id = slot_id

    def _waiting(self):
        return (
            SlotEnrollment.slot_id == self.slot_id,
            SlotEnrollment.status == EnrollmentStatus.WAITLIST,
        )

    async def size(self) -> int:
        count = await self.session.scalar(
            select(func.count(SlotEnrollment.id)).where(*self._waiting())
        )
        return count or 0

    async def entries(self) -> List[SlotEnrollment]:
        """Waitlisted enrollments, head first"""
        result = await self.session.execute(
            select(SlotEnrollment)
            .where(*self._waiting())
            .order_by(SlotEnrollment.waitlist_position.asc())
        )
        return list(result.scalars().all())

    async def head(self) -> Optional[SlotEnrollment]:
        result = await self.session.execute(
            select(SlotEnrollment)
            .where(*self._waiting())
            .order_by(SlotEnrollment.waitlist_position.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def append(self, enrollment: SlotEnrollment) -> int:
        """Place an enrollment at the tail and return its position"""
        position = await self.size() + 1
        enrollment.status = EnrollmentStatus.WAITLIST
        enrollment.waitlist_position = position
        await self.session.flush()

        logger.debug(f"Slot {self.slot_id}: enrollment {enrollment.id} waitlisted at position {position}")
        return position

    async def pop_head(self) -> Optional[SlotEnrollment]:
        """
        Take the head off the queue.

        The caller is responsible for moving the returned enrollment out of
        WAITLIST status.
        """
        head = await self.head()
        if head is None:
            return None
        await self.remove(head)
        return head

    async def remove(self, enrollment: SlotEnrollment) -> None:
        """Drop an enrollment from the queue and shift everyone behind it forward"""
        old_position = enrollment.waitlist_position
        enrollment.waitlist_position = None
        await self.session.flush()

        if old_position is None:
            return

        await self.session.execute(
            update(SlotEnrollment)
            .where(
                *self._waiting(),
                SlotEnrollment.waitlist_position > old_position,
            )
            .values(waitlist_position=SlotEnrollment.waitlist_position - 1)
            .execution_options(synchronize_session="evaluate")
        )

        logger.debug(f"Slot {self.slot_id}: closed waitlist gap at position {old_position}")
