"""SlotEnrollment model - A student's confirmed or waitlisted claim on a slot"""
import enum
import uuid

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Enum, ForeignKey, Index, Uuid, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from musicroom.database import Base


class EnrollmentStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    WAITLIST = "WAITLIST"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


TERMINAL_STATUSES = frozenset({EnrollmentStatus.CANCELLED, EnrollmentStatus.COMPLETED})

_ACTIVE_ROW = text("status <> 'CANCELLED'")


class SlotEnrollment(Base):
    """
    Enrollment of a student in a time slot.

    Cancelled rows are kept as history; the partial unique index allows at
    most one non-cancelled enrollment per (slot, student).
    """

    __tablename__ = "slot_enrollments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    slot_id = Column(
        Uuid,
        ForeignKey("time_slots.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id = Column(Uuid, nullable=False)
    status = Column(
        Enum(EnrollmentStatus, name="enrollment_status"),
        nullable=False,
        default=EnrollmentStatus.CONFIRMED,
    )
    # Dense 1..N among WAITLIST rows of a slot, NULL otherwise
    waitlist_position = Column(Integer, nullable=True)
    payment_id = Column(String(100), nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Uuid, nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    promoted_at = Column(DateTime(timezone=True), nullable=True)
    promoted_from_waitlist = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    slot = relationship("TimeSlot", back_populates="enrollments")

    __table_args__ = (
        Index(
            "uq_slot_enrollments_active",
            "slot_id",
            "student_id",
            unique=True,
            postgresql_where=_ACTIVE_ROW,
            sqlite_where=_ACTIVE_ROW,
        ),
        Index("idx_slot_enrollments_waitlist", "slot_id", "status", "waitlist_position"),
        Index("idx_slot_enrollments_student", "student_id"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return (
            f"<SlotEnrollment(id={self.id}, slot={self.slot_id}, student={self.student_id}, "
            f"status={self.status}, position={self.waitlist_position})>"
        )
