"""TimeSlot model - A single bookable occurrence of a course"""
import enum
import uuid

from sqlalchemy import (
    Column, Integer, Boolean, Date, DateTime, Enum, ForeignKey,
    CheckConstraint, Index, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from musicroom.database import Base


class SlotStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class TimeSlot(Base):
    """Dated course occurrence with seat capacity tracking"""

    __tablename__ = "time_slots"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id = Column(
        Uuid,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    slot_date = Column(Date, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    # Instructor account id; accounts live outside this service
    teacher_id = Column(Uuid, nullable=True)
    max_capacity = Column(Integer, nullable=False, default=1)
    # Only changed by SQL-side arithmetic while the slot row is locked
    current_enrollment = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(SlotStatus, name="slot_status"),
        nullable=False,
        default=SlotStatus.SCHEDULED,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    course = relationship("Course", back_populates="slots")
    enrollments = relationship("SlotEnrollment", back_populates="slot")

    __table_args__ = (
        UniqueConstraint("course_id", "start_time", name="uq_time_slots_course_start"),
        CheckConstraint(
            "current_enrollment >= 0 AND current_enrollment <= max_capacity",
            name="ck_time_slots_enrollment_within_capacity",
        ),
        Index("idx_time_slots_date", "slot_date", "start_time"),
        Index("idx_time_slots_course", "course_id"),
        Index("idx_time_slots_teacher", "teacher_id", "slot_date"),
    )

    @property
    def available_spots(self) -> int:
        return max(self.max_capacity - self.current_enrollment, 0)

    @property
    def is_full(self) -> bool:
        return self.current_enrollment >= self.max_capacity

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_active) and self.status == SlotStatus.SCHEDULED

    def __repr__(self):
        return (
            f"<TimeSlot(id={self.id}, course={self.course_id}, start={self.start_time}, "
            f"enrolled={self.current_enrollment}/{self.max_capacity})>"
        )
