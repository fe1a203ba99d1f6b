"""Course model - Lesson offering with a recurring weekly schedule"""
from sqlalchemy import Column, String, Integer, Float, Boolean, Date, DateTime, Text, JSON, CheckConstraint, Index, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from musicroom.database import Base


class Course(Base):
    """Course offered by the music room, expanded into dated time slots"""

    __tablename__ = "courses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    instrument = Column(String(50), nullable=False, default="OTHER")
    price_per_slot = Column(Float, nullable=True)
    currency = Column(String(3), nullable=False, default="INR")
    duration_minutes = Column(Integer, nullable=False, default=60)
    max_students_per_slot = Column(
        Integer,
        CheckConstraint("max_students_per_slot > 0"),
        nullable=True,
        default=1,
    )

    # Scheduling: days_of_week uses 0=Sunday .. 6=Saturday
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    days_of_week = Column(JSON, nullable=True)
    default_start_time = Column(String(5), nullable=True)
    default_end_time = Column(String(5), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    slots = relationship("TimeSlot", back_populates="course")

    __table_args__ = (
        Index("idx_courses_active", "is_active"),
    )

    def __repr__(self):
        return f"<Course(id={self.id}, name={self.name}, days={self.days_of_week})>"
