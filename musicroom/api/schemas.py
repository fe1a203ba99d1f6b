"""
Shared response models

Serialized views of ORM rows returned by the slot, booking and notification
endpoints. Only columns and eagerly loaded relationships are read.
"""
import uuid
from datetime import date, datetime
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict

from musicroom.models.slot_enrollment import EnrollmentStatus
from musicroom.models.time_slot import SlotStatus


class CourseSummary(BaseModel):
    """Course fields shown alongside a slot"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    instrument: str
    price_per_slot: Optional[float] = None
    currency: str
    duration_minutes: int


class SlotResponse(BaseModel):
    """A bookable time slot"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    course_id: uuid.UUID
    slot_date: date
    start_time: datetime
    end_time: datetime
    teacher_id: Optional[uuid.UUID] = None
    max_capacity: int
    current_enrollment: int
    available_spots: int
    is_full: bool
    status: SlotStatus
    is_active: bool
    course: Optional[CourseSummary] = None


class EnrollmentResponse(BaseModel):
    """A student's seat (or waitlist entry) on a slot"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slot_id: uuid.UUID
    student_id: uuid.UUID
    status: EnrollmentStatus
    waitlist_position: Optional[int] = None
    payment_id: Optional[str] = None
    promoted_from_waitlist: bool = False
    promoted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class SlotRosterResponse(SlotResponse):
    """A slot with the enrollments loaded alongside it"""
    enrollments: List[EnrollmentResponse] = []


class BookingResponse(EnrollmentResponse):
    """Enrollment with its slot, for the student's booking list"""
    slot: SlotResponse


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slot_id: uuid.UUID
    price_at_add: float
    created_at: Optional[datetime] = None
    slot: SlotResponse


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    message: str
    type: str
    action_url: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
