"""SQLAlchemy ORM Models for the Music Room booking schema"""
from musicroom.models.course import Course
from musicroom.models.time_slot import TimeSlot, SlotStatus
from musicroom.models.cart_item import CartItem
from musicroom.models.slot_enrollment import SlotEnrollment, EnrollmentStatus, TERMINAL_STATUSES
from musicroom.models.notification import Notification

__all__ = [
    "Course",
    "TimeSlot",
    "SlotStatus",
    "CartItem",
    "SlotEnrollment",
    "EnrollmentStatus",
    "TERMINAL_STATUSES",
    "Notification",
]
