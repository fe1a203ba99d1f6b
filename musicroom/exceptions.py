"""
Booking Exceptions

Typed errors raised by the slot, booking and notification services.
Each carries a machine-readable code and the HTTP status the API maps it to.
"""
from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base exception for booking operations"""
    code: str = "BOOKING_ERROR"
    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Error envelope used in API responses"""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class NotFoundError(BookingError):
    """
    Raised when a slot, cart item, enrollment or notification does not exist
    or does not belong to the requesting student.
    """
    code = "NOT_FOUND"
    status_code = 404


class InvalidStateError(BookingError):
    """
    Raised when the target is not in a state that allows the operation.

    Examples:
    - Slot inactive, cancelled or completed
    - Enrollment already cancelled or completed
    - Checkout of an empty cart
    """
    code = "INVALID_STATE"
    status_code = 409


class ConflictError(BookingError):
    """Raised for a duplicate cart item or a duplicate active enrollment"""
    code = "CONFLICT"
    status_code = 409


class ValidationError(BookingError):
    """Raised when a course schedule is missing or malformed"""
    code = "VALIDATION_ERROR"
    status_code = 400
