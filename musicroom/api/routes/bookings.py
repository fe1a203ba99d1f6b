"""
Booking API Endpoints

Cart:
    GET /api/v1/bookings/cart - Current cart with total
    POST /api/v1/bookings/cart - Add slot to cart
    DELETE /api/v1/bookings/cart - Clear cart
    DELETE /api/v1/bookings/cart/:item_id - Remove one cart item
    POST /api/v1/bookings/cart/checkout - Book every slot in the cart

Bookings:
    POST /api/v1/bookings/book - Book a single slot
    GET /api/v1/bookings/my-bookings - Student's bookings
    POST /api/v1/bookings/:enrollment_id/cancel - Cancel a booking
    GET /api/v1/bookings/waitlist/:slot_id - Waitlist standing on a slot
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, Field

from musicroom.api.auth import get_current_student_id
from musicroom.api.schemas import BookingResponse, CartItemResponse, EnrollmentResponse
from musicroom.models.slot_enrollment import EnrollmentStatus
from musicroom.services.booking_service import BookingService, get_booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


# Pydantic models

class AddToCartRequest(BaseModel):
    slot_id: uuid.UUID


class CheckoutRequest(BaseModel):
    payment_id: Optional[str] = Field(None, max_length=100)


class BookSlotRequest(BaseModel):
    slot_id: uuid.UUID
    payment_id: Optional[str] = Field(None, max_length=100)


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class CartData(BaseModel):
    items: List[CartItemResponse]
    total: float
    item_count: int


class CartResponse(BaseModel):
    data: CartData


class CartItemDetailResponse(BaseModel):
    data: CartItemResponse


class EnrollmentDetailResponse(BaseModel):
    data: EnrollmentResponse


class CheckoutResponse(BaseModel):
    """Enrollments created by checkout, with confirmed/waitlisted counts"""
    data: List[EnrollmentResponse]
    metadata: Dict[str, Any]


class BookingListResponse(BaseModel):
    data: List[BookingResponse]
    metadata: Dict[str, Any]


class MessageResponse(BaseModel):
    data: Dict[str, Any]


class WaitlistPositionResponse(BaseModel):
    data: Optional[Dict[str, Any]]


# Cart endpoints

@router.get("/cart", response_model=CartResponse)
async def get_cart(
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    cart = await service.get_cart(student_id)
    return CartResponse(
        data=CartData(
            items=[CartItemResponse.model_validate(item) for item in cart["items"]],
            total=cart["total"],
            item_count=cart["item_count"],
        )
    )


@router.post("/cart", response_model=CartItemDetailResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    request: AddToCartRequest,
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    """
    Add a slot to the cart.

    Holding a slot in the cart does not reserve a seat.
    """
    item = await service.add_to_cart(student_id, request.slot_id)
    return CartItemDetailResponse(data=CartItemResponse.model_validate(item))


@router.delete("/cart", response_model=MessageResponse)
async def clear_cart(
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    return MessageResponse(data=await service.clear_cart(student_id))


@router.delete("/cart/{item_id}", response_model=MessageResponse)
async def remove_from_cart(
    item_id: uuid.UUID = Path(..., description="Cart item ID"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    return MessageResponse(data=await service.remove_from_cart(student_id, item_id))


@router.post("/cart/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout_cart(
    request: Optional[CheckoutRequest] = None,
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    """
    Book every slot in the cart.

    Full slots put the student on the waitlist. If any slot cannot be booked
    the whole checkout fails and the cart is kept.
    """
    payment_id = request.payment_id if request else None
    enrollments = await service.checkout_cart(student_id, payment_id=payment_id)

    confirmed = sum(1 for e in enrollments if e.status == EnrollmentStatus.CONFIRMED)
    return CheckoutResponse(
        data=[EnrollmentResponse.model_validate(e) for e in enrollments],
        metadata={
            "confirmed": confirmed,
            "waitlisted": len(enrollments) - confirmed,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


# Booking endpoints

@router.post("/book", response_model=EnrollmentDetailResponse, status_code=status.HTTP_201_CREATED)
async def book_slot(
    request: BookSlotRequest,
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    """
    Book a single slot.

    Returns a CONFIRMED enrollment when a seat is free, otherwise a WAITLIST
    enrollment with its queue position.
    """
    enrollment = await service.book_slot(student_id, request.slot_id, payment_id=request.payment_id)
    return EnrollmentDetailResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.get("/my-bookings", response_model=BookingListResponse)
async def get_my_bookings(
    booking_status: Optional[str] = Query(None, alias="status", description="Filter by enrollment status"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    bookings = await service.get_my_bookings(student_id, status=booking_status)
    return BookingListResponse(
        data=[BookingResponse.model_validate(b) for b in bookings],
        metadata={"count": len(bookings)}
    )


@router.post("/{enrollment_id}/cancel", response_model=MessageResponse)
async def cancel_booking(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment ID"),
    request: Optional[CancelBookingRequest] = None,
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    """
    Cancel a booking.

    Cancelling a confirmed booking promotes the first waitlisted student; the
    promoted enrollment id is returned as promoted_enrollment_id.
    """
    reason = request.reason if request else None
    result = await service.cancel_booking(student_id, enrollment_id, reason=reason)
    return MessageResponse(data=result)


@router.get("/waitlist/{slot_id}", response_model=WaitlistPositionResponse)
async def get_waitlist_position(
    slot_id: uuid.UUID = Path(..., description="Slot ID"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: BookingService = Depends(get_booking_service),
):
    """Student's status and waitlist position on a slot; data is null if never enrolled"""
    position = await service.get_waitlist_position(student_id, slot_id)
    return WaitlistPositionResponse(data=position)
