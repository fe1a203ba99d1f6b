"""
Time Slot API Endpoints

GET /api/v1/slots - List bookable slots
GET /api/v1/slots/:slot_id - Slot detail with live enrollments
GET /api/v1/slots/teacher/:teacher_id - A teacher's schedule
POST /api/v1/slots/generate/:course_id - Admin: generate slots from course schedule
POST /api/v1/slots/:slot_id/assign-teacher - Admin: assign or clear the slot's teacher
PUT /api/v1/slots/:slot_id/status - Admin: change slot status
POST /api/v1/slots/:slot_id/cancel - Admin: cancel slot and its enrollments
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, Field

from musicroom.api.auth import get_current_student_id, require_admin
from musicroom.api.schemas import SlotResponse, SlotRosterResponse
from musicroom.models.time_slot import SlotStatus
from musicroom.services.slot_service import SlotService, get_slot_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/slots", tags=["slots"])


# Pydantic models

class SlotListResponse(BaseModel):
    data: List[SlotResponse]
    metadata: Dict[str, Any]


class SlotDetailResponse(BaseModel):
    data: SlotResponse


class SlotRosterDetailResponse(BaseModel):
    data: SlotRosterResponse


class TeacherScheduleResponse(BaseModel):
    data: List[SlotRosterResponse]
    metadata: Dict[str, Any]


class GenerateSlotsResponse(BaseModel):
    """Summary of a slot generation run"""
    data: Dict[str, Any]


class AssignTeacherRequest(BaseModel):
    teacher_id: Optional[uuid.UUID] = None


class SlotStatusRequest(BaseModel):
    status: SlotStatus


class CancelSlotRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# API Endpoints

@router.get("", response_model=SlotListResponse)
async def list_slots(
    course_id: Optional[uuid.UUID] = Query(None, description="Only slots of this course"),
    start_date: Optional[date] = Query(None, description="Earliest slot date (inclusive)"),
    end_date: Optional[date] = Query(None, description="Latest slot date (inclusive)"),
    slot_status: SlotStatus = Query(SlotStatus.SCHEDULED, alias="status"),
    teacher_id: Optional[uuid.UUID] = Query(None, description="Only slots taught by this teacher"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: SlotService = Depends(get_slot_service),
):
    """
    List active slots, earliest first.

    Defaults to SCHEDULED slots; filter by course and date range.
    """
    slots = await service.get_available_slots(
        course_id=course_id,
        start_date=start_date,
        end_date=end_date,
        status=slot_status,
        teacher_id=teacher_id,
    )

    return SlotListResponse(
        data=[SlotResponse.model_validate(slot) for slot in slots],
        metadata={
            "count": len(slots),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@router.get("/teacher/{teacher_id}", response_model=TeacherScheduleResponse)
async def get_teacher_schedule(
    teacher_id: uuid.UUID = Path(..., description="Teacher ID"),
    start_date: Optional[date] = Query(None, description="Earliest slot date (inclusive)"),
    end_date: Optional[date] = Query(None, description="Latest slot date (inclusive)"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: SlotService = Depends(get_slot_service),
):
    """Active slots taught by a teacher, each with its confirmed students"""
    slots = await service.get_slots_by_teacher(teacher_id, start_date=start_date, end_date=end_date)

    return TeacherScheduleResponse(
        data=[SlotRosterResponse.model_validate(slot) for slot in slots],
        metadata={
            "count": len(slots),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@router.get("/{slot_id}", response_model=SlotRosterDetailResponse)
async def get_slot(
    slot_id: uuid.UUID = Path(..., description="Slot ID"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: SlotService = Depends(get_slot_service),
):
    """Slot detail; enrollments lists its CONFIRMED and WAITLIST students"""
    slot = await service.get_slot_by_id(slot_id)
    return SlotRosterDetailResponse(data=SlotRosterResponse.model_validate(slot))


@router.post(
    "/generate/{course_id}",
    response_model=GenerateSlotsResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def generate_slots(
    course_id: uuid.UUID = Path(..., description="Course ID"),
    service: SlotService = Depends(get_slot_service),
):
    """
    Generate slots for every scheduled day of a course.

    Re-running is safe: existing slots are skipped and reported in the
    difference between slots_considered and slots_created.
    """
    summary = await service.generate_slots_for_course(course_id)
    return GenerateSlotsResponse(data=summary)


@router.post(
    "/{slot_id}/assign-teacher",
    response_model=SlotDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def assign_teacher(
    request: AssignTeacherRequest,
    slot_id: uuid.UUID = Path(..., description="Slot ID"),
    service: SlotService = Depends(get_slot_service),
):
    slot = await service.assign_teacher_to_slot(slot_id, request.teacher_id)
    return SlotDetailResponse(data=SlotResponse.model_validate(slot))


@router.put(
    "/{slot_id}/status",
    response_model=SlotDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def update_slot_status(
    request: SlotStatusRequest,
    slot_id: uuid.UUID = Path(..., description="Slot ID"),
    service: SlotService = Depends(get_slot_service),
):
    slot = await service.update_slot_status(slot_id, request.status)
    return SlotDetailResponse(data=SlotResponse.model_validate(slot))


@router.post(
    "/{slot_id}/cancel",
    response_model=SlotDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def cancel_slot(
    slot_id: uuid.UUID = Path(..., description="Slot ID"),
    request: Optional[CancelSlotRequest] = None,
    service: SlotService = Depends(get_slot_service),
):
    """Cancel a slot; confirmed and waitlisted students are cancelled and notified"""
    reason = request.reason if request else None
    slot = await service.cancel_slot(slot_id, reason=reason)
    return SlotDetailResponse(data=SlotResponse.model_validate(slot))
