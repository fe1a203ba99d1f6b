"""
Notification API Endpoints

GET /api/v1/notifications - Student's notifications with unread count
PATCH /api/v1/notifications/read-all - Mark every notification read
PATCH /api/v1/notifications/:notification_id/read - Mark one notification read
DELETE /api/v1/notifications/:notification_id - Delete a notification
"""
import uuid
from typing import Dict, Any, List

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel

from musicroom.api.auth import get_current_student_id
from musicroom.api.schemas import NotificationResponse
from musicroom.services.notification_service import NotificationService, get_notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


class NotificationListResponse(BaseModel):
    data: List[NotificationResponse]
    metadata: Dict[str, Any]


class NotificationDetailResponse(BaseModel):
    data: NotificationResponse


class MessageResponse(BaseModel):
    data: Dict[str, Any]


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(50, ge=1, le=200, description="Maximum notifications to return"),
    unread_only: bool = Query(False, description="Only unread notifications"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: NotificationService = Depends(get_notification_service),
):
    """Newest notifications first; unread_count covers all unread, not just this page"""
    result = await service.get_notifications(student_id, limit=limit, unread_only=unread_only)
    return NotificationListResponse(
        data=[NotificationResponse.model_validate(n) for n in result["notifications"]],
        metadata={
            "count": len(result["notifications"]),
            "unread_count": result["unread_count"],
        }
    )


@router.patch("/read-all", response_model=MessageResponse)
async def mark_all_as_read(
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: NotificationService = Depends(get_notification_service),
):
    return MessageResponse(data=await service.mark_all_as_read(student_id))


@router.patch("/{notification_id}/read", response_model=NotificationDetailResponse)
async def mark_as_read(
    notification_id: uuid.UUID = Path(..., description="Notification ID"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: NotificationService = Depends(get_notification_service),
):
    notification = await service.mark_as_read(student_id, notification_id)
    return NotificationDetailResponse(data=NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: uuid.UUID = Path(..., description="Notification ID"),
    student_id: uuid.UUID = Depends(get_current_student_id),
    service: NotificationService = Depends(get_notification_service),
):
    return MessageResponse(data=await service.delete_notification(student_id, notification_id))
