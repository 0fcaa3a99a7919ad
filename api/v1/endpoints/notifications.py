"""
RedBoat Hotel API - Notification Endpoints
==========================================

Historial paginado por cursor (lastId), altas desde el cliente (toasts),
lectura/borrado y el stream SSE en vivo (GET /stream).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from api.deps import get_current_user, get_db

from database import User
from notifications import NotificationService, hub
from schemas import DataResponse, MessageResponse, NotificationCreate, NotificationDTO, NotificationPage

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("", response_model=NotificationPage, summary="List Notifications")
def list_notifications(
    last_id: Optional[int] = Query(default=None, alias="lastId"),
    limit: Optional[int] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationService.list_for_user(db, user.id, last_id, limit)


@router.post("", response_model=DataResponse[NotificationDTO], status_code=status.HTTP_201_CREATED,
             summary="Create Notification")
def create_notification(data: NotificationCreate, user: User = Depends(get_current_user),
                        db: Session = Depends(get_db)):
    notification = NotificationService.create(db, user.id, data.message, data.type, data.href)
    return DataResponse(data=notification)


@router.post("/mark-all-read", response_model=MessageResponse, summary="Mark All Read")
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = NotificationService.mark_all_read(db, user.id)
    return MessageResponse(message=f"{updated} notifications marked as read")


@router.get("/stream", summary="Live Notification Stream")
async def stream(request: Request, user: User = Depends(get_current_user)):
    """Server-sent events: 'data: <json>' por notificación nueva y ':' como keepalive."""
    return StreamingResponse(
        hub.stream(user.id, request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/{notification_id}/read", response_model=MessageResponse, summary="Mark Read")
def mark_read(notification_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    NotificationService.mark_read(db, user.id, notification_id)
    return MessageResponse(message="Notification marked as read")


@router.delete("/{notification_id}", response_model=MessageResponse, summary="Delete Notification")
def delete_notification(notification_id: int, user: User = Depends(get_current_user),
                        db: Session = Depends(get_db)):
    NotificationService.delete(db, user.id, notification_id)
    return MessageResponse(message="Notification deleted")
