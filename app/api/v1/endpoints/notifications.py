from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.notification import Notification
from app.models.user import User
from app.schemas.notification import NotificationResponse
from app.services import notifications as notification_service

router = APIRouter()


def to_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        recipient_email=notification.recipient_email,
        type=notification.type,
        content=notification.content,
        link=notification.link,
        metadata=notification.payload or {},
        read=notification.read,
        created_at=notification.created_at,
    )


@router.get("/", response_model=List[NotificationResponse])
async def get_notifications(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the latest notifications for the current user"""
    notifications = await notification_service.list_notifications(db, current_user)
    return [to_response(notification) for notification in notifications]


@router.patch("/")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark every notification of the current user as read"""
    updated = await notification_service.mark_all_read(db, current_user)
    return {"message": "Notifications marked as read", "updated": updated}


@router.patch("/{notification_id}")
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark one notification as read"""
    await notification_service.mark_read(db, notification_id, current_user)
    return {"message": "Notification marked as read"}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete one notification"""
    await notification_service.delete_notification(db, notification_id, current_user)
    return {"message": "Notification deleted"}
