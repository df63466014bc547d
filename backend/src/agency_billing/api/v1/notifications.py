"""Notification API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.api.deps import current_user_id, get_current_user, get_db
from agency_billing.schemas.notification import Notification, UnreadCount
from agency_billing.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[Notification])
async def list_notifications(
    limit: int = Query(20, ge=1, le=100, description="Maximum rows"),
    unread_only: bool = Query(False, description="Only unread notifications"),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[Notification]:
    """The caller's notifications, newest first."""
    return await NotificationService(db).get_user_notifications(current_user_id(current_user), limit, unread_only)


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> UnreadCount:
    """Number of unread notifications."""
    count = await NotificationService(db).get_unread_count(current_user_id(current_user))
    return UnreadCount(unread=count)


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_as_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Notification:
    """Mark one notification read."""
    notification = await NotificationService(db).mark_as_read(notification_id, current_user_id(current_user))
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found",
        )
    await db.commit()
    return notification


@router.post("/read-all", response_model=UnreadCount)
async def mark_all_as_read(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> UnreadCount:
    """Mark everything read; returns the remaining unread count."""
    service = NotificationService(db)
    user_id = current_user_id(current_user)
    await service.mark_all_as_read(user_id)
    await db.commit()
    return UnreadCount(unread=await service.get_unread_count(user_id))
