"""Notification service: persisted, de-duplicated user notifications."""
from datetime import timedelta
from uuid import UUID

import structlog
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.config import settings
from agency_billing.models.notification import Notification, NotificationType
from agency_billing.schemas.notification import NotificationCreate
from agency_billing.utils.dates import utcnow

logger = structlog.get_logger(__name__)


class NotificationService:
    """Service layer for user notifications."""

    def __init__(self, db: AsyncSession, dedup_window_seconds: int | None = None):
        """Initialize notification service with database session."""
        self.db = db
        if dedup_window_seconds is None:
            dedup_window_seconds = settings.notification_dedup_window_seconds
        self.dedup_window = timedelta(seconds=dedup_window_seconds)

    async def create_notification(self, data: NotificationCreate) -> Notification:
        """
        Create a notification unless an identical one was just sent.

        Identical means same user, type, title and message inside the dedup
        window; retried calls then return the existing row.

        Args:
            data: Notification content

        Returns:
            New or existing notification
        """
        window_start = utcnow() - self.dedup_window
        result = await self.db.execute(
            select(Notification)
            .where(
                Notification.user_id == data.user_id,
                Notification.type == data.type,
                Notification.title == data.title,
                Notification.message == data.message,
                Notification.created_at >= window_start,
            )
            .order_by(Notification.created_at.desc())
            .limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing:
            logger.debug("notification_deduplicated", user_id=str(data.user_id), title=data.title)
            return existing

        notification = Notification(**data.model_dump())
        self.db.add(notification)
        await self.db.flush()

        logger.info(
            "notification_created",
            user_id=str(data.user_id),
            type=data.type.value,
            title=data.title,
        )
        return notification

    async def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        action_url: str | None = None,
        action_label: str | None = None,
    ) -> None:
        """Emit a notification without handing anything back to the caller."""
        await self.create_notification(
            NotificationCreate(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                action_url=action_url,
                action_label=action_label,
            )
        )

    async def get_user_notifications(
        self, user_id: UUID, limit: int = 20, unread_only: bool = False
    ) -> list[Notification]:
        """
        List a user's notifications, newest first.

        Args:
            user_id: User UUID
            limit: Maximum rows
            unread_only: Only return unread notifications

        Returns:
            List of notifications
        """
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def mark_as_read(self, notification_id: UUID, user_id: UUID | None = None) -> Notification | None:
        """Mark one notification read; returns None if it does not exist for the user."""
        query = select(Notification).where(Notification.id == notification_id)
        if user_id:
            query = query.where(Notification.user_id == user_id)
        result = await self.db.execute(query)
        notification = result.scalar_one_or_none()
        if not notification:
            return None

        notification.is_read = True
        await self.db.flush()
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        """Mark every unread notification read and return how many changed."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.flush()
        return result.rowcount or 0

    async def get_unread_count(self, user_id: UUID) -> int:
        """Count unread notifications."""
        count = await self.db.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return count or 0
