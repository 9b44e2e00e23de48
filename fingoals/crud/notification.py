# fingoals/crud/notification.py
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, update, desc, func
from fingoals.models.notification import Notification
from fingoals.schemas.notification import NotificationCreate
from fingoals.utils.notifications import send_realtime_notification
from typing import List, Optional
import logging
import uuid

logger = logging.getLogger(__name__)

async def create_notification(db: AsyncSession, notification: NotificationCreate) -> Notification:
    """Create a new notification"""
    db_notification = Notification(**notification.model_dump())
    db.add(db_notification)
    await db.commit()
    await db.refresh(db_notification)
    return db_notification

async def get_notifications_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    unread_only: bool = False,
    limit: int = 50
) -> List[Notification]:
    """Get notifications for a specific user, newest first"""
    query = select(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    query = query.order_by(desc(Notification.created_at)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())

async def get_unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
    )
    return result.scalar_one() or 0

async def mark_notification_as_read(db: AsyncSession, notification_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Notification]:
    """Mark a notification as read, ensuring it belongs to the specified user"""
    result = await db.execute(
        select(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
    )
    notification = result.scalars().first()

    if notification:
        notification.is_read = True
        await db.commit()
        await db.refresh(notification)
    return notification

async def mark_all_notifications_as_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount


class SqlNotificationDispatcher:
    """Stores the notification, then pushes it to any open websocket."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def dispatch(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        severity: str,
        action_url: Optional[str] = None,
    ) -> None:
        notification = NotificationCreate(
            user_id=user_id,
            title=title[:100],
            message=message[:500],
            severity=severity,
            action_url=action_url,
        )
        async with self.session_factory() as db:
            notification_obj = await create_notification(db, notification)
        logger.debug(f"Stored notification '{title}' for user {user_id}")

        await send_realtime_notification(user_id, notification_obj)
