"""Notification sink.

``notify`` is fire-and-forget: it writes in its own session so a failure can
never roll back the caller's transaction, and it only logs errors.
"""
import json
import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import database
from app.core.config import settings
from app.core.errors import NotFoundError
from app.core.redis_client import get_redis
from app.models.notification import Notification
from app.models.user import User
from app.services.access import parse_id

logger = logging.getLogger(__name__)

SHARE_INVITATION = "share_invitation"
WORKSPACE_INVITATION = "workspace_invitation"
SHARE_ACCEPTED = "share_accepted"
USER_REGISTERED = "user_registered"


async def notify(
    recipient_email: str,
    type: str,
    content: str,
    link: Optional[str] = None,
    metadata: Optional[dict] = None
) -> None:
    """Record a notification for ``recipient_email`` and publish it"""
    try:
        async with database.AsyncSessionLocal() as session:
            notification = Notification(
                recipient_email=recipient_email,
                type=type,
                content=content,
                link=link,
                payload=metadata or {},
            )
            session.add(notification)
            await session.commit()
            notification_id = notification.id
    except Exception:
        logger.exception("Failed to store %s notification for %s", type, recipient_email)
        return

    message = {
        "id": notification_id,
        "recipient_email": recipient_email,
        "type": type,
        "content": content,
        "link": link,
        "metadata": metadata or {},
    }
    try:
        redis_client = await get_redis()
        await redis_client.publish(settings.NOTIFICATIONS_CHANNEL, json.dumps(message))
    except Exception:
        logger.warning("Failed to publish %s notification", type, exc_info=True)
        return
    logger.info("Notification published: %s -> %s", type, recipient_email)


def _addressed_to(user: User):
    return Notification.recipient_email == user.email


async def list_notifications(db: AsyncSession, user: User, limit: int = 50) -> List[Notification]:
    result = await db.execute(
        select(Notification)
        .where(_addressed_to(user))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def _get_own_notification(db: AsyncSession, notification_id, user: User) -> Notification:
    parsed = parse_id(notification_id)
    notification = await db.get(Notification, parsed) if parsed is not None else None
    # Someone else's notification is reported as missing
    if notification is None or notification.recipient_email != user.email:
        raise NotFoundError("Notification not found")
    return notification


async def mark_read(db: AsyncSession, notification_id, user: User) -> None:
    notification = await _get_own_notification(db, notification_id, user)
    notification.read = True
    await db.commit()


async def mark_all_read(db: AsyncSession, user: User) -> int:
    result = await db.execute(
        update(Notification)
        .where(_addressed_to(user), Notification.read == False)  # noqa: E712
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


async def delete_notification(db: AsyncSession, notification_id, user: User) -> None:
    notification = await _get_own_notification(db, notification_id, user)
    await db.delete(notification)
    await db.commit()
