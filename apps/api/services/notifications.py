"""In-app notifications."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import NotFound
from models.notification import Notification
from services.pagination import paginate
from services.policy import Action, ensure_can_operate
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "content": notification.content,
        "related_entity_type": notification.related_entity_type,
        "related_entity_id": notification.related_entity_id,
        "triggered_by_user_id": notification.triggered_by_user_id,
        "is_read": bool(notification.is_read),
        "read_at": isoformat(notification.read_at),
        "created_at": isoformat(notification.created_at),
    }


def create_notification(
    db: AsyncSession,
    *,
    user_id: str,
    type: str,
    title: str,
    content: Optional[str] = None,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    triggered_by_user_id: Optional[str] = None,
) -> Optional[Notification]:
    """Stage a notification in the caller's transaction.

    Users are never notified about their own actions; None is returned then.
    """
    if triggered_by_user_id and triggered_by_user_id == user_id:
        return None
    notification = Notification(
        id=str(uuid.uuid4()),
        user_id=user_id,
        type=type,
        title=title[:200],
        content=content,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        triggered_by_user_id=triggered_by_user_id,
        is_read=False,
        is_deleted=False,
        created_at=utcnow(),
    )
    db.add(notification)
    return notification


async def list_notifications(
    *,
    actor,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    unread_only: bool = False,
    type: Optional[str] = None,
) -> Dict[str, Any]:
    stmt = select(Notification).where(
        Notification.user_id == actor.user_id,
        Notification.is_deleted.is_(False),
    )
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    if type:
        stmt = stmt.where(Notification.type == type)
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id)
    return await paginate(db, stmt, page=page, page_size=page_size, serialize=serialize_notification)


async def count_unread_notifications(*, actor, db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == actor.user_id,
            Notification.is_deleted.is_(False),
            Notification.is_read.is_(False),
        )
    )
    return int(result.scalar() or 0)


async def _load_notification(actor, notification_id: str, db: AsyncSession) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.is_deleted:
        raise NotFound("Notification not found.")
    ensure_can_operate(actor, notification, Action.EDIT, "Not permitted to modify this notification.")
    return notification


async def mark_notification_read(*, actor, notification_id: str, db: AsyncSession) -> Dict[str, Any]:
    notification = await _load_notification(actor, notification_id, db)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await db.commit()
    return serialize_notification(notification)


async def mark_all_notifications_read(*, actor, db: AsyncSession) -> int:
    result = await db.execute(
        update(Notification)
        .where(
            Notification.user_id == actor.user_id,
            Notification.is_deleted.is_(False),
            Notification.is_read.is_(False),
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return int(result.rowcount or 0)


async def delete_notification(*, actor, notification_id: str, db: AsyncSession) -> None:
    notification = await _load_notification(actor, notification_id, db)
    notification.is_deleted = True
    await db.commit()
    logger.info("User %s deleted notification %s", actor.user_id, notification_id)
