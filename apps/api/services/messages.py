"""Direct messages between users."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import NotFound, ValidationFailed
from models.message import Message
from models.notification import NotificationType
from models.user import User
from services.cache import TTLCache
from services.notifications import create_notification
from services.pagination import MAX_PAGE_SIZE, paginate
from services.policy import Action, ensure_can_operate
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000
FOLDERS = ("inbox", "outbox")


def _cache_scope(user_id: str) -> str:
    return f"messages:{user_id}"


def _invalidate(cache: Optional[TTLCache], *user_ids: str) -> None:
    if cache is None:
        return
    for user_id in user_ids:
        cache.invalidate_prefix(_cache_scope(user_id))


def serialize_message(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "subject": message.subject,
        "content": message.content,
        "parent_id": message.parent_id,
        "conversation_id": message.conversation_id,
        "is_read": bool(message.is_read),
        "read_at": isoformat(message.read_at),
        "created_at": isoformat(message.created_at),
    }


def _visible_to(user_id: str):
    return or_(
        and_(Message.sender_id == user_id, Message.sender_deleted_at.is_(None)),
        and_(Message.receiver_id == user_id, Message.receiver_deleted_at.is_(None)),
    )


async def send_message(
    *,
    actor,
    receiver_id: str,
    content: str,
    db: AsyncSession,
    subject: Optional[str] = None,
    parent_id: Optional[str] = None,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    text = (content or "").strip()
    if not text:
        raise ValidationFailed("Message content must not be empty.")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed(f"Message content must be at most {MAX_MESSAGE_LENGTH} characters.")
    if receiver_id == actor.user_id:
        raise ValidationFailed("You cannot send a message to yourself.")

    conversation_id = None
    if parent_id:
        parent = await db.get(Message, parent_id)
        if parent is None:
            raise NotFound("Parent message not found.")
        ensure_can_operate(actor, parent, Action.READ, "Not permitted to reply to this message.")
        counterpart = parent.receiver_id if parent.sender_id == actor.user_id else parent.sender_id
        if receiver_id != counterpart:
            raise ValidationFailed("A reply must go to the other participant of the conversation.")
        conversation_id = parent.conversation_id or parent.id

    receiver = await db.get(User, receiver_id)
    if receiver is None or not receiver.is_active:
        raise NotFound("Recipient not found.")

    message = Message(
        id=str(uuid.uuid4()),
        sender_id=actor.user_id,
        receiver_id=receiver.id,
        subject=subject[:200] if subject else None,
        content=text,
        parent_id=parent_id or None,
        is_read=False,
        created_at=utcnow(),
    )
    message.conversation_id = conversation_id or message.id
    db.add(message)
    create_notification(
        db,
        user_id=receiver.id,
        type=NotificationType.MESSAGE.value,
        title=f"New message from {actor.username or 'a user'}",
        content=(subject or text)[:200],
        related_entity_type="message",
        related_entity_id=message.id,
        triggered_by_user_id=actor.user_id,
    )
    await db.commit()
    _invalidate(cache, actor.user_id, receiver.id)
    logger.info("User %s sent message %s to %s", actor.user_id, message.id, receiver.id)
    return serialize_message(message)


async def list_messages(
    *,
    actor,
    db: AsyncSession,
    folder: str = "inbox",
    page: int = 1,
    page_size: int = 20,
    unread_only: bool = False,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    if folder not in FOLDERS:
        raise ValidationFailed(f"folder must be one of {', '.join(FOLDERS)}.")
    page = max(int(page), 1)
    page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))

    key = None
    if cache is not None:
        key = TTLCache.build_key(
            _cache_scope(actor.user_id),
            {"folder": folder, "page": page, "page_size": page_size, "unread_only": bool(unread_only)},
        )
        cached = cache.get(key)
        if cached is not None:
            return cached

    if folder == "inbox":
        stmt = select(Message).where(
            Message.receiver_id == actor.user_id,
            Message.receiver_deleted_at.is_(None),
        )
        if unread_only:
            stmt = stmt.where(Message.is_read.is_(False))
    else:
        stmt = select(Message).where(
            Message.sender_id == actor.user_id,
            Message.sender_deleted_at.is_(None),
        )
    stmt = stmt.order_by(Message.created_at.desc(), Message.id)

    payload = await paginate(db, stmt, page=page, page_size=page_size, serialize=serialize_message)
    if cache is not None:
        cache.set(key, payload)
    return payload


async def get_conversation(
    *,
    actor,
    other_user_id: str,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, Any]:
    """Messages exchanged with one other user, oldest first."""
    stmt = (
        select(Message)
        .where(
            or_(
                and_(Message.sender_id == actor.user_id, Message.receiver_id == other_user_id),
                and_(Message.sender_id == other_user_id, Message.receiver_id == actor.user_id),
            ),
            _visible_to(actor.user_id),
        )
        .order_by(Message.created_at.asc(), Message.id)
    )
    return await paginate(db, stmt, page=page, page_size=page_size, serialize=serialize_message)


async def _load_message(actor, message_id: str, db: AsyncSession, action: Action) -> Message:
    message = await db.get(Message, message_id)
    if message is None:
        raise NotFound("Message not found.")
    ensure_can_operate(actor, message, action, "Not permitted to access this message.")
    hidden = (message.sender_id == actor.user_id and message.sender_deleted_at is not None) or (
        message.receiver_id == actor.user_id and message.receiver_deleted_at is not None
    )
    if hidden:
        raise NotFound("Message not found.")
    return message


async def get_message(*, actor, message_id: str, db: AsyncSession) -> Dict[str, Any]:
    message = await _load_message(actor, message_id, db, Action.READ)
    return serialize_message(message)


async def mark_message_read(
    *,
    actor,
    message_id: str,
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    message = await _load_message(actor, message_id, db, Action.READ)
    if message.receiver_id != actor.user_id:
        raise ValidationFailed("Only the recipient can mark a message as read.")
    if not message.is_read:
        message.is_read = True
        message.read_at = utcnow()
        await db.commit()
        _invalidate(cache, message.sender_id, message.receiver_id)
    return serialize_message(message)


async def delete_message(
    *,
    actor,
    message_id: str,
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
) -> None:
    """Hide the message from the actor's side only."""
    message = await _load_message(actor, message_id, db, Action.DELETE)
    now = utcnow()
    if message.sender_id == actor.user_id:
        message.sender_deleted_at = now
    if message.receiver_id == actor.user_id:
        message.receiver_deleted_at = now
    await db.commit()
    _invalidate(cache, actor.user_id)
    logger.info("User %s deleted message %s from their mailbox", actor.user_id, message_id)


async def count_unread_messages(*, actor, db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(Message.id)).where(
            Message.receiver_id == actor.user_id,
            Message.receiver_deleted_at.is_(None),
            Message.is_read.is_(False),
        )
    )
    return int(result.scalar() or 0)
