"""Account administration: listing, profile edits, status, password resets, deletion."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import Conflict, Forbidden, NotFound, ValidationFailed
from models.clipboard_history import ClipboardHistory
from models.code_snippet import CodeSnippet
from models.comment import Comment, CommentLike, CommentReport
from models.message import Message
from models.notification import Notification
from models.share_token import ShareToken
from models.snippet_version import SnippetVersion
from models.tag import Tag
from models.user import User, UserRole
from services.auth import serialize_user
from services.pagination import paginate
from services.passwords import hash_password, validate_password_strength
from services.policy import Action, ensure_can_operate
from services.system_settings import load_effective_settings
from services.timeutil import utcnow

logger = logging.getLogger(__name__)

_ROLES = {role.value for role in UserRole}
_SELF_EDITABLE = ("username", "email")
_ADMIN_EDITABLE = ("username", "email", "role", "is_active")


def _require_admin(actor) -> None:
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")


async def _load_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def _validate_role(role: str) -> str:
    if role not in _ROLES:
        raise ValidationFailed(f"Unknown role '{role}'.")
    return role


async def _check_password(db: AsyncSession, password: str) -> None:
    effective = await load_effective_settings(db)
    weakness = validate_password_strength(password or "", int(effective["security"]["min_password_length"]))
    if weakness:
        raise ValidationFailed(weakness)


async def _ensure_unique(
    db: AsyncSession,
    *,
    username: Optional[str],
    email: Optional[str],
    exclude_id: Optional[str] = None,
) -> None:
    clauses = []
    if username:
        clauses.append(func.lower(User.username) == username.lower())
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return
    stmt = select(User.id).where(or_(*clauses))
    if exclude_id:
        stmt = stmt.where(User.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise Conflict("Username or email is already registered.")


async def list_users(
    *,
    actor,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Dict[str, Any]:
    _require_admin(actor)
    stmt = select(User)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
    if role:
        stmt = stmt.where(User.role == _validate_role(role))
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    stmt = stmt.order_by(User.created_at.desc(), User.username)
    return await paginate(db, stmt, page=page, page_size=page_size, serialize=serialize_user)


async def get_user(*, actor, user_id: str, db: AsyncSession) -> Dict[str, Any]:
    user = await _load_user(db, user_id)
    ensure_can_operate(actor, user, Action.READ, "Not permitted to view this account.")
    return serialize_user(user)


async def create_user(
    *,
    actor,
    username: str,
    email: str,
    password: str,
    db: AsyncSession,
    role: str = UserRole.VIEWER.value,
) -> Dict[str, Any]:
    _require_admin(actor)
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationFailed("Username and email are required.")
    _validate_role(role)
    await _check_password(db, password)
    await _ensure_unique(db, username=username, email=email)

    user = User(
        id=str(uuid.uuid4()),
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
        created_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    logger.info("Admin %s created user %s with role %s", actor.user_id, user.id, role)
    return serialize_user(user)


async def update_user(*, actor, user_id: str, changes: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
    """Admins edit any field; everyone else only their own username and email."""
    user = await _load_user(db, user_id)
    ensure_can_operate(actor, user, Action.EDIT, "Not permitted to edit this account.")
    requested = {key: value for key, value in changes.items() if value is not None}

    allowed = _ADMIN_EDITABLE if actor.is_admin else _SELF_EDITABLE
    refused = sorted(set(requested) - set(allowed))
    if refused:
        raise Forbidden(f"Not permitted to change: {', '.join(refused)}.")
    if user.id == actor.user_id and (
        requested.get("is_active") is False or requested.get("role", user.role) != user.role
    ):
        raise ValidationFailed("You cannot change your own role or disable your own account.")

    if "username" in requested:
        requested["username"] = requested["username"].strip()
        if not requested["username"]:
            raise ValidationFailed("Username must not be empty.")
    if "email" in requested:
        requested["email"] = requested["email"].strip().lower()
        if not requested["email"]:
            raise ValidationFailed("Email must not be empty.")
    if "role" in requested:
        _validate_role(requested["role"])
    await _ensure_unique(db, username=requested.get("username"), email=requested.get("email"), exclude_id=user.id)

    for field, value in requested.items():
        setattr(user, field, value)
    user.updated_at = utcnow()
    await db.commit()
    logger.info("User %s updated account %s (%s)", actor.user_id, user.id, ", ".join(sorted(requested)))
    return serialize_user(user)


async def set_user_status(*, actor, user_id: str, is_active: bool, db: AsyncSession) -> Dict[str, Any]:
    _require_admin(actor)
    user = await _load_user(db, user_id)
    if user.id == actor.user_id and not is_active:
        raise ValidationFailed("You cannot disable your own account.")
    user.is_active = bool(is_active)
    user.updated_at = utcnow()
    await db.commit()
    logger.info("Admin %s set user %s active=%s", actor.user_id, user.id, user.is_active)
    return serialize_user(user)


async def reset_password(*, actor, user_id: str, new_password: str, db: AsyncSession) -> Dict[str, Any]:
    _require_admin(actor)
    user = await _load_user(db, user_id)
    await _check_password(db, new_password)
    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    await db.commit()
    logger.info("Admin %s reset the password of user %s", actor.user_id, user.id)
    return {"user_id": user.id, "password_reset": True}


async def _owned_content(db: AsyncSession, user_id: str) -> Dict[str, int]:
    counts = {}
    for label, column in (
        ("snippets", CodeSnippet.created_by),
        ("share_tokens", ShareToken.created_by),
        ("comments", Comment.user_id),
        ("sent_messages", Message.sender_id),
        ("received_messages", Message.receiver_id),
    ):
        result = await db.execute(select(func.count()).where(column == user_id))
        counts[label] = int(result.scalar() or 0)
    return counts


async def delete_user(*, actor, user_id: str, db: AsyncSession) -> None:
    """Hard-delete an account that owns no content.

    Accounts with snippets, shares, comments or messages must be deactivated
    instead. Likes, filed reports, notifications and copy history go with the
    account; references it left as moderator, notifier or author are cleared.
    """
    _require_admin(actor)
    user = await _load_user(db, user_id)
    if user.id == actor.user_id:
        raise ValidationFailed("You cannot delete your own account.")

    owned = {label: count for label, count in (await _owned_content(db, user.id)).items() if count}
    if owned:
        summary = ", ".join(f"{count} {label}" for label, count in owned.items())
        raise Conflict(f"User still owns content ({summary}); deactivate the account instead.")

    liked = (
        await db.execute(select(CommentLike.comment_id).where(CommentLike.user_id == user.id))
    ).scalars().all()
    await db.execute(delete(CommentLike).where(CommentLike.user_id == user.id))
    for comment_id in set(liked):
        remaining = select(func.count(CommentLike.id)).where(CommentLike.comment_id == comment_id).scalar_subquery()
        await db.execute(update(Comment).where(Comment.id == comment_id).values(like_count=remaining))

    await db.execute(delete(CommentReport).where(CommentReport.user_id == user.id))
    await db.execute(delete(Notification).where(Notification.user_id == user.id))
    await db.execute(delete(ClipboardHistory).where(ClipboardHistory.user_id == user.id))
    await db.execute(
        update(Notification).where(Notification.triggered_by_user_id == user.id).values(triggered_by_user_id=None)
    )
    await db.execute(update(CommentReport).where(CommentReport.handled_by == user.id).values(handled_by=None))
    await db.execute(update(SnippetVersion).where(SnippetVersion.created_by == user.id).values(created_by=None))
    await db.execute(update(Tag).where(Tag.created_by == user.id).values(created_by=None))

    await db.delete(user)
    await db.commit()
    logger.info("Admin %s deleted user %s (%s)", actor.user_id, user_id, user.username)
