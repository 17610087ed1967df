"""Account registration and password login."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import Conflict, Forbidden, Unauthenticated, ValidationFailed
from models.user import User, UserRole
from services.passwords import hash_password, validate_password_strength, verify_password
from services.session_token import create_session_token
from services.system_settings import load_effective_settings
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "user_id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "is_active": bool(user.is_active),
        "created_at": isoformat(user.created_at),
    }


def _session_payload(user: User, timeout_minutes: int) -> Dict[str, Any]:
    session = create_session_token(
        user.id,
        role=user.role,
        username=user.username,
        timeout_minutes=timeout_minutes,
    )
    payload = serialize_user(user)
    payload["session_token"] = session["token"]
    payload["session_expires_at"] = session["expires_at"]
    return payload


async def register_user(*, username: str, email: str, password: str, db: AsyncSession) -> Dict[str, Any]:
    """Create an account and return it with a fresh session token.

    The very first account becomes the administrator.
    """
    effective = await load_effective_settings(db)
    if not effective["site"]["allow_registration"]:
        raise Forbidden("Registration is currently disabled.")

    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationFailed("Username and email are required.")
    weakness = validate_password_strength(password, int(effective["security"]["min_password_length"]))
    if weakness:
        raise ValidationFailed(weakness)

    clash = await db.execute(
        select(User.id).where(or_(func.lower(User.username) == username.lower(), User.email == email))
    )
    if clash.first() is not None:
        raise Conflict("Username or email is already registered.")

    user_count = int((await db.execute(select(func.count(User.id)))).scalar() or 0)
    user = User(
        id=str(uuid.uuid4()),
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=UserRole.ADMIN.value if user_count == 0 else UserRole.EDITOR.value,
        is_active=True,
        created_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    logger.info("Registered user %s (%s) with role %s", user.id, user.username, user.role)
    return _session_payload(user, int(effective["security"]["session_timeout_minutes"]))


async def login_user(*, login: str, password: str, db: AsyncSession) -> Dict[str, Any]:
    """Authenticate by username or email."""
    value = (login or "").strip()
    result = await db.execute(
        select(User).where(or_(func.lower(User.username) == value.lower(), User.email == value.lower()))
    )
    user = result.scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", value)
        raise Unauthenticated("Invalid username or password.")
    if not user.is_active:
        raise Forbidden("Account is disabled.")
    effective = await load_effective_settings(db)
    return _session_payload(user, int(effective["security"]["session_timeout_minutes"]))
