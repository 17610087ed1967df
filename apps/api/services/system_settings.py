"""Admin-editable system settings stored as one row of JSON sections."""

from __future__ import annotations

import copy
import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import ValidationFailed
from models.system_settings import SystemSettings
from services.policy import Action, ensure_can_operate
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "site": {
        "site_name": "Code Snippet Share",
        "site_description": "Share and discuss code snippets",
        "logo_url": "/logo.png",
        "theme": "light",
        "language": "en-US",
        "page_size": 20,
        "allow_registration": True,
        "announcement": "",
    },
    "security": {
        "min_password_length": 8,
        "max_login_attempts": 5,
        "account_lockout_minutes": 30,
        "session_timeout_minutes": 120,
        "api_rate_limit": 100,
        "enable_login_logging": True,
    },
    "features": {
        "enable_sharing": True,
        "enable_comments": True,
        "enable_messages": True,
        "enable_notifications": True,
        "enable_search": True,
        "max_file_size_mb": 10,
    },
    "email": {
        "smtp_host": "",
        "smtp_port": 587,
        "smtp_username": "",
        "smtp_password": "",
        "from_email": "",
        "from_name": "",
        "enable_ssl": True,
        "max_retry_attempts": 3,
    },
}

SECTION_COLUMNS = {
    "site": "site_json",
    "security": "security_json",
    "features": "features_json",
    "email": "email_json",
}

_SECRET_KEYS = {("email", "smtp_password")}


def _merged(section: str, stored: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    values = copy.deepcopy(DEFAULT_SETTINGS[section])
    for key, value in (stored or {}).items():
        if key in values:
            values[key] = value
    return values


def _check_value(section: str, key: str, value: Any) -> Any:
    expected = type(DEFAULT_SETTINGS[section][key])
    if expected is bool:
        if not isinstance(value, bool):
            raise ValidationFailed(f"{section}.{key} must be a boolean.")
    elif expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationFailed(f"{section}.{key} must be an integer.")
        if value < 0:
            raise ValidationFailed(f"{section}.{key} must not be negative.")
    elif not isinstance(value, expected):
        raise ValidationFailed(f"{section}.{key} must be a {expected.__name__}.")
    return value


async def _load_row(db: AsyncSession) -> Optional[SystemSettings]:
    result = await db.execute(select(SystemSettings).order_by(SystemSettings.created_at).limit(1))
    return result.scalar_one_or_none()


async def load_effective_settings(db: AsyncSession) -> Dict[str, Dict[str, Any]]:
    """Stored values layered over the defaults, for internal consumers."""
    row = await _load_row(db)
    return {
        section: _merged(section, getattr(row, column) if row else None)
        for section, column in SECTION_COLUMNS.items()
    }


def _redact(values: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    redacted = copy.deepcopy(values)
    for section, key in _SECRET_KEYS:
        if redacted[section].get(key):
            redacted[section][key] = "********"
    return redacted


async def get_system_settings(*, actor, db: AsyncSession) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")
    row = await _load_row(db)
    payload: Dict[str, Any] = _redact(await load_effective_settings(db))
    payload["updated_by"] = row.updated_by if row else None
    payload["updated_at"] = isoformat((row.updated_at or row.created_at) if row else None)
    return payload


async def update_system_settings(*, actor, changes: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
    """Merge partial section updates; unknown sections or keys are rejected."""
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")
    if not isinstance(changes, dict) or not changes:
        raise ValidationFailed("No settings supplied.")

    for section, values in changes.items():
        if section not in DEFAULT_SETTINGS:
            raise ValidationFailed(f"Unknown settings section: {section}.")
        if not isinstance(values, dict):
            raise ValidationFailed(f"Settings section {section} must be an object.")
        for key, value in values.items():
            if key not in DEFAULT_SETTINGS[section]:
                raise ValidationFailed(f"Unknown setting: {section}.{key}.")
            _check_value(section, key, value)

    row = await _load_row(db)
    now = utcnow()
    if row is None:
        row = SystemSettings(
            id=str(uuid.uuid4()),
            site_json={},
            security_json={},
            features_json={},
            email_json={},
            created_at=now,
        )
        db.add(row)

    for section, values in changes.items():
        column = SECTION_COLUMNS[section]
        stored = dict(getattr(row, column) or {})
        stored.update(values)
        # Reassign so the JSON column is flagged dirty.
        setattr(row, column, stored)
    row.updated_by = actor.user_id
    row.updated_at = now
    await db.commit()
    logger.info("Admin %s updated settings sections %s", actor.user_id, sorted(changes))
    return await get_system_settings(actor=actor, db=db)


async def get_public_settings(*, db: AsyncSession) -> Dict[str, Any]:
    values = await load_effective_settings(db)
    return {"site": values["site"]}
