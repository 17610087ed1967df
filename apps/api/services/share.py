"""Share token lifecycle, reporting and administration."""

from __future__ import annotations

import logging
import secrets
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from errors import AppError, NotFound, ValidationFailed
from models.code_snippet import CodeSnippet
from models.share_access_log import ShareAccessLog
from models.share_token import SharePermission, ShareToken
from services.pagination import paginate
from services.passwords import hash_password
from services.policy import Action, ensure_can_operate
from services.share_serialization import serialize_access_log, serialize_share
from services.snippets import load_snippet
from services.timeutil import as_utc, isoformat, utcnow

logger = logging.getLogger(__name__)

MIN_EXPIRY_HOURS = 1
MAX_EXPIRY_HOURS = 24 * 365
MAX_ACCESS_LIMIT = 10000
MIN_SHARE_PASSWORD_LENGTH = 6
MAX_SHARE_PASSWORD_LENGTH = 64
TOKEN_GENERATION_ATTEMPTS = 5
BULK_OPERATIONS = ("revoke", "delete", "extend", "reset_stats")


def _validate_hours(hours: Any, field: str) -> int:
    try:
        value = int(hours)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be an integer.")
    if value < MIN_EXPIRY_HOURS or value > MAX_EXPIRY_HOURS:
        raise ValidationFailed(f"{field} must be between {MIN_EXPIRY_HOURS} and {MAX_EXPIRY_HOURS}.")
    return value


def _validate_max_access(value: Any) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("max_access_count must be an integer.")
    if limit < 0 or limit > MAX_ACCESS_LIMIT:
        raise ValidationFailed(f"max_access_count must be between 0 and {MAX_ACCESS_LIMIT}.")
    return limit


def _validate_permission(value: Any) -> str:
    try:
        return SharePermission(value).value
    except ValueError:
        raise ValidationFailed(f"Unknown share permission: {value}.")


def _hash_share_password(password: str) -> str:
    if not (MIN_SHARE_PASSWORD_LENGTH <= len(password) <= MAX_SHARE_PASSWORD_LENGTH):
        raise ValidationFailed(
            f"Share password must be {MIN_SHARE_PASSWORD_LENGTH}-{MAX_SHARE_PASSWORD_LENGTH} characters."
        )
    return hash_password(password)


async def generate_share_token(db: AsyncSession) -> str:
    """Return a URL-safe token string not used by any existing share."""
    for _ in range(TOKEN_GENERATION_ATTEMPTS):
        token = secrets.token_urlsafe(max(int(settings.SHARE_TOKEN_BYTES), 8))
        existing = await db.execute(select(ShareToken.id).where(ShareToken.token == token))
        if existing.scalar_one_or_none() is None:
            return token
        logger.warning("Share token collision, regenerating")
    raise RuntimeError("Could not generate a unique share token.")


async def _load_share(db: AsyncSession, share_id: str) -> ShareToken:
    share = await db.get(ShareToken, share_id)
    if share is None:
        raise NotFound("Share token not found.")
    return share


async def _load_managed_share(actor, share_id: str, db: AsyncSession) -> ShareToken:
    share = await _load_share(db, share_id)
    ensure_can_operate(actor, share, Action.MANAGE, "Not permitted to manage this share.")
    return share


async def _serialize_with_snippet(db: AsyncSession, share: ShareToken) -> Dict[str, Any]:
    snippet = await db.get(CodeSnippet, share.code_snippet_id)
    return serialize_share(share, snippet=snippet)


async def _delete_access_logs(db: AsyncSession, share_id: str) -> int:
    result = await db.execute(delete(ShareAccessLog).where(ShareAccessLog.share_token_id == share_id))
    return int(result.rowcount or 0)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def create_share_token(
    *,
    actor,
    code_snippet_id: str,
    db: AsyncSession,
    expires_in_hours: int = 24,
    max_access_count: int = 0,
    permission: str = SharePermission.READ_ONLY.value,
    description: str = "",
    password: Optional[str] = None,
    allow_download: bool = True,
    allow_copy: bool = True,
) -> Dict[str, Any]:
    ttl_hours = _validate_hours(expires_in_hours, "expires_in_hours")
    limit = _validate_max_access(max_access_count)
    permission_value = _validate_permission(permission)

    snippet = await load_snippet(db, code_snippet_id)
    ensure_can_operate(actor, snippet, Action.SHARE, "Not permitted to share this snippet.")

    now = utcnow()
    share = ShareToken(
        id=str(uuid.uuid4()),
        token=await generate_share_token(db),
        code_snippet_id=snippet.id,
        created_by=actor.user_id,
        expires_at=now + timedelta(hours=ttl_hours),
        is_active=True,
        access_count=0,
        max_access_count=limit,
        permission=permission_value,
        description=(description or "")[:500],
        password=_hash_share_password(password) if password else None,
        allow_download=bool(allow_download),
        allow_copy=bool(allow_copy),
        created_at=now,
        updated_at=now,
    )
    db.add(share)
    await db.commit()
    logger.info("User %s created share %s for snippet %s", actor.user_id, share.id, snippet.id)
    return serialize_share(share, now=now, snippet=snippet)


async def update_share_token(*, actor, share_id: str, changes: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
    share = await _load_managed_share(actor, share_id, db)

    if changes.get("description") is not None:
        share.description = str(changes["description"])[:500]
    if changes.get("permission") is not None:
        share.permission = _validate_permission(changes["permission"])
    if changes.get("allow_download") is not None:
        share.allow_download = bool(changes["allow_download"])
    if changes.get("allow_copy") is not None:
        share.allow_copy = bool(changes["allow_copy"])
    if changes.get("max_access_count") is not None:
        share.max_access_count = _validate_max_access(changes["max_access_count"])
    if changes.get("clear_password"):
        share.password = None
    elif changes.get("password"):
        share.password = _hash_share_password(str(changes["password"]))
    extend_hours = int(changes.get("extend_hours") or 0)
    if extend_hours:
        share.expires_at = as_utc(share.expires_at) + timedelta(
            hours=_validate_hours(extend_hours, "extend_hours")
        )

    share.updated_at = utcnow()
    await db.commit()
    logger.info("User %s updated share %s", actor.user_id, share.id)
    return await _serialize_with_snippet(db, share)


async def revoke_share_token(*, actor, share_id: str, db: AsyncSession) -> Dict[str, Any]:
    share = await _load_managed_share(actor, share_id, db)
    if share.is_active:
        share.is_active = False
        share.updated_at = utcnow()
        await db.commit()
        logger.info("User %s revoked share %s", actor.user_id, share.id)
    return {"id": share.id, "is_active": False, "revoked": True}


async def delete_share_token(*, actor, share_id: str, db: AsyncSession) -> None:
    share = await _load_managed_share(actor, share_id, db)
    await _delete_access_logs(db, share.id)
    await db.delete(share)
    await db.commit()
    logger.info("User %s deleted share %s", actor.user_id, share_id)


async def extend_share_expiry(*, actor, share_id: str, hours: Any, db: AsyncSession) -> Dict[str, Any]:
    extend_by = _validate_hours(hours, "hours")
    share = await _load_managed_share(actor, share_id, db)
    share.expires_at = as_utc(share.expires_at) + timedelta(hours=extend_by)
    share.updated_at = utcnow()
    await db.commit()
    logger.info("User %s extended share %s by %sh", actor.user_id, share.id, extend_by)
    return await _serialize_with_snippet(db, share)


async def reset_share_stats(*, actor, share_id: str, db: AsyncSession) -> Dict[str, Any]:
    share = await _load_managed_share(actor, share_id, db)
    share.access_count = 0
    share.last_accessed_at = None
    share.updated_at = utcnow()
    removed = await _delete_access_logs(db, share.id)
    await db.commit()
    logger.info("User %s reset stats of share %s (%s log rows removed)", actor.user_id, share.id, removed)
    return {"id": share.id, "access_count": 0, "removed_access_logs": removed}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_share(*, actor, share_id: str, db: AsyncSession) -> Dict[str, Any]:
    share = await _load_managed_share(actor, share_id, db)
    return await _serialize_with_snippet(db, share)


async def list_user_shares(
    *,
    actor,
    user_id: str,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
) -> Dict[str, Any]:
    if user_id != actor.user_id:
        ensure_can_operate(actor, None, Action.ADMINISTER, "Not permitted to view another user's shares.")
    stmt = (
        select(ShareToken)
        .where(ShareToken.created_by == user_id)
        .order_by(ShareToken.created_at.desc(), ShareToken.id)
    )
    now = utcnow()
    return await paginate(db, stmt, page=page, page_size=page_size, serialize=lambda row: serialize_share(row, now=now))


async def list_snippet_shares(*, actor, snippet_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.MANAGE, "Not permitted to view shares of this snippet.")
    result = await db.execute(
        select(ShareToken)
        .where(ShareToken.code_snippet_id == snippet_id)
        .order_by(ShareToken.created_at.desc(), ShareToken.id)
    )
    now = utcnow()
    return [serialize_share(row, now=now, snippet=snippet) for row in result.scalars().all()]


def _breakdown(counts: Dict[str, int]) -> List[Dict[str, Any]]:
    total = sum(counts.values())
    return [
        {
            "name": name,
            "access_count": count,
            "percentage": round(count * 100.0 / total, 2) if total else 0.0,
        }
        for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


async def get_share_stats(*, actor, share_id: str, db: AsyncSession, days: int = 30) -> Dict[str, Any]:
    share = await _load_managed_share(actor, share_id, db)
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    window_start = today - timedelta(days=max(int(days), 1) - 1)

    result = await db.execute(
        select(ShareAccessLog).where(
            ShareAccessLog.share_token_id == share.id,
            ShareAccessLog.accessed_at >= min(window_start, now - timedelta(days=30)),
        )
    )
    logs = result.scalars().all()

    successes = [log for log in logs if log.is_success]
    daily_counts: Dict[str, int] = defaultdict(int)
    daily_visitors: Dict[str, set] = defaultdict(set)
    browsers: Dict[str, int] = defaultdict(int)
    devices: Dict[str, int] = defaultdict(int)
    today_count = week_count = month_count = 0
    for log in successes:
        accessed_at = as_utc(log.accessed_at)
        if accessed_at >= today:
            today_count += 1
        if accessed_at >= now - timedelta(days=7):
            week_count += 1
        if accessed_at >= now - timedelta(days=30):
            month_count += 1
        if accessed_at >= window_start:
            day_key = accessed_at.date().isoformat()
            daily_counts[day_key] += 1
            daily_visitors[day_key].add(log.ip_address)
        browsers[log.browser or "Unknown"] += 1
        devices[log.device_type or "Unknown"] += 1

    daily_stats = []
    cursor = window_start
    while cursor <= today:
        key = cursor.date().isoformat()
        daily_stats.append(
            {"date": key, "access_count": daily_counts.get(key, 0), "unique_visitors": len(daily_visitors.get(key, ()))}
        )
        cursor += timedelta(days=1)

    payload = serialize_share(share, now=now)
    return {
        "share_token_id": share.id,
        "token": share.token,
        "total_access_count": payload["access_count"],
        "remaining_access_count": payload["remaining_access_count"],
        "today_access_count": today_count,
        "this_week_access_count": week_count,
        "this_month_access_count": month_count,
        "failed_attempt_count": len(logs) - len(successes),
        "last_accessed_at": payload["last_accessed_at"],
        "created_at": payload["created_at"],
        "expires_at": payload["expires_at"],
        "is_expired": payload["is_expired"],
        "is_access_limit_reached": payload["is_access_limit_reached"],
        "daily_stats": daily_stats,
        "browser_stats": _breakdown(browsers),
        "device_stats": _breakdown(devices),
    }


async def list_share_access_logs(
    *,
    actor,
    share_id: str,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    is_success: Optional[bool] = None,
) -> Dict[str, Any]:
    share = await _load_managed_share(actor, share_id, db)
    stmt = select(ShareAccessLog).where(ShareAccessLog.share_token_id == share.id)
    if is_success is not None:
        stmt = stmt.where(ShareAccessLog.is_success.is_(bool(is_success)))
    stmt = stmt.order_by(ShareAccessLog.accessed_at.desc(), ShareAccessLog.id)
    return await paginate(db, stmt, page=page, page_size=page_size, serialize=serialize_access_log)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


async def list_all_shares(
    *,
    actor,
    db: AsyncSession,
    filters: Dict[str, Any],
    page: int = 1,
    page_size: int = 20,
) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")
    now = utcnow()
    stmt = select(ShareToken).join(CodeSnippet, CodeSnippet.id == ShareToken.code_snippet_id)

    search = (filters.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(
                ShareToken.token.ilike(pattern),
                ShareToken.description.ilike(pattern),
                CodeSnippet.title.ilike(pattern),
            )
        )
    if filters.get("created_by"):
        stmt = stmt.where(ShareToken.created_by == filters["created_by"])
    if filters.get("code_snippet_id"):
        stmt = stmt.where(ShareToken.code_snippet_id == filters["code_snippet_id"])
    if filters.get("is_active") is not None:
        stmt = stmt.where(ShareToken.is_active.is_(bool(filters["is_active"])))
    if filters.get("is_expired") is not None:
        stmt = stmt.where(ShareToken.expires_at <= now if filters["is_expired"] else ShareToken.expires_at > now)
    if filters.get("has_password") is not None:
        stmt = stmt.where(ShareToken.password.isnot(None) if filters["has_password"] else ShareToken.password.is_(None))
    if filters.get("permission"):
        stmt = stmt.where(ShareToken.permission == _validate_permission(filters["permission"]))

    stmt = stmt.order_by(ShareToken.created_at.desc(), ShareToken.id)
    return await paginate(db, stmt, page=page, page_size=page_size, serialize=lambda row: serialize_share(row, now=now))


async def get_system_share_stats(*, actor, db: AsyncSession, top: int = 10) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    total = int((await db.execute(select(func.count(ShareToken.id)))).scalar() or 0)
    active = int(
        (
            await db.execute(
                select(func.count(ShareToken.id)).where(ShareToken.is_active.is_(True), ShareToken.expires_at > now)
            )
        ).scalar()
        or 0
    )
    expired = int(
        (await db.execute(select(func.count(ShareToken.id)).where(ShareToken.expires_at <= now))).scalar() or 0
    )
    revoked = int(
        (await db.execute(select(func.count(ShareToken.id)).where(ShareToken.is_active.is_(False)))).scalar() or 0
    )
    total_access = int((await db.execute(select(func.coalesce(func.sum(ShareToken.access_count), 0)))).scalar() or 0)
    today_access = int(
        (
            await db.execute(
                select(func.count(ShareAccessLog.id)).where(
                    ShareAccessLog.is_success.is_(True), ShareAccessLog.accessed_at >= today
                )
            )
        ).scalar()
        or 0
    )
    active_users = int(
        (await db.execute(select(func.count(func.distinct(ShareToken.created_by))))).scalar() or 0
    )

    permission_rows = await db.execute(
        select(ShareToken.permission, func.count(ShareToken.id)).group_by(ShareToken.permission)
    )
    language_rows = await db.execute(
        select(CodeSnippet.language, func.count(ShareToken.id))
        .join(CodeSnippet, CodeSnippet.id == ShareToken.code_snippet_id)
        .group_by(CodeSnippet.language)
    )
    popular_rows = await db.execute(
        select(ShareToken, CodeSnippet)
        .join(CodeSnippet, CodeSnippet.id == ShareToken.code_snippet_id)
        .order_by(ShareToken.access_count.desc(), ShareToken.created_at.desc())
        .limit(max(int(top), 1))
    )

    def _share_of(count: int) -> float:
        return round(count * 100.0 / total, 2) if total else 0.0

    return {
        "total_shares": total,
        "active_shares": active,
        "expired_shares": expired,
        "revoked_shares": revoked,
        "total_access_count": total_access,
        "today_access_count": today_access,
        "active_user_count": active_users,
        "permission_stats": [
            {"permission": permission, "share_count": int(count), "percentage": _share_of(int(count))}
            for permission, count in permission_rows.all()
        ],
        "language_stats": [
            {"language": language, "share_count": int(count), "percentage": _share_of(int(count))}
            for language, count in language_rows.all()
        ],
        "popular_shares": [
            {
                "share_token_id": share.id,
                "token": share.token,
                "code_snippet_title": snippet.title,
                "code_snippet_language": snippet.language,
                "created_by": share.created_by,
                "access_count": int(share.access_count or 0),
                "created_at": isoformat(share.created_at),
            }
            for share, snippet in popular_rows.all()
        ],
    }


async def bulk_share_operation(
    *,
    actor,
    share_ids: Iterable[str],
    operation: str,
    db: AsyncSession,
    operation_param: Optional[int] = None,
) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")
    if operation not in BULK_OPERATIONS:
        raise ValidationFailed(f"Unsupported bulk operation: {operation}.")
    if operation == "extend":
        _validate_hours(operation_param, "operation_param")

    ids = list(dict.fromkeys(share_ids))
    failed_ids: List[str] = []
    reasons: List[str] = []
    for share_id in ids:
        try:
            if operation == "revoke":
                await revoke_share_token(actor=actor, share_id=share_id, db=db)
            elif operation == "delete":
                await delete_share_token(actor=actor, share_id=share_id, db=db)
            elif operation == "extend":
                await extend_share_expiry(actor=actor, share_id=share_id, hours=operation_param, db=db)
            else:
                await reset_share_stats(actor=actor, share_id=share_id, db=db)
        except AppError as exc:
            await db.rollback()
            failed_ids.append(share_id)
            reasons.append(f"{share_id}: {exc.message}")

    logger.info(
        "Admin %s ran bulk %s on %s shares (%s failed)", actor.user_id, operation, len(ids), len(failed_ids)
    )
    return {
        "operation": operation,
        "total_count": len(ids),
        "success_count": len(ids) - len(failed_ids),
        "failure_count": len(failed_ids),
        "failed_share_token_ids": failed_ids,
        "failure_reasons": reasons,
    }


async def purge_access_logs(*, db: AsyncSession, older_than_days: int, now: Optional[datetime] = None) -> int:
    """Delete access log rows older than the retention window."""
    if int(older_than_days) < 1:
        raise ValidationFailed("older_than_days must be at least 1.")
    cutoff = (now or utcnow()) - timedelta(days=int(older_than_days))
    result = await db.execute(delete(ShareAccessLog).where(ShareAccessLog.accessed_at < cutoff))
    await db.commit()
    removed = int(result.rowcount or 0)
    logger.info("Purged %s share access log rows older than %s", removed, cutoff.isoformat())
    return removed


async def purge_expired_share_tokens(
    *,
    db: AsyncSession,
    min_days_expired: int,
    now: Optional[datetime] = None,
) -> int:
    """Hard-delete shares expired for at least ``min_days_expired`` days, with their logs.

    Only reachable through the explicit admin action; recently expired shares keep
    answering 410 and can still be extended by their owners.
    """
    if int(min_days_expired) < 1:
        raise ValidationFailed("min_days_expired must be at least 1.")
    cutoff = (now or utcnow()) - timedelta(days=int(min_days_expired))
    expired_ids = (
        await db.execute(select(ShareToken.id).where(ShareToken.expires_at <= cutoff))
    ).scalars().all()
    if not expired_ids:
        return 0
    await db.execute(delete(ShareAccessLog).where(ShareAccessLog.share_token_id.in_(expired_ids)))
    await db.execute(delete(ShareToken).where(ShareToken.id.in_(expired_ids)))
    await db.commit()
    logger.info("Purged %s share tokens expired before %s", len(expired_ids), cutoff.isoformat())
    return len(expired_ids)
