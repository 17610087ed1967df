"""Share token access gate.

Every access attempt runs the same ordered checks (unknown token, revoked,
expired, quota, password), appends exactly one ``ShareAccessLog`` row, and on
success bumps the token's counter with a single guarded UPDATE so concurrent
requests can never push ``access_count`` past ``max_access_count``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import DenyReason, ShareAccessDenied
from models.code_snippet import CodeSnippet
from models.share_access_log import ShareAccessLog
from models.share_token import ShareToken
from services.passwords import verify_password
from services.share_serialization import serialize_share
from services.timeutil import as_utc, utcnow
from services.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


@dataclass
class AccessClient:
    """Request metadata recorded with each access attempt."""

    ip_address: str = "unknown"
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    accept_language: Optional[str] = None


def evaluate_share(
    share: Optional[ShareToken],
    password: Optional[str],
    now: datetime,
) -> Optional[DenyReason]:
    """Return the first reason the token is unusable, or None when access is allowed."""
    if share is None:
        return DenyReason.NOT_FOUND
    if not share.is_active:
        return DenyReason.REVOKED
    if now >= as_utc(share.expires_at):
        return DenyReason.EXPIRED
    max_access = int(share.max_access_count or 0)
    if max_access > 0 and int(share.access_count or 0) >= max_access:
        return DenyReason.QUOTA_EXCEEDED
    if share.password and not verify_password(password or "", share.password):
        return DenyReason.BAD_PASSWORD
    return None


async def load_share_by_token(db: AsyncSession, token: str) -> Optional[ShareToken]:
    value = str(token or "").strip()
    if not value:
        return None
    result = await db.execute(select(ShareToken).where(ShareToken.token == value))
    return result.scalar_one_or_none()


async def _consume_access(db: AsyncSession, share: ShareToken, now: datetime) -> bool:
    """Atomically count one access; False when the quota was taken by a concurrent request."""
    stmt = (
        update(ShareToken)
        .where(
            ShareToken.id == share.id,
            ShareToken.is_active.is_(True),
            or_(
                ShareToken.max_access_count == 0,
                ShareToken.access_count < ShareToken.max_access_count,
            ),
        )
        .values(access_count=ShareToken.access_count + 1, last_accessed_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


def _clip(value: Optional[str], limit: int) -> Optional[str]:
    return value[:limit] if value else None


def token_hint(token: str) -> str:
    """Leading characters of a token, safe to write to logs."""
    return f"{token[:6]}..." if token else "-"


def _build_log(
    share: Optional[ShareToken],
    client: AccessClient,
    now: datetime,
    reason: Optional[DenyReason],
) -> ShareAccessLog:
    ua_fields = parse_user_agent(client.user_agent)
    return ShareAccessLog(
        id=str(uuid.uuid4()),
        share_token_id=share.id if share else None,
        code_snippet_id=share.code_snippet_id if share else None,
        ip_address=(client.ip_address or "unknown")[:45],
        user_agent=_clip(client.user_agent, 500),
        referer=_clip(client.referer, 500),
        accept_language=_clip(client.accept_language, 50),
        browser=ua_fields["browser"],
        operating_system=ua_fields["operating_system"],
        device_type=ua_fields["device_type"],
        is_success=reason is None,
        failure_reason=reason.value if reason else None,
        accessed_at=now,
    )


async def access_share(
    *,
    token: str,
    password: Optional[str],
    client: AccessClient,
    db: AsyncSession,
) -> Dict[str, Any]:
    """Validate a token, count the access and return the shared snippet.

    Raises ``ShareAccessDenied`` after the failed attempt has been logged.
    """
    now = utcnow()
    share = await load_share_by_token(db, token)
    reason = evaluate_share(share, password, now)

    snippet: Optional[CodeSnippet] = None
    if reason is None:
        snippet = await db.get(CodeSnippet, share.code_snippet_id)
        if snippet is None:
            reason = DenyReason.NOT_FOUND
    if reason is None and not await _consume_access(db, share, now):
        reason = DenyReason.QUOTA_EXCEEDED

    log = _build_log(share, client, now, reason)
    db.add(log)
    await db.commit()

    if reason is not None:
        logger.info(
            "Share access denied token=%s reason=%s ip=%s",
            token_hint(token),
            reason.value,
            client.ip_address,
        )
        raise ShareAccessDenied(reason)

    await db.refresh(share)
    logger.info(
        "Share access granted token=%s snippet=%s count=%s",
        token_hint(token),
        share.code_snippet_id,
        share.access_count,
    )
    payload = serialize_share(share, now=now, snippet=snippet)
    return {
        "success": True,
        "access_log_id": log.id,
        "share": payload,
        "snippet": {
            "id": snippet.id,
            "title": snippet.title,
            "description": snippet.description or "",
            "language": snippet.language,
            "code": snippet.code,
        },
    }


async def inspect_share(*, token: str, password: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    """Side-effect-free check of whether ``token`` would currently be accepted."""
    share = await load_share_by_token(db, token)
    reason = evaluate_share(share, password, utcnow())
    return {
        "is_valid": reason is None,
        "reason": reason.value if reason else None,
        "requires_password": bool(share and share.password),
    }
