"""JSON shapes for share tokens and access logs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from config import settings
from models.code_snippet import CodeSnippet
from models.share_access_log import ShareAccessLog
from models.share_token import ShareToken
from services.timeutil import as_utc, isoformat, utcnow


def share_url(token: str) -> str:
    return f"{settings.SHARE_BASE_URL.rstrip('/')}/{token}"


def serialize_share(
    share: ShareToken,
    *,
    now: Optional[datetime] = None,
    snippet: Optional[CodeSnippet] = None,
) -> Dict[str, Any]:
    now = now or utcnow()
    max_access = int(share.max_access_count or 0)
    access_count = int(share.access_count or 0)
    limit_reached = max_access > 0 and access_count >= max_access
    payload: Dict[str, Any] = {
        "id": share.id,
        "token": share.token,
        "share_url": share_url(share.token),
        "code_snippet_id": share.code_snippet_id,
        "created_by": share.created_by,
        "expires_at": isoformat(share.expires_at),
        "created_at": isoformat(share.created_at),
        "updated_at": isoformat(share.updated_at),
        "is_active": bool(share.is_active),
        "access_count": access_count,
        "max_access_count": max_access,
        "remaining_access_count": max(0, max_access - access_count) if max_access > 0 else -1,
        "permission": share.permission,
        "description": share.description or "",
        "has_password": bool(share.password),
        "allow_download": bool(share.allow_download),
        "allow_copy": bool(share.allow_copy),
        "last_accessed_at": isoformat(share.last_accessed_at),
        "is_expired": as_utc(share.expires_at) <= now,
        "is_access_limit_reached": limit_reached,
    }
    if snippet is not None:
        payload["code_snippet_title"] = snippet.title
        payload["code_snippet_language"] = snippet.language
    return payload


def serialize_access_log(log: ShareAccessLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "share_token_id": log.share_token_id,
        "code_snippet_id": log.code_snippet_id,
        "ip_address": log.ip_address,
        "user_agent": log.user_agent,
        "referer": log.referer,
        "browser": log.browser,
        "operating_system": log.operating_system,
        "device_type": log.device_type,
        "is_success": bool(log.is_success),
        "failure_reason": log.failure_reason,
        "accessed_at": isoformat(log.accessed_at),
    }
