"""Snippet copy tracking: copy counter, per-user copy history and retention."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import NotFound, ValidationFailed
from models.clipboard_history import ClipboardHistory
from models.code_snippet import CodeSnippet
from services.policy import Action, can_operate, ensure_can_operate
from services.snippets import load_snippet
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)

MAX_BATCH_STATS = 100


async def copy_snippet(*, actor, snippet_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Count a copy, remember it in the actor's history and hand back the code."""
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.COPY, "Not permitted to copy this snippet.")

    await db.execute(
        update(CodeSnippet)
        .where(CodeSnippet.id == snippet.id)
        .values(copy_count=CodeSnippet.copy_count + 1, updated_at=CodeSnippet.updated_at)
        .execution_options(synchronize_session=False)
    )
    entry = ClipboardHistory(id=str(uuid.uuid4()), user_id=actor.user_id, snippet_id=snippet.id, copied_at=utcnow())
    db.add(entry)
    await db.commit()
    await db.refresh(snippet)

    logger.info("User %s copied snippet %s (count=%s)", actor.user_id, snippet.id, snippet.copy_count)
    return {
        "snippet_id": snippet.id,
        "history_id": entry.id,
        "copy_count": int(snippet.copy_count or 0),
        "language": snippet.language,
        "code": snippet.code,
    }


async def list_history(*, actor, db: AsyncSession, limit: int = 50) -> Dict[str, Any]:
    rows = await db.execute(
        select(ClipboardHistory, CodeSnippet)
        .join(CodeSnippet, CodeSnippet.id == ClipboardHistory.snippet_id)
        .where(ClipboardHistory.user_id == actor.user_id)
        .order_by(ClipboardHistory.copied_at.desc(), ClipboardHistory.id)
        .limit(limit)
    )
    items: List[Dict[str, Any]] = []
    for entry, snippet in rows.all():
        items.append(
            {
                "id": entry.id,
                "snippet_id": snippet.id,
                "snippet_title": snippet.title,
                "snippet_language": snippet.language,
                "copied_at": isoformat(entry.copied_at),
            }
        )
    return {"items": items, "total_count": len(items)}


async def history_count(*, actor, db: AsyncSession) -> Dict[str, int]:
    result = await db.execute(
        select(func.count(ClipboardHistory.id)).where(ClipboardHistory.user_id == actor.user_id)
    )
    return {"count": int(result.scalar() or 0)}


async def clear_history(*, actor, db: AsyncSession) -> Dict[str, int]:
    result = await db.execute(delete(ClipboardHistory).where(ClipboardHistory.user_id == actor.user_id))
    await db.commit()
    return {"removed_count": int(result.rowcount or 0)}


async def recopy(*, actor, history_id: str, db: AsyncSession) -> Dict[str, Any]:
    entry = await db.get(ClipboardHistory, history_id)
    if entry is None or entry.user_id != actor.user_id:
        raise NotFound("Copy history entry not found.")
    return await copy_snippet(actor=actor, snippet_id=entry.snippet_id, db=db)


def _stats(snippet: CodeSnippet) -> Dict[str, Any]:
    return {
        "snippet_id": snippet.id,
        "total_copy_count": int(snippet.copy_count or 0),
        "view_count": int(snippet.view_count or 0),
    }


async def copy_stats(*, actor, snippet_id: str, db: AsyncSession) -> Dict[str, Any]:
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this snippet.")
    return _stats(snippet)


async def batch_copy_stats(*, actor, snippet_ids: List[str], db: AsyncSession) -> Dict[str, Any]:
    """Stats for many snippets; unknown or unreadable ids are left out."""
    ids = list(dict.fromkeys(snippet_ids))
    if len(ids) > MAX_BATCH_STATS:
        raise ValidationFailed(f"At most {MAX_BATCH_STATS} snippet ids per request.")
    if not ids:
        return {"items": []}
    rows = await db.execute(select(CodeSnippet).where(CodeSnippet.id.in_(ids)))
    found = {snippet.id: snippet for snippet in rows.scalars().all()}
    items = [
        _stats(found[snippet_id])
        for snippet_id in ids
        if snippet_id in found and can_operate(actor, found[snippet_id], Action.READ)
    ]
    return {"items": items}


async def purge_clipboard_history(
    *,
    db: AsyncSession,
    older_than_days: int,
    now: Optional[datetime] = None,
) -> int:
    """Delete copy history rows past the retention window."""
    if int(older_than_days) < 1:
        raise ValidationFailed("older_than_days must be at least 1.")
    cutoff = (now or utcnow()) - timedelta(days=int(older_than_days))
    result = await db.execute(delete(ClipboardHistory).where(ClipboardHistory.copied_at < cutoff))
    await db.commit()
    removed = int(result.rowcount or 0)
    logger.info("Purged %s copy history rows older than %s", removed, cutoff.isoformat())
    return removed
