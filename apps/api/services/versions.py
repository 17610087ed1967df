"""Snippet version history: snapshots, restore and line diffs."""

from __future__ import annotations

import difflib
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import NotFound, ValidationFailed
from models.code_snippet import CodeSnippet
from models.snippet_version import SnippetVersion
from services.policy import Action, ensure_can_operate
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)

INITIAL_VERSION_NOTE = "Initial version"
SNAPSHOT_FIELDS = ("title", "description", "code", "language")


def serialize_version(version: SnippetVersion, *, include_code: bool = True) -> Dict[str, Any]:
    payload = {
        "id": version.id,
        "snippet_id": version.snippet_id,
        "version_number": int(version.version_number),
        "title": version.title,
        "description": version.description or "",
        "language": version.language,
        "change_description": version.change_description,
        "created_by": version.created_by,
        "created_at": isoformat(version.created_at),
    }
    if include_code:
        payload["code"] = version.code
    return payload


async def next_version_number(db: AsyncSession, snippet_id: str) -> int:
    current = await db.execute(
        select(func.max(SnippetVersion.version_number)).where(SnippetVersion.snippet_id == snippet_id)
    )
    return int(current.scalar() or 0) + 1


async def record_version(
    db: AsyncSession,
    snippet: CodeSnippet,
    *,
    author_id: Optional[str],
    change_description: Optional[str] = None,
) -> SnippetVersion:
    """Snapshot the snippet's current content as the next version. Caller commits."""
    version = SnippetVersion(
        id=str(uuid.uuid4()),
        snippet_id=snippet.id,
        version_number=await next_version_number(db, snippet.id),
        title=snippet.title,
        description=snippet.description or "",
        code=snippet.code,
        language=snippet.language,
        change_description=(change_description or "Updated")[:500],
        created_by=author_id,
        created_at=utcnow(),
    )
    db.add(version)
    await db.flush()
    return version


async def _load_snippet(db: AsyncSession, snippet_id: str) -> CodeSnippet:
    snippet = await db.get(CodeSnippet, snippet_id)
    if snippet is None:
        raise NotFound("Code snippet not found.")
    return snippet


async def _load_version(db: AsyncSession, version_id: str) -> SnippetVersion:
    version = await db.get(SnippetVersion, version_id)
    if version is None:
        raise NotFound("Version not found.")
    return version


async def list_versions(*, actor, snippet_id: str, db: AsyncSession) -> Dict[str, Any]:
    snippet = await _load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this snippet's history.")
    rows = await db.execute(
        select(SnippetVersion)
        .where(SnippetVersion.snippet_id == snippet_id)
        .order_by(SnippetVersion.version_number.desc())
    )
    items = [serialize_version(row, include_code=False) for row in rows.scalars().all()]
    return {"snippet_id": snippet_id, "items": items, "total_count": len(items)}


async def get_version(*, actor, version_id: str, db: AsyncSession) -> Dict[str, Any]:
    version = await _load_version(db, version_id)
    snippet = await _load_snippet(db, version.snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this version.")
    return serialize_version(version)


async def create_version(
    *,
    actor,
    snippet_id: str,
    db: AsyncSession,
    change_description: Optional[str] = None,
) -> Dict[str, Any]:
    snippet = await _load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.EDIT, "Not permitted to version this snippet.")
    version = await record_version(
        db, snippet, author_id=actor.user_id, change_description=change_description or "Manual snapshot"
    )
    await db.commit()
    logger.info("User %s saved version %s of snippet %s", actor.user_id, version.version_number, snippet_id)
    return serialize_version(version)


async def restore_version(*, actor, snippet_id: str, version_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Roll the snippet back to ``version_id``.

    The content being replaced is saved as a backup version first, and the
    restored state is recorded as a new version, so history only grows.
    """
    snippet = await _load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.EDIT, "Not permitted to restore this snippet.")
    target = await _load_version(db, version_id)
    if target.snippet_id != snippet.id:
        raise NotFound("Version not found for this snippet.")

    backup = await record_version(
        db,
        snippet,
        author_id=actor.user_id,
        change_description=f"Backup before restoring version {target.version_number}",
    )
    for field in SNAPSHOT_FIELDS:
        setattr(snippet, field, getattr(target, field))
    snippet.updated_at = utcnow()
    restored = await record_version(
        db,
        snippet,
        author_id=actor.user_id,
        change_description=f"Restored to version {target.version_number}",
    )
    await db.commit()
    logger.info("User %s restored snippet %s to version %s", actor.user_id, snippet_id, target.version_number)
    return {
        "snippet_id": snippet.id,
        "restored_version_number": int(target.version_number),
        "backup_version": serialize_version(backup, include_code=False),
        "current_version": serialize_version(restored, include_code=False),
    }


def diff_lines(from_code: str, to_code: str) -> List[Dict[str, Any]]:
    """Line-level diff; replaced blocks pair up as Modified lines."""
    before = (from_code or "").splitlines()
    after = (to_code or "").splitlines()
    lines: List[Dict[str, Any]] = []

    def _emit(diff_type: str, old: Optional[str], new: Optional[str]) -> None:
        lines.append(
            {"line_number": len(lines) + 1, "diff_type": diff_type, "from_content": old, "to_content": new}
        )

    matcher = difflib.SequenceMatcher(a=before, b=after, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for old in before[i1:i2]:
                _emit("Unchanged", old, old)
        elif tag == "delete":
            for old in before[i1:i2]:
                _emit("Removed", old, None)
        elif tag == "insert":
            for new in after[j1:j2]:
                _emit("Added", None, new)
        else:
            old_block, new_block = before[i1:i2], after[j1:j2]
            paired = min(len(old_block), len(new_block))
            for old, new in zip(old_block, new_block):
                _emit("Modified", old, new)
            for old in old_block[paired:]:
                _emit("Removed", old, None)
            for new in new_block[paired:]:
                _emit("Added", None, new)
    return lines


async def compare_versions(*, actor, from_version_id: str, to_version_id: str, db: AsyncSession) -> Dict[str, Any]:
    older = await _load_version(db, from_version_id)
    newer = await _load_version(db, to_version_id)
    if older.snippet_id != newer.snippet_id:
        raise ValidationFailed("Both versions must belong to the same snippet.")
    snippet = await _load_snippet(db, older.snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to compare these versions.")

    return {
        "from_version": serialize_version(older),
        "to_version": serialize_version(newer),
        "title_changed": older.title != newer.title,
        "description_changed": (older.description or "") != (newer.description or ""),
        "code_changed": older.code != newer.code,
        "language_changed": older.language != newer.language,
        "code_differences": diff_lines(older.code, newer.code),
    }
