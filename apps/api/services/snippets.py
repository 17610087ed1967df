"""Code snippet CRUD."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, distinct, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import NotFound
from models.clipboard_history import ClipboardHistory
from models.code_snippet import CodeSnippet
from models.comment import Comment, CommentLike, CommentReport
from models.share_access_log import ShareAccessLog
from models.share_token import ShareToken
from models.snippet_version import SnippetVersion
from models.tag import SnippetTag, Tag
from models.user import UserRole
from services.pagination import paginate
from services.policy import Action, ensure_can_operate
from services.tags import set_snippet_tags, tags_for_snippets
from services.timeutil import isoformat
from services.versions import INITIAL_VERSION_NOTE, SNAPSHOT_FIELDS, record_version

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "description", "code", "language", "is_public")


def serialize_snippet(
    snippet: CodeSnippet,
    *,
    include_code: bool = True,
    tags: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    payload = {
        "id": snippet.id,
        "title": snippet.title,
        "description": snippet.description or "",
        "language": snippet.language,
        "created_by": snippet.created_by,
        "is_public": bool(snippet.is_public),
        "view_count": int(snippet.view_count or 0),
        "copy_count": int(snippet.copy_count or 0),
        "tags": tags or [],
        "created_at": isoformat(snippet.created_at),
        "updated_at": isoformat(snippet.updated_at),
    }
    if include_code:
        payload["code"] = snippet.code
    return payload


async def _serialize_with_tags(db: AsyncSession, snippet: CodeSnippet) -> Dict[str, Any]:
    grouped = await tags_for_snippets(db, [snippet.id])
    return serialize_snippet(snippet, tags=grouped[snippet.id])


async def load_snippet(db: AsyncSession, snippet_id: str) -> CodeSnippet:
    snippet = await db.get(CodeSnippet, snippet_id)
    if snippet is None:
        raise NotFound("Code snippet not found.")
    return snippet


async def _delete_dependents(db: AsyncSession, snippet_id: str) -> None:
    """Remove shares, comment threads, history and tag links of a snippet, leaves first."""
    share_ids = select(ShareToken.id).where(ShareToken.code_snippet_id == snippet_id)
    await db.execute(delete(ShareAccessLog).where(ShareAccessLog.share_token_id.in_(share_ids)))
    await db.execute(delete(ShareToken).where(ShareToken.code_snippet_id == snippet_id))

    comment_ids = select(Comment.id).where(Comment.snippet_id == snippet_id)
    await db.execute(delete(CommentLike).where(CommentLike.comment_id.in_(comment_ids)))
    await db.execute(delete(CommentReport).where(CommentReport.comment_id.in_(comment_ids)))
    depths = (
        await db.execute(select(distinct(Comment.depth)).where(Comment.snippet_id == snippet_id))
    ).scalars().all()
    for depth in sorted(depths, reverse=True):
        await db.execute(delete(Comment).where(Comment.snippet_id == snippet_id, Comment.depth == depth))

    await db.execute(delete(SnippetVersion).where(SnippetVersion.snippet_id == snippet_id))
    await db.execute(delete(SnippetTag).where(SnippetTag.snippet_id == snippet_id))
    await db.execute(delete(ClipboardHistory).where(ClipboardHistory.snippet_id == snippet_id))


async def create_snippet(*, actor, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
    """Create a snippet together with its tags and version 1."""
    ensure_can_operate(actor, None, Action.CREATE, "Viewers cannot create snippets.")
    snippet = CodeSnippet(
        id=str(uuid.uuid4()),
        title=data["title"],
        description=data.get("description") or "",
        code=data["code"],
        language=data["language"],
        is_public=bool(data.get("is_public", False)),
        created_by=actor.user_id,
    )
    db.add(snippet)
    await db.flush()
    if data.get("tags"):
        await set_snippet_tags(db, snippet.id, data["tags"], author_id=actor.user_id)
    await record_version(db, snippet, author_id=actor.user_id, change_description=INITIAL_VERSION_NOTE)
    await db.commit()
    await db.refresh(snippet)
    logger.info("User %s created snippet %s", actor.user_id, snippet.id)
    return await _serialize_with_tags(db, snippet)


async def get_snippet(*, actor, snippet_id: str, db: AsyncSession) -> Dict[str, Any]:
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this snippet.")
    await db.execute(
        update(CodeSnippet)
        .where(CodeSnippet.id == snippet.id)
        .values(view_count=CodeSnippet.view_count + 1, updated_at=CodeSnippet.updated_at)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(snippet)
    return await _serialize_with_tags(db, snippet)


async def update_snippet(*, actor, snippet_id: str, changes: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
    """Apply edits; a content change is recorded as a new version."""
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.EDIT, "Not permitted to edit this snippet.")
    before = {field: getattr(snippet, field) for field in SNAPSHOT_FIELDS}
    for field in _EDITABLE_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(snippet, field, changes[field])
    if changes.get("tags") is not None:
        await set_snippet_tags(db, snippet.id, changes["tags"], author_id=actor.user_id)

    changed = [field for field in SNAPSHOT_FIELDS if getattr(snippet, field) != before[field]]
    if changed:
        await record_version(
            db,
            snippet,
            author_id=actor.user_id,
            change_description=changes.get("change_description") or f"Updated {', '.join(changed)}",
        )
    await db.commit()
    await db.refresh(snippet)
    return await _serialize_with_tags(db, snippet)


async def delete_snippet(*, actor, snippet_id: str, db: AsyncSession) -> None:
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.DELETE, "Not permitted to delete this snippet.")
    await _delete_dependents(db, snippet.id)
    await db.delete(snippet)
    await db.commit()
    logger.info("User %s deleted snippet %s", actor.user_id, snippet_id)


async def list_snippets(
    *,
    actor,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    search: Optional[str] = None,
    language: Optional[str] = None,
    tag: Optional[str] = None,
    mine: bool = False,
) -> Dict[str, Any]:
    stmt = select(CodeSnippet)
    if mine:
        stmt = stmt.where(CodeSnippet.created_by == actor.user_id)
    elif actor.role == UserRole.VIEWER.value:
        stmt = stmt.where(or_(CodeSnippet.is_public.is_(True), CodeSnippet.created_by == actor.user_id))
    if language:
        stmt = stmt.where(CodeSnippet.language == language)
    if tag:
        tagged = (
            select(SnippetTag.snippet_id)
            .join(Tag, Tag.id == SnippetTag.tag_id)
            .where(func.lower(Tag.name) == tag.strip().lower())
        )
        stmt = stmt.where(CodeSnippet.id.in_(tagged))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(CodeSnippet.title.ilike(pattern), CodeSnippet.description.ilike(pattern)))
    stmt = stmt.order_by(CodeSnippet.created_at.desc(), CodeSnippet.id)
    page_data = await paginate(
        db,
        stmt,
        page=page,
        page_size=page_size,
        serialize=lambda row: serialize_snippet(row, include_code=False),
    )
    grouped = await tags_for_snippets(db, [item["id"] for item in page_data["items"]])
    for item in page_data["items"]:
        item["tags"] = grouped[item["id"]]
    return page_data
