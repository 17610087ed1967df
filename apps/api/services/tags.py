"""Tag catalogue and snippet tagging."""

from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import Conflict, NotFound, ValidationFailed
from models.code_snippet import CodeSnippet
from models.tag import DEFAULT_TAG_COLOR, SnippetTag, Tag
from services.policy import Action, ensure_can_operate
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)

MAX_TAG_NAME_LENGTH = 50
MAX_TAGS_PER_SNIPPET = 10
_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def serialize_tag(tag: Tag, usage_count: Optional[int] = None) -> Dict[str, Any]:
    payload = {
        "id": tag.id,
        "name": tag.name,
        "color": tag.color or DEFAULT_TAG_COLOR,
        "created_by": tag.created_by,
        "created_at": isoformat(tag.created_at),
    }
    if usage_count is not None:
        payload["usage_count"] = int(usage_count)
    return payload


def normalize_tag_name(name: str) -> str:
    cleaned = " ".join((name or "").split())
    if not cleaned:
        raise ValidationFailed("Tag name must not be empty.")
    if len(cleaned) > MAX_TAG_NAME_LENGTH:
        raise ValidationFailed(f"Tag name must be at most {MAX_TAG_NAME_LENGTH} characters.")
    return cleaned


def _validate_color(color: Optional[str]) -> str:
    if not color:
        return DEFAULT_TAG_COLOR
    if not _COLOR_RE.match(color):
        raise ValidationFailed("Tag color must be a hex value like #1a2b3c.")
    return color.lower()


async def _find_by_name(db: AsyncSession, name: str) -> Optional[Tag]:
    result = await db.execute(select(Tag).where(func.lower(Tag.name) == name.lower()))
    return result.scalars().first()


async def _load_tag(db: AsyncSession, tag_id: str) -> Tag:
    tag = await db.get(Tag, tag_id)
    if tag is None:
        raise NotFound("Tag not found.")
    return tag


async def usage_count(db: AsyncSession, tag_id: str) -> int:
    result = await db.execute(select(func.count(SnippetTag.id)).where(SnippetTag.tag_id == tag_id))
    return int(result.scalar() or 0)


async def set_snippet_tags(
    db: AsyncSession,
    snippet_id: str,
    names: Iterable[str],
    *,
    author_id: str,
) -> List[Tag]:
    """Replace a snippet's tags by name, creating unknown tags. Caller commits."""
    wanted: Dict[str, str] = {}
    for raw in names:
        name = normalize_tag_name(raw)
        wanted.setdefault(name.lower(), name)
    if len(wanted) > MAX_TAGS_PER_SNIPPET:
        raise ValidationFailed(f"A snippet can carry at most {MAX_TAGS_PER_SNIPPET} tags.")

    tags: List[Tag] = []
    for name in wanted.values():
        tag = await _find_by_name(db, name)
        if tag is None:
            tag = Tag(id=str(uuid.uuid4()), name=name, color=DEFAULT_TAG_COLOR, created_by=author_id, created_at=utcnow())
            db.add(tag)
        tags.append(tag)

    await db.execute(delete(SnippetTag).where(SnippetTag.snippet_id == snippet_id))
    for tag in tags:
        db.add(SnippetTag(id=str(uuid.uuid4()), snippet_id=snippet_id, tag_id=tag.id, created_at=utcnow()))
    await db.flush()
    return tags


async def tags_for_snippets(db: AsyncSession, snippet_ids: Iterable[str]) -> Dict[str, List[Dict[str, Any]]]:
    ids = list(snippet_ids)
    grouped: Dict[str, List[Dict[str, Any]]] = {snippet_id: [] for snippet_id in ids}
    if not ids:
        return grouped
    rows = await db.execute(
        select(SnippetTag.snippet_id, Tag)
        .join(Tag, Tag.id == SnippetTag.tag_id)
        .where(SnippetTag.snippet_id.in_(ids))
        .order_by(Tag.name)
    )
    for snippet_id, tag in rows.all():
        grouped[snippet_id].append({"id": tag.id, "name": tag.name, "color": tag.color or DEFAULT_TAG_COLOR})
    return grouped


async def list_tags(*, db: AsyncSession) -> Dict[str, Any]:
    rows = await db.execute(select(Tag).order_by(Tag.name))
    items = [serialize_tag(tag) for tag in rows.scalars().all()]
    return {"items": items, "total_count": len(items)}


async def get_tag(*, tag_id: str, db: AsyncSession) -> Dict[str, Any]:
    tag = await _load_tag(db, tag_id)
    return serialize_tag(tag, await usage_count(db, tag.id))


async def create_tag(*, actor, name: str, db: AsyncSession, color: Optional[str] = None) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.CREATE, "Viewers cannot create tags.")
    cleaned = normalize_tag_name(name)
    if await _find_by_name(db, cleaned) is not None:
        raise Conflict(f"Tag '{cleaned}' already exists.")
    tag = Tag(
        id=str(uuid.uuid4()),
        name=cleaned,
        color=_validate_color(color),
        created_by=actor.user_id,
        created_at=utcnow(),
    )
    db.add(tag)
    await db.commit()
    logger.info("User %s created tag %s (%s)", actor.user_id, tag.id, tag.name)
    return serialize_tag(tag, 0)


async def update_tag(
    *,
    actor,
    tag_id: str,
    db: AsyncSession,
    name: Optional[str] = None,
    color: Optional[str] = None,
) -> Dict[str, Any]:
    tag = await _load_tag(db, tag_id)
    ensure_can_operate(actor, tag, Action.EDIT, "Only the tag's creator or an admin can edit it.")
    if name is not None:
        cleaned = normalize_tag_name(name)
        clash = await _find_by_name(db, cleaned)
        if clash is not None and clash.id != tag.id:
            raise Conflict(f"Tag '{cleaned}' already exists.")
        tag.name = cleaned
    if color is not None:
        tag.color = _validate_color(color)
    await db.commit()
    return serialize_tag(tag, await usage_count(db, tag.id))


async def can_delete_tag(*, actor, tag_id: str, db: AsyncSession) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")
    tag = await _load_tag(db, tag_id)
    used = await usage_count(db, tag.id)
    return {"tag_id": tag.id, "can_delete": used == 0, "usage_count": used}


async def delete_tag(*, actor, tag_id: str, db: AsyncSession) -> None:
    """Delete an unused tag; tags still attached to snippets are refused."""
    tag = await _load_tag(db, tag_id)
    ensure_can_operate(actor, tag, Action.DELETE, "Only the tag's creator or an admin can delete it.")
    used = await usage_count(db, tag.id)
    if used:
        raise Conflict(f"Tag is still attached to {used} snippet(s).")
    await db.delete(tag)
    await db.commit()
    logger.info("User %s deleted tag %s", actor.user_id, tag_id)


async def search_tags(*, prefix: str, db: AsyncSession, limit: int = 10) -> Dict[str, Any]:
    cleaned = (prefix or "").strip()
    if not cleaned:
        raise ValidationFailed("Search prefix must not be empty.")
    escaped = cleaned.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    rows = await db.execute(
        select(Tag).where(Tag.name.ilike(f"{escaped}%", escape="\\")).order_by(Tag.name).limit(limit)
    )
    items = [serialize_tag(tag) for tag in rows.scalars().all()]
    return {"items": items, "total_count": len(items)}


def _usage_stmt():
    usage = func.count(SnippetTag.id).label("usage_count")
    return (
        select(Tag, usage)
        .outerjoin(SnippetTag, SnippetTag.tag_id == Tag.id)
        .group_by(Tag.id)
        .order_by(usage.desc(), Tag.name)
    ), usage


async def most_used_tags(*, db: AsyncSession, limit: int = 20) -> Dict[str, Any]:
    stmt, usage = _usage_stmt()
    rows = await db.execute(stmt.having(usage > 0).limit(limit))
    items = [serialize_tag(tag, count) for tag, count in rows.all()]
    return {"items": items, "total_count": len(items)}


async def tag_statistics(*, actor, db: AsyncSession) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.ADMINISTER, "Administrator role required.")
    stmt, _ = _usage_stmt()
    rows = (await db.execute(stmt)).all()
    items = [serialize_tag(tag, count) for tag, count in rows]
    return {
        "items": items,
        "total_tags": len(items),
        "unused_tags": sum(1 for item in items if item["usage_count"] == 0),
    }


async def list_snippet_tags(*, actor, snippet_id: str, db: AsyncSession) -> Dict[str, Any]:
    snippet = await db.get(CodeSnippet, snippet_id)
    if snippet is None:
        raise NotFound("Code snippet not found.")
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this snippet.")
    grouped = await tags_for_snippets(db, [snippet_id])
    return {"snippet_id": snippet_id, "items": grouped[snippet_id]}
