"""Threaded snippet comments, likes, reports and moderation."""

from __future__ import annotations

import logging
import math
import uuid
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import Conflict, NotFound, ValidationFailed
from models.comment import Comment, CommentLike, CommentReport, CommentStatus, ReportReason, ReportStatus
from models.notification import NotificationType
from models.user import User, UserRole
from services.cache import TTLCache
from services.notifications import create_notification
from services.pagination import MAX_PAGE_SIZE, paginate
from services.policy import Action, ensure_can_operate
from services.snippets import load_snippet
from services.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)

MAX_COMMENT_DEPTH = 3
MAX_COMMENT_LENGTH = 2000
SORT_ORDERS = ("newest", "oldest", "most_liked")
MODERATION_STATUSES = (CommentStatus.NORMAL.value, CommentStatus.HIDDEN.value, CommentStatus.PENDING.value)
HANDLED_REPORT_STATUSES = (
    ReportStatus.RESOLVED.value,
    ReportStatus.REJECTED.value,
    ReportStatus.UNDER_INVESTIGATION.value,
)


def _cache_scope(snippet_id: str) -> str:
    return f"comments:{snippet_id}"


def _invalidate(cache: Optional[TTLCache], snippet_id: str) -> None:
    if cache is not None:
        dropped = cache.invalidate_prefix(_cache_scope(snippet_id))
        if dropped:
            logger.debug("Dropped %s cached comment pages for snippet %s", dropped, snippet_id)


def _clean_content(content: str) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationFailed("Comment content must not be empty.")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationFailed(f"Comment content must be at most {MAX_COMMENT_LENGTH} characters.")
    return text


def serialize_comment(comment: Comment, usernames: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    deleted = comment.status == CommentStatus.DELETED.value
    return {
        "id": comment.id,
        "snippet_id": comment.snippet_id,
        "user_id": comment.user_id,
        "username": (usernames or {}).get(comment.user_id),
        "parent_id": comment.parent_id,
        "content": "" if deleted else comment.content,
        "depth": int(comment.depth or 0),
        "like_count": int(comment.like_count or 0),
        "reply_count": int(comment.reply_count or 0),
        "status": comment.status,
        "created_at": isoformat(comment.created_at),
        "updated_at": isoformat(comment.updated_at),
        "deleted_at": isoformat(comment.deleted_at),
    }


def serialize_report(report: CommentReport) -> Dict[str, Any]:
    return {
        "id": report.id,
        "comment_id": report.comment_id,
        "user_id": report.user_id,
        "reason": report.reason,
        "description": report.description,
        "status": report.status,
        "handled_by": report.handled_by,
        "handled_at": isoformat(report.handled_at),
        "resolution": report.resolution,
        "created_at": isoformat(report.created_at),
    }


async def _usernames(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, str]:
    ids = {user_id for user_id in user_ids if user_id}
    if not ids:
        return {}
    result = await db.execute(select(User.id, User.username).where(User.id.in_(ids)))
    return {row[0]: row[1] for row in result.all()}


async def _load_comment(db: AsyncSession, comment_id: str) -> Comment:
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found.")
    return comment


def _visible_statuses(actor) -> tuple:
    if actor is not None and actor.role == UserRole.ADMIN.value:
        return tuple(status.value for status in CommentStatus)
    return (CommentStatus.NORMAL.value, CommentStatus.DELETED.value)


async def create_comment(
    *,
    actor,
    snippet_id: str,
    content: str,
    db: AsyncSession,
    parent_id: Optional[str] = None,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.COMMENT, "Not permitted to comment on this snippet.")
    text = _clean_content(content)

    parent: Optional[Comment] = None
    depth = 0
    if parent_id:
        parent = await _load_comment(db, parent_id)
        if parent.snippet_id != snippet.id:
            raise ValidationFailed("Parent comment belongs to a different snippet.")
        if parent.status != CommentStatus.NORMAL.value:
            raise ValidationFailed("Cannot reply to a comment that is not visible.")
        depth = int(parent.depth or 0) + 1
        if depth > MAX_COMMENT_DEPTH:
            raise ValidationFailed(f"Replies cannot be nested more than {MAX_COMMENT_DEPTH} levels deep.")

    comment = Comment(
        id=str(uuid.uuid4()),
        content=text,
        snippet_id=snippet.id,
        user_id=actor.user_id,
        parent_id=parent.id if parent else None,
        depth=depth,
        like_count=0,
        reply_count=0,
        status=CommentStatus.NORMAL.value,
        created_at=utcnow(),
    )
    db.add(comment)

    if parent is not None:
        await db.execute(
            update(Comment)
            .where(Comment.id == parent.id)
            .values(reply_count=Comment.reply_count + 1)
            .execution_options(synchronize_session=False)
        )
        create_notification(
            db,
            user_id=parent.user_id,
            type=NotificationType.REPLY.value,
            title=f"{actor.username or 'Someone'} replied to your comment",
            content=text[:200],
            related_entity_type="comment",
            related_entity_id=comment.id,
            triggered_by_user_id=actor.user_id,
        )
    else:
        create_notification(
            db,
            user_id=snippet.created_by,
            type=NotificationType.COMMENT.value,
            title=f"{actor.username or 'Someone'} commented on {snippet.title}",
            content=text[:200],
            related_entity_type="snippet",
            related_entity_id=snippet.id,
            triggered_by_user_id=actor.user_id,
        )

    await db.commit()
    _invalidate(cache, snippet.id)
    logger.info("User %s commented %s on snippet %s", actor.user_id, comment.id, snippet.id)
    return serialize_comment(comment, {actor.user_id: actor.username})


def _thread(
    roots: List[Comment],
    replies: List[Comment],
    usernames: Dict[str, str],
) -> List[Dict[str, Any]]:
    children: Dict[str, List[Comment]] = defaultdict(list)
    for reply in replies:
        children[reply.parent_id].append(reply)

    def _build(comment: Comment) -> Dict[str, Any]:
        node = serialize_comment(comment, usernames)
        node["replies"] = [_build(child) for child in children.get(comment.id, [])]
        return node

    return [_build(root) for root in roots]


async def list_comments(
    *,
    actor,
    snippet_id: str,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    sort: str = "newest",
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    """Top-level comments of a snippet, each with its nested replies."""
    if sort not in SORT_ORDERS:
        raise ValidationFailed(f"sort must be one of {', '.join(SORT_ORDERS)}.")
    snippet = await load_snippet(db, snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this snippet.")

    statuses = _visible_statuses(actor)
    page = max(int(page), 1)
    page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))
    key = None
    if cache is not None:
        key = TTLCache.build_key(
            _cache_scope(snippet.id),
            {"page": page, "page_size": page_size, "sort": sort, "statuses": statuses},
        )
        cached = cache.get(key)
        if cached is not None:
            return cached

    roots_stmt = select(Comment).where(
        Comment.snippet_id == snippet.id,
        Comment.parent_id.is_(None),
        Comment.status.in_(statuses),
    )
    if sort == "oldest":
        roots_stmt = roots_stmt.order_by(Comment.created_at.asc(), Comment.id)
    elif sort == "most_liked":
        roots_stmt = roots_stmt.order_by(Comment.like_count.desc(), Comment.created_at.desc(), Comment.id)
    else:
        roots_stmt = roots_stmt.order_by(Comment.created_at.desc(), Comment.id)

    total_count = int(
        (await db.execute(select(func.count()).select_from(roots_stmt.order_by(None).subquery()))).scalar() or 0
    )
    roots = (await db.execute(roots_stmt.offset((page - 1) * page_size).limit(page_size))).scalars().all()

    replies_result = await db.execute(
        select(Comment)
        .where(
            Comment.snippet_id == snippet.id,
            Comment.parent_id.isnot(None),
            Comment.status.in_(statuses),
        )
        .order_by(Comment.created_at.asc(), Comment.id)
    )
    replies = replies_result.scalars().all()
    usernames = await _usernames(db, [c.user_id for c in roots] + [c.user_id for c in replies])

    payload = {
        "items": _thread(list(roots), list(replies), usernames),
        "total_count": total_count,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total_count / page_size) if total_count else 0,
        "sort": sort,
    }
    if cache is not None:
        cache.set(key, payload)
    return payload


async def get_comment(*, actor, comment_id: str, db: AsyncSession) -> Dict[str, Any]:
    comment = await _load_comment(db, comment_id)
    if comment.status not in _visible_statuses(actor):
        raise NotFound("Comment not found.")
    snippet = await load_snippet(db, comment.snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this snippet.")
    return serialize_comment(comment, await _usernames(db, [comment.user_id]))


async def update_comment(
    *,
    actor,
    comment_id: str,
    content: str,
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    comment = await _load_comment(db, comment_id)
    ensure_can_operate(actor, comment, Action.EDIT, "Only the author can edit this comment.")
    if comment.status == CommentStatus.DELETED.value:
        raise ValidationFailed("Deleted comments cannot be edited.")
    comment.content = _clean_content(content)
    comment.updated_at = utcnow()
    await db.commit()
    _invalidate(cache, comment.snippet_id)
    return serialize_comment(comment, await _usernames(db, [comment.user_id]))


async def delete_comment(
    *,
    actor,
    comment_id: str,
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
) -> None:
    comment = await _load_comment(db, comment_id)
    ensure_can_operate(actor, comment, Action.DELETE, "Not permitted to delete this comment.")
    if comment.status == CommentStatus.DELETED.value:
        return
    comment.status = CommentStatus.DELETED.value
    comment.deleted_at = utcnow()
    if comment.parent_id:
        await db.execute(
            update(Comment)
            .where(Comment.id == comment.parent_id, Comment.reply_count > 0)
            .values(reply_count=Comment.reply_count - 1)
            .execution_options(synchronize_session=False)
        )
    await db.commit()
    _invalidate(cache, comment.snippet_id)
    logger.info("User %s deleted comment %s", actor.user_id, comment_id)


async def _refresh_like_count(db: AsyncSession, comment: Comment) -> int:
    count = int(
        (
            await db.execute(select(func.count(CommentLike.id)).where(CommentLike.comment_id == comment.id))
        ).scalar()
        or 0
    )
    comment.like_count = count
    return count


async def like_comment(
    *,
    actor,
    comment_id: str,
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    comment = await _load_comment(db, comment_id)
    if comment.status != CommentStatus.NORMAL.value:
        raise ValidationFailed("Only visible comments can be liked.")
    snippet = await load_snippet(db, comment.snippet_id)
    ensure_can_operate(actor, snippet, Action.READ, "Not permitted to view this snippet.")

    existing = await db.execute(
        select(CommentLike).where(CommentLike.comment_id == comment.id, CommentLike.user_id == actor.user_id)
    )
    if existing.scalar_one_or_none() is None:
        db.add(CommentLike(id=str(uuid.uuid4()), comment_id=comment.id, user_id=actor.user_id, created_at=utcnow()))
        await db.flush()
        create_notification(
            db,
            user_id=comment.user_id,
            type=NotificationType.LIKE.value,
            title=f"{actor.username or 'Someone'} liked your comment",
            related_entity_type="comment",
            related_entity_id=comment.id,
            triggered_by_user_id=actor.user_id,
        )
    like_count = await _refresh_like_count(db, comment)
    await db.commit()
    _invalidate(cache, comment.snippet_id)
    return {"comment_id": comment.id, "liked": True, "like_count": like_count}


async def unlike_comment(
    *,
    actor,
    comment_id: str,
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    comment = await _load_comment(db, comment_id)
    existing = await db.execute(
        select(CommentLike).where(CommentLike.comment_id == comment.id, CommentLike.user_id == actor.user_id)
    )
    like = existing.scalar_one_or_none()
    if like is not None:
        await db.delete(like)
        await db.flush()
    like_count = await _refresh_like_count(db, comment)
    await db.commit()
    _invalidate(cache, comment.snippet_id)
    return {"comment_id": comment.id, "liked": False, "like_count": like_count}


async def report_comment(
    *,
    actor,
    comment_id: str,
    reason: str,
    db: AsyncSession,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    comment = await _load_comment(db, comment_id)
    try:
        reason_value = ReportReason(reason).value
    except ValueError:
        raise ValidationFailed(f"Unknown report reason: {reason}.")
    if comment.user_id == actor.user_id:
        raise ValidationFailed("You cannot report your own comment.")

    duplicate = await db.execute(
        select(CommentReport.id).where(
            CommentReport.comment_id == comment.id,
            CommentReport.user_id == actor.user_id,
            CommentReport.status == ReportStatus.PENDING.value,
        )
    )
    if duplicate.scalar_one_or_none() is not None:
        raise Conflict("You have already reported this comment.")

    report = CommentReport(
        id=str(uuid.uuid4()),
        comment_id=comment.id,
        user_id=actor.user_id,
        reason=reason_value,
        description=description[:500] if description else None,
        status=ReportStatus.PENDING.value,
        created_at=utcnow(),
    )
    db.add(report)
    await db.commit()
    logger.info("User %s reported comment %s (%s)", actor.user_id, comment.id, reason_value)
    return serialize_report(report)


async def moderate_comment(
    *,
    actor,
    comment_id: str,
    status: str,
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.MODERATE, "Moderator role required.")
    if status not in MODERATION_STATUSES:
        raise ValidationFailed(f"status must be one of {', '.join(MODERATION_STATUSES)}.")
    comment = await _load_comment(db, comment_id)
    if comment.status == CommentStatus.DELETED.value:
        raise ValidationFailed("Deleted comments cannot be moderated.")
    comment.status = status
    comment.updated_at = utcnow()
    await db.commit()
    _invalidate(cache, comment.snippet_id)
    logger.info("Admin %s set comment %s to %s", actor.user_id, comment.id, status)
    return serialize_comment(comment)


async def list_reports(
    *,
    actor,
    db: AsyncSession,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.MODERATE, "Moderator role required.")
    stmt = select(CommentReport)
    if status:
        stmt = stmt.where(CommentReport.status == status)
    stmt = stmt.order_by(CommentReport.created_at.desc(), CommentReport.id)
    return await paginate(db, stmt, page=page, page_size=page_size, serialize=serialize_report)


async def handle_report(
    *,
    actor,
    report_id: str,
    status: str,
    db: AsyncSession,
    resolution: Optional[str] = None,
) -> Dict[str, Any]:
    ensure_can_operate(actor, None, Action.MODERATE, "Moderator role required.")
    if status not in HANDLED_REPORT_STATUSES:
        raise ValidationFailed(f"status must be one of {', '.join(HANDLED_REPORT_STATUSES)}.")
    report = await db.get(CommentReport, report_id)
    if report is None:
        raise NotFound("Report not found.")
    report.status = status
    report.resolution = resolution[:500] if resolution else None
    report.handled_by = actor.user_id
    report.handled_at = utcnow()
    await db.commit()
    logger.info("Admin %s marked report %s as %s", actor.user_id, report.id, status)
    return serialize_report(report)
