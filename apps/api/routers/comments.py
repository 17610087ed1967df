"""
Router for snippet comments, likes, reports and moderation.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context, require_admin
from services.cache import TTLCache
from services.comments import (
    MAX_COMMENT_LENGTH,
    create_comment,
    delete_comment,
    get_comment,
    handle_report,
    like_comment,
    list_comments,
    list_reports,
    moderate_comment,
    report_comment,
    unlike_comment,
    update_comment,
)

router = APIRouter()


def get_comment_cache(request: Request) -> TTLCache | None:
    return getattr(request.app.state, "comment_cache", None)


class CreateCommentRequest(BaseModel):
    snippet_id: str
    content: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)
    parent_id: str | None = None


class UpdateCommentRequest(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)


class ReportCommentRequest(BaseModel):
    reason: Literal[
        "spam",
        "inappropriate",
        "harassment",
        "hate_speech",
        "misinformation",
        "copyright_violation",
        "other",
    ]
    description: str | None = Field(default=None, max_length=500)


class ModerateCommentRequest(BaseModel):
    status: Literal["normal", "hidden", "pending"]


class HandleReportRequest(BaseModel):
    status: Literal["resolved", "rejected", "under_investigation"]
    resolution: str | None = Field(default=None, max_length=500)


@router.post("", status_code=201)
async def create(
    request: CreateCommentRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_comment_cache),
):
    return await create_comment(
        actor=auth,
        snippet_id=request.snippet_id,
        content=request.content,
        parent_id=request.parent_id,
        db=db,
        cache=cache,
    )


@router.get("/snippet/{snippet_id}")
async def list_for_snippet(
    snippet_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    sort: Literal["newest", "oldest", "most_liked"] = "newest",
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_comment_cache),
):
    return await list_comments(
        actor=auth,
        snippet_id=snippet_id,
        db=db,
        page=page,
        page_size=page_size,
        sort=sort,
        cache=cache,
    )


@router.get("/reports")
async def get_reports(
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await list_reports(actor=auth, db=db, status=status, page=page, page_size=page_size)


@router.put("/reports/{report_id}")
async def resolve_report(
    report_id: str,
    request: HandleReportRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await handle_report(
        actor=auth,
        report_id=report_id,
        status=request.status,
        resolution=request.resolution,
        db=db,
    )


@router.get("/{comment_id}")
async def get_one(
    comment_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_comment(actor=auth, comment_id=comment_id, db=db)


@router.put("/{comment_id}")
async def update(
    comment_id: str,
    request: UpdateCommentRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_comment_cache),
):
    return await update_comment(actor=auth, comment_id=comment_id, content=request.content, db=db, cache=cache)


@router.delete("/{comment_id}")
async def delete(
    comment_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_comment_cache),
):
    await delete_comment(actor=auth, comment_id=comment_id, db=db, cache=cache)
    return {"id": comment_id, "deleted": True}


@router.post("/{comment_id}/like")
async def like(
    comment_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_comment_cache),
):
    return await like_comment(actor=auth, comment_id=comment_id, db=db, cache=cache)


@router.delete("/{comment_id}/like")
async def unlike(
    comment_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_comment_cache),
):
    return await unlike_comment(actor=auth, comment_id=comment_id, db=db, cache=cache)


@router.post("/{comment_id}/report", status_code=201)
async def report(
    comment_id: str,
    request: ReportCommentRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await report_comment(
        actor=auth,
        comment_id=comment_id,
        reason=request.reason,
        description=request.description,
        db=db,
    )


@router.put("/{comment_id}/moderate")
async def moderate(
    comment_id: str,
    request: ModerateCommentRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_comment_cache),
):
    return await moderate_comment(actor=auth, comment_id=comment_id, status=request.status, db=db, cache=cache)
