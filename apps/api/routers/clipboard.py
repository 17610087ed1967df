"""
Router for snippet copies and the caller's copy history.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.clipboard import (
    MAX_BATCH_STATS,
    batch_copy_stats,
    clear_history,
    copy_snippet,
    copy_stats,
    history_count,
    list_history,
    recopy,
)

router = APIRouter()


class BatchStatsRequest(BaseModel):
    snippet_ids: list[str] = Field(default_factory=list, max_length=MAX_BATCH_STATS)


@router.post("/copy/{snippet_id}")
async def copy(
    snippet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await copy_snippet(actor=auth, snippet_id=snippet_id, db=db)


@router.get("/history")
async def history(
    limit: int = Query(default=50, ge=1, le=100),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_history(actor=auth, limit=limit, db=db)


@router.get("/history/count")
async def count(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await history_count(actor=auth, db=db)


@router.delete("/history")
async def clear(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await clear_history(actor=auth, db=db)


@router.post("/history/{history_id}/recopy")
async def copy_again(
    history_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await recopy(actor=auth, history_id=history_id, db=db)


@router.get("/stats/{snippet_id}")
async def stats(
    snippet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await copy_stats(actor=auth, snippet_id=snippet_id, db=db)


@router.post("/stats/batch")
async def stats_batch(
    request: BatchStatsRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await batch_copy_stats(actor=auth, snippet_ids=request.snippet_ids, db=db)
