"""
Router for the tag catalogue.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context, require_admin
from services.tags import (
    can_delete_tag,
    create_tag,
    delete_tag,
    get_tag,
    list_snippet_tags,
    list_tags,
    most_used_tags,
    search_tags,
    tag_statistics,
    update_tag,
)

router = APIRouter()


class CreateTagRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: str | None = Field(default=None, max_length=7)


class UpdateTagRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, max_length=7)


@router.get("")
async def list_all(
    _auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_tags(db=db)


@router.post("", status_code=201)
async def create(
    request: CreateTagRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await create_tag(actor=auth, name=request.name, color=request.color, db=db)


@router.get("/search")
async def search(
    prefix: str = Query(min_length=1, max_length=50),
    limit: int = Query(default=10, ge=1, le=50),
    _auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await search_tags(prefix=prefix, limit=limit, db=db)


@router.get("/most-used")
async def most_used(
    limit: int = Query(default=20, ge=1, le=100),
    _auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await most_used_tags(limit=limit, db=db)


@router.get("/statistics")
async def statistics(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await tag_statistics(actor=auth, db=db)


@router.get("/by-snippet/{snippet_id}")
async def by_snippet(
    snippet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_snippet_tags(actor=auth, snippet_id=snippet_id, db=db)


@router.get("/{tag_id}/can-delete")
async def can_delete(
    tag_id: str,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await can_delete_tag(actor=auth, tag_id=tag_id, db=db)


@router.get("/{tag_id}")
async def get_one(
    tag_id: str,
    _auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_tag(tag_id=tag_id, db=db)


@router.put("/{tag_id}")
async def update(
    tag_id: str,
    request: UpdateTagRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_tag(actor=auth, tag_id=tag_id, name=request.name, color=request.color, db=db)


@router.delete("/{tag_id}")
async def delete(
    tag_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_tag(actor=auth, tag_id=tag_id, db=db)
    return {"id": tag_id, "deleted": True}
