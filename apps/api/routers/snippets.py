"""
Router for code snippet CRUD.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.snippets import create_snippet, delete_snippet, get_snippet, list_snippets, update_snippet

router = APIRouter()


class CreateSnippetRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    code: str = Field(min_length=1)
    language: str = Field(min_length=1, max_length=50)
    is_public: bool = False
    tags: list[str] = Field(default_factory=list, max_length=10)


class UpdateSnippetRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    code: str | None = Field(default=None, min_length=1)
    language: str | None = Field(default=None, min_length=1, max_length=50)
    is_public: bool | None = None
    tags: list[str] | None = Field(default=None, max_length=10)
    change_description: str | None = Field(default=None, max_length=500)


@router.post("", status_code=201)
async def create(
    request: CreateSnippetRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await create_snippet(actor=auth, data=request.model_dump(), db=db)


@router.get("")
async def list_all(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    search: str | None = None,
    language: str | None = None,
    tag: str | None = None,
    mine: bool = False,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_snippets(
        actor=auth,
        db=db,
        page=page,
        page_size=page_size,
        search=search,
        language=language,
        tag=tag,
        mine=mine,
    )


@router.get("/{snippet_id}")
async def get_one(
    snippet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_snippet(actor=auth, snippet_id=snippet_id, db=db)


@router.put("/{snippet_id}")
async def update(
    snippet_id: str,
    request: UpdateSnippetRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_snippet(
        actor=auth,
        snippet_id=snippet_id,
        changes=request.model_dump(exclude_unset=True),
        db=db,
    )


@router.delete("/{snippet_id}")
async def delete(
    snippet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_snippet(actor=auth, snippet_id=snippet_id, db=db)
    return {"id": snippet_id, "deleted": True}
