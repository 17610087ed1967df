"""
Router for snippet version history.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.versions import compare_versions, create_version, get_version, list_versions, restore_version

router = APIRouter()


class CreateVersionRequest(BaseModel):
    change_description: str | None = Field(default=None, max_length=500)


@router.get("/snippet/{snippet_id}")
async def history(
    snippet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Versions of a snippet, newest first."""
    return await list_versions(actor=auth, snippet_id=snippet_id, db=db)


@router.post("/snippet/{snippet_id}", status_code=201)
async def snapshot(
    snippet_id: str,
    request: CreateVersionRequest | None = None,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await create_version(
        actor=auth,
        snippet_id=snippet_id,
        change_description=request.change_description if request else None,
        db=db,
    )


@router.post("/snippet/{snippet_id}/restore/{version_id}")
async def restore(
    snippet_id: str,
    version_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await restore_version(actor=auth, snippet_id=snippet_id, version_id=version_id, db=db)


@router.get("/compare/{from_version_id}/{to_version_id}")
async def compare(
    from_version_id: str,
    to_version_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await compare_versions(
        actor=auth,
        from_version_id=from_version_id,
        to_version_id=to_version_id,
        db=db,
    )


@router.get("/{version_id}")
async def get_one(
    version_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_version(actor=auth, version_id=version_id, db=db)
