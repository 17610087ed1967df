"""
Router for system settings.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, require_admin
from services.system_settings import get_public_settings, get_system_settings, update_system_settings

router = APIRouter()


class UpdateSettingsRequest(BaseModel):
    site: Dict[str, Any] | None = None
    security: Dict[str, Any] | None = None
    features: Dict[str, Any] | None = None
    email: Dict[str, Any] | None = None

    model_config = {"extra": "forbid"}


@router.get("/public")
async def public_settings(db: AsyncSession = Depends(get_db)):
    """Site section, readable without a session."""
    return await get_public_settings(db=db)


@router.get("")
async def read_settings(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_system_settings(actor=auth, db=db)


@router.put("")
async def write_settings(
    request: UpdateSettingsRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await update_system_settings(
        actor=auth,
        changes=request.model_dump(exclude_none=True),
        db=db,
    )
