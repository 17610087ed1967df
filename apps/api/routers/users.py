"""
Router for account administration.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import UserRole
from routers.auth_scope import AuthContext, get_auth_context, require_admin
from services.users import (
    create_user,
    delete_user,
    get_user,
    list_users,
    reset_password,
    set_user_status,
    update_user,
)

router = APIRouter()


class CreateUserRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)
    role: UserRole = UserRole.VIEWER


class UpdateUserRequest(BaseModel):
    username: str | None = Field(default=None, min_length=3, max_length=50)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    role: UserRole | None = None
    is_active: bool | None = None


class UserStatusRequest(BaseModel):
    is_active: bool


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(min_length=1, max_length=128)


@router.get("")
async def list_all(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    search: str | None = None,
    role: UserRole | None = None,
    is_active: bool | None = None,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await list_users(
        actor=auth,
        db=db,
        page=page,
        page_size=page_size,
        search=search,
        role=role.value if role else None,
        is_active=is_active,
    )


@router.post("", status_code=201)
async def create(
    request: CreateUserRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await create_user(
        actor=auth,
        username=request.username,
        email=request.email,
        password=request.password,
        role=request.role.value,
        db=db,
    )


@router.get("/{user_id}")
async def get_one(
    user_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Admins read any account; everyone else only their own."""
    return await get_user(actor=auth, user_id=user_id, db=db)


@router.put("/{user_id}")
async def update(
    user_id: str,
    request: UpdateUserRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    changes = request.model_dump(exclude_unset=True)
    if changes.get("role") is not None:
        changes["role"] = changes["role"].value
    return await update_user(actor=auth, user_id=user_id, changes=changes, db=db)


@router.patch("/{user_id}/status")
async def set_status(
    user_id: str,
    request: UserStatusRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await set_user_status(actor=auth, user_id=user_id, is_active=request.is_active, db=db)


@router.post("/{user_id}/reset-password")
async def reset(
    user_id: str,
    request: ResetPasswordRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await reset_password(actor=auth, user_id=user_id, new_password=request.new_password, db=db)


@router.delete("/{user_id}")
async def delete(
    user_id: str,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_user(actor=auth, user_id=user_id, db=db)
    return {"id": user_id, "deleted": True}
