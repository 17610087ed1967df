"""
Router for in-app notifications.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.notifications import (
    count_unread_notifications,
    delete_notification,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)

router = APIRouter()


@router.get("")
async def list_mine(
    unread_only: bool = False,
    type: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_notifications(
        actor=auth,
        db=db,
        page=page,
        page_size=page_size,
        unread_only=unread_only,
        type=type,
    )


@router.get("/unread-count")
async def unread_count(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"unread_count": await count_unread_notifications(actor=auth, db=db)}


@router.put("/read-all")
async def mark_all_read(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"updated_count": await mark_all_notifications_read(actor=auth, db=db)}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await mark_notification_read(actor=auth, notification_id=notification_id, db=db)


@router.delete("/{notification_id}")
async def delete(
    notification_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_notification(actor=auth, notification_id=notification_id, db=db)
    return {"id": notification_id, "deleted": True}
