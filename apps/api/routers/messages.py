"""
Router for direct messages.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.cache import TTLCache
from services.messages import (
    MAX_MESSAGE_LENGTH,
    count_unread_messages,
    delete_message,
    get_conversation,
    get_message,
    list_messages,
    mark_message_read,
    send_message,
)

router = APIRouter()


def get_message_cache(request: Request) -> TTLCache | None:
    return getattr(request.app.state, "message_cache", None)


class SendMessageRequest(BaseModel):
    receiver_id: str
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    subject: str | None = Field(default=None, max_length=200)
    parent_id: str | None = None


@router.post("", status_code=201)
async def send(
    request: SendMessageRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_message_cache),
):
    return await send_message(
        actor=auth,
        receiver_id=request.receiver_id,
        content=request.content,
        subject=request.subject,
        parent_id=request.parent_id,
        db=db,
        cache=cache,
    )


@router.get("")
async def list_folder(
    folder: Literal["inbox", "outbox"] = "inbox",
    unread_only: bool = False,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_message_cache),
):
    return await list_messages(
        actor=auth,
        db=db,
        folder=folder,
        page=page,
        page_size=page_size,
        unread_only=unread_only,
        cache=cache,
    )


@router.get("/unread-count")
async def unread_count(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"unread_count": await count_unread_messages(actor=auth, db=db)}


@router.get("/conversation/{user_id}")
async def conversation(
    user_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=100),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_conversation(actor=auth, other_user_id=user_id, db=db, page=page, page_size=page_size)


@router.get("/{message_id}")
async def get_one(
    message_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_message(actor=auth, message_id=message_id, db=db)


@router.put("/{message_id}/read")
async def mark_read(
    message_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_message_cache),
):
    return await mark_message_read(actor=auth, message_id=message_id, db=db, cache=cache)


@router.delete("/{message_id}")
async def delete(
    message_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    cache: TTLCache | None = Depends(get_message_cache),
):
    await delete_message(actor=auth, message_id=message_id, db=db, cache=cache)
    return {"id": message_id, "deleted": True}
