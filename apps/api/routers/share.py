"""
Router for snippet share tokens: public access, owner management and admin tools.

Literal paths (``my-shares``, ``snippet/...``, ``admin/...``) are declared before
the ``/{token}`` and ``/{share_id}/...`` routes so they are never captured as
path parameters.
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel, Field
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from errors import ServiceUnavailable
from routers.auth_scope import AuthContext, get_auth_context, require_admin
from routers.rate_limit import client_identifier, rate_limit
from services.maintenance import enqueue_share_maintenance
from services.share import (
    MAX_ACCESS_LIMIT,
    MAX_EXPIRY_HOURS,
    MIN_EXPIRY_HOURS,
    bulk_share_operation,
    create_share_token,
    delete_share_token,
    extend_share_expiry,
    get_share,
    get_share_stats,
    get_system_share_stats,
    list_all_shares,
    list_share_access_logs,
    list_snippet_shares,
    list_user_shares,
    purge_access_logs,
    purge_expired_share_tokens,
    reset_share_stats,
    revoke_share_token,
    update_share_token,
)
from services.share_access import AccessClient, access_share, inspect_share

router = APIRouter()
logger = logging.getLogger(__name__)

PermissionName = Literal["read_only", "edit", "full"]

share_access_rate_limit = rate_limit(
    "share_access",
    settings.SHARE_ACCESS_RATE_LIMIT,
    settings.SHARE_ACCESS_RATE_WINDOW_SECONDS,
)


class CreateShareRequest(BaseModel):
    code_snippet_id: str
    expires_in_hours: int = Field(default=settings.SHARE_DEFAULT_EXPIRES_HOURS, ge=MIN_EXPIRY_HOURS, le=MAX_EXPIRY_HOURS)
    max_access_count: int = Field(default=0, ge=0, le=MAX_ACCESS_LIMIT)
    permission: PermissionName = "read_only"
    description: str = Field(default="", max_length=500)
    password: str | None = Field(default=None, min_length=6, max_length=64)
    allow_download: bool = True
    allow_copy: bool = True


class UpdateShareRequest(BaseModel):
    description: str | None = Field(default=None, max_length=500)
    permission: PermissionName | None = None
    allow_download: bool | None = None
    allow_copy: bool | None = None
    max_access_count: int | None = Field(default=None, ge=0, le=MAX_ACCESS_LIMIT)
    password: str | None = Field(default=None, min_length=6, max_length=64)
    clear_password: bool = False
    extend_hours: int = Field(default=0, ge=0, le=MAX_EXPIRY_HOURS)


class AccessShareRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)
    password: str | None = None


class ValidateShareRequest(BaseModel):
    password: str | None = None


class ExtendShareRequest(BaseModel):
    hours: int


class BulkShareRequest(BaseModel):
    share_token_ids: list[str] = Field(min_length=1, max_length=500)
    operation: Literal["revoke", "delete", "extend", "reset_stats"]
    operation_param: int | None = None


def _access_client(request: Request) -> AccessClient:
    return AccessClient(
        ip_address=client_identifier(request),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        accept_language=request.headers.get("accept-language"),
    )


# ---------------------------------------------------------------------------
# Owner endpoints with literal paths
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
async def create_share(
    request: CreateShareRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a share token for a snippet."""
    return await create_share_token(
        actor=auth,
        code_snippet_id=request.code_snippet_id,
        db=db,
        expires_in_hours=request.expires_in_hours,
        max_access_count=request.max_access_count,
        permission=request.permission,
        description=request.description,
        password=request.password,
        allow_download=request.allow_download,
        allow_copy=request.allow_copy,
    )


@router.post("/access")
async def access_shared_snippet(
    body: AccessShareRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    _rate_limit: None = Depends(share_access_rate_limit),
):
    """Public access to a shared snippet by token and optional password."""
    return await access_share(
        token=body.token,
        password=body.password,
        client=_access_client(request),
        db=db,
    )


@router.get("/my-shares")
async def get_my_shares(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_user_shares(actor=auth, user_id=auth.user_id, db=db, page=page, page_size=page_size)


@router.get("/snippet/{snippet_id}")
async def get_snippet_shares(
    snippet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"items": await list_snippet_shares(actor=auth, snippet_id=snippet_id, db=db)}


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.get("/admin/all")
async def admin_list_shares(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    search: str | None = None,
    created_by: str | None = None,
    code_snippet_id: str | None = None,
    is_active: bool | None = None,
    is_expired: bool | None = None,
    has_password: bool | None = None,
    permission: PermissionName | None = None,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    filters = {
        "search": search,
        "created_by": created_by,
        "code_snippet_id": code_snippet_id,
        "is_active": is_active,
        "is_expired": is_expired,
        "has_password": has_password,
        "permission": permission,
    }
    return await list_all_shares(actor=auth, db=db, filters=filters, page=page, page_size=page_size)


@router.get("/admin/stats")
async def admin_system_stats(
    top: int = Query(default=10, ge=1, le=100),
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_system_share_stats(actor=auth, db=db, top=top)


@router.post("/admin/bulk")
async def admin_bulk_operation(
    request: BulkShareRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await bulk_share_operation(
        actor=auth,
        share_ids=request.share_token_ids,
        operation=request.operation,
        operation_param=request.operation_param,
        db=db,
    )


@router.get("/admin/users/{user_id}/shares")
async def admin_user_shares(
    user_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await list_user_shares(actor=auth, user_id=user_id, db=db, page=page, page_size=page_size)


@router.post("/admin/purge-logs")
async def admin_purge_access_logs(
    older_than_days: int = Query(default=settings.SHARE_ACCESS_LOG_RETENTION_DAYS, ge=1, le=3650),
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    removed = await purge_access_logs(db=db, older_than_days=older_than_days)
    logger.info("Admin %s purged %s access logs", auth.user_id, removed)
    return {"removed_count": removed, "older_than_days": older_than_days}


@router.post("/admin/purge-expired")
async def admin_purge_expired(
    min_days_expired: int = Query(default=settings.SHARE_EXPIRED_PURGE_MIN_DAYS, ge=1, le=3650),
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Hard-delete shares that expired at least ``min_days_expired`` days ago."""
    removed = await purge_expired_share_tokens(db=db, min_days_expired=min_days_expired)
    logger.info("Admin %s purged %s expired shares", auth.user_id, removed)
    return {"removed_count": removed, "min_days_expired": min_days_expired}


@router.post("/admin/maintenance", status_code=202)
async def admin_enqueue_maintenance(
    retention_days: int | None = Query(default=None, ge=1, le=3650),
    auth: AuthContext = Depends(require_admin),
):
    """Queue a background retention purge of old access logs and copy history."""
    try:
        job = enqueue_share_maintenance(retention_days)
    except (RedisError, OSError) as exc:
        logger.warning("Could not enqueue share maintenance: %s", exc)
        raise ServiceUnavailable("Background queue is unavailable.") from exc
    return {"job_id": job.id, "queued": True}


@router.delete("/admin/{share_id}/revoke")
async def admin_force_revoke(
    share_id: str,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await revoke_share_token(actor=auth, share_id=share_id, db=db)


@router.delete("/admin/{share_id}")
async def admin_force_delete(
    share_id: str,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_share_token(actor=auth, share_id=share_id, db=db)
    return {"id": share_id, "deleted": True}


# ---------------------------------------------------------------------------
# Public token routes
# ---------------------------------------------------------------------------


@router.get("/{token}")
async def get_shared_snippet(
    token: str,
    request: Request,
    x_share_password: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    _rate_limit: None = Depends(share_access_rate_limit),
):
    """Public access by token. Passwords travel in the X-Share-Password header or a POST body."""
    return await access_share(
        token=token,
        password=x_share_password,
        client=_access_client(request),
        db=db,
    )


@router.post("/{token}/validate")
async def validate_share(
    token: str,
    body: ValidateShareRequest | None = None,
    db: AsyncSession = Depends(get_db),
    _rate_limit: None = Depends(share_access_rate_limit),
):
    """Report whether the token would be accepted, without counting or logging."""
    return await inspect_share(token=token, password=body.password if body else None, db=db)


# ---------------------------------------------------------------------------
# Owner endpoints keyed by share id
# ---------------------------------------------------------------------------


@router.get("/{share_id}/details")
async def get_share_details(
    share_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_share(actor=auth, share_id=share_id, db=db)


@router.get("/{share_id}/stats")
async def get_stats(
    share_id: str,
    days: int = Query(default=30, ge=1, le=365),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_share_stats(actor=auth, share_id=share_id, db=db, days=days)


@router.get("/{share_id}/access-logs")
async def get_access_logs(
    share_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    is_success: bool | None = None,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_share_access_logs(
        actor=auth,
        share_id=share_id,
        db=db,
        page=page,
        page_size=page_size,
        is_success=is_success,
    )


@router.put("/{share_id}")
async def update_share(
    share_id: str,
    request: UpdateShareRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_share_token(
        actor=auth,
        share_id=share_id,
        changes=request.model_dump(exclude_unset=True),
        db=db,
    )


@router.delete("/{share_id}/revoke")
async def revoke_share(
    share_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await revoke_share_token(actor=auth, share_id=share_id, db=db)


@router.delete("/{share_id}")
async def delete_share(
    share_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_share_token(actor=auth, share_id=share_id, db=db)
    return {"id": share_id, "deleted": True}


@router.post("/{share_id}/extend")
async def extend_share(
    share_id: str,
    request: ExtendShareRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await extend_share_expiry(actor=auth, share_id=share_id, hours=request.hours, db=db)


@router.post("/{share_id}/reset-stats")
async def reset_stats(
    share_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await reset_share_stats(actor=auth, share_id=share_id, db=db)
