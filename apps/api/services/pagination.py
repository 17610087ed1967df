"""Offset pagination over SQLAlchemy select statements."""

from __future__ import annotations

import math
from typing import Any, Callable, Dict

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

MAX_PAGE_SIZE = 100


async def paginate(
    db: AsyncSession,
    stmt: Select,
    *,
    page: int,
    page_size: int,
    serialize: Callable[[Any], Dict[str, Any]],
) -> Dict[str, Any]:
    page = max(int(page), 1)
    page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total_count = int((await db.execute(count_stmt)).scalar() or 0)

    rows = await db.execute(stmt.offset((page - 1) * page_size).limit(page_size))
    items = [serialize(row) for row in rows.scalars().all()]

    return {
        "items": items,
        "total_count": total_count,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total_count / page_size) if total_count else 0,
    }
