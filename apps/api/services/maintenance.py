"""Retention housekeeping jobs and their Redis/RQ queue helpers.

Housekeeping only trims audit and history rows past their retention window.
Share tokens are never removed here; expired shares keep answering 410 until
an admin explicitly purges them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from redis import Redis
from rq import Queue, Retry
from rq.job import Job
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from database import async_session_maker
from services.clipboard import purge_clipboard_history
from services.share import purge_access_logs

logger = logging.getLogger(__name__)

MAINTENANCE_QUEUE_NAME = "maintenance_jobs"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_maintenance_queue() -> Queue:
    return Queue(
        name=MAINTENANCE_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=600,
    )


async def run_share_maintenance(
    retention_days: Optional[int] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Dict[str, int]:
    """Purge share access logs and copy history older than their retention windows."""
    days = int(retention_days or settings.SHARE_ACCESS_LOG_RETENTION_DAYS)
    async with (session_maker or async_session_maker)() as db:
        purged_logs = await purge_access_logs(db=db, older_than_days=days)
        purged_copies = await purge_clipboard_history(
            db=db,
            older_than_days=settings.CLIPBOARD_HISTORY_RETENTION_DAYS,
        )
    return {"access_logs": purged_logs, "clipboard_history": purged_copies}


def run_share_maintenance_job(retention_days: Optional[int] = None) -> Dict[str, int]:
    """RQ entrypoint; workers call this synchronously."""
    result = asyncio.run(run_share_maintenance(retention_days))
    logger.info(
        "Maintenance removed %s access logs and %s copy history rows",
        result["access_logs"],
        result["clipboard_history"],
    )
    return result


def enqueue_share_maintenance(retention_days: Optional[int] = None) -> Job:
    """Enqueue a maintenance run with retry/timeouts for durability."""
    queue = get_maintenance_queue()
    return queue.enqueue(
        "services.maintenance.run_share_maintenance_job",
        retention_days,
        retry=Retry(max=3, interval=[30, 120, 600]),
        job_timeout=600,
        result_ttl=86400,
        failure_ttl=86400,
    )
