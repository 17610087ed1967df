"""RQ worker process entrypoint for share maintenance jobs."""

import logging

from rq import Worker

from config import settings
from services.maintenance import MAINTENANCE_QUEUE_NAME, get_redis_connection


def main():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    redis_conn = get_redis_connection()
    worker = Worker([MAINTENANCE_QUEUE_NAME], connection=redis_conn)
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()
