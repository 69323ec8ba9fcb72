from __future__ import annotations

from redis import Redis
from rq import Queue
from rq.job import Job

from marketlog.config.settings import settings
from marketlog.jobs.market_fetch import run_market_fetch


def enqueue_market_fetch(instruments: list[str], request_id: str) -> Job:
    """Queue one on-demand fetch; the worker stores rows under the on-demand source."""
    market_fetch_queue = Queue(
        name=settings.market_fetch_queue_name,
        connection=Redis.from_url(settings.redis_url),
    )
    return market_fetch_queue.enqueue(
        run_market_fetch,
        instruments=instruments,
        request_id=request_id,
        source=settings.on_demand_source,
    )
