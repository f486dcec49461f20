"""Daily subscription expiry sweep.

The application lifespan starts ``run_expiry_scheduler`` as a background
task: one sweep right away, then one per day at the configured UTC hour.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable

import structlog
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.common.dates import utc_now
from libs.firestore.subscriptions import expire_subscriptions

logger = structlog.get_logger(__name__)


def seconds_until_next_run(now: datetime, hour: int) -> float:
    """Seconds from ``now`` to the next ``hour``:00 UTC, always in the future."""
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def run_sweep(client: AsyncClient, trigger: str) -> int | None:
    """Runs one expiry sweep; a failed run is logged and reported as None."""
    try:
        result = await expire_subscriptions(client)
    except Exception as e:
        logger.error("Expiry sweep failed", trigger=trigger, error=str(e), exc_info=True)
        return None
    logger.info("Expiry sweep finished", trigger=trigger, expired_count=result["expiredCount"])
    return result["expiredCount"]


async def run_expiry_scheduler(
    client: AsyncClient,
    hour: int,
    clock: Callable[[], datetime] = utc_now,
) -> None:
    """Sweeps at start-up, then daily at ``hour`` UTC until cancelled."""
    await run_sweep(client, trigger="startup")
    while True:
        delay = seconds_until_next_run(clock(), hour)
        logger.info("Next expiry sweep scheduled", in_seconds=round(delay))
        await asyncio.sleep(delay)
        await run_sweep(client, trigger="daily")
