"""
Scheduled Tasks for Usage Tracking

Periodic in-process maintenance:
1. Usage bucket pruning - drop hourly request buckets from earlier hours

Uses APScheduler for in-process scheduling. Usage data lives in process
memory, so each worker runs its own scheduler against its own tracker.
"""

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from aicouncil.services.usage_tracker import UsageTracker

logger = logging.getLogger("aicouncil.scheduler")

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def prune_usage_buckets(tracker: UsageTracker) -> int:
    """
    Drop hourly buckets opened before the current hour.

    Counting already ignores stale buckets; this only keeps the map from
    growing with one entry per user per hour.
    """
    pruned = tracker.prune_stale_buckets()
    stats = tracker.system_stats()
    logger.info(
        f"Usage maintenance: pruned {pruned} stale buckets, "
        f"{stats['totalUsers']} users, {stats['totalRequests']} requests tracked"
    )
    return pruned


def setup_scheduler(tracker: UsageTracker) -> AsyncIOScheduler:
    """
    Set up the APScheduler with usage maintenance tasks.

    Args:
        tracker: The application's usage tracker

    Returns:
        Configured scheduler instance
    """
    global scheduler

    scheduler = AsyncIOScheduler()

    # Bucket pruning - runs at the top of every hour
    scheduler.add_job(
        prune_usage_buckets,
        trigger=CronTrigger(minute=0),
        args=[tracker],
        id="usage_bucket_prune",
        name="Usage Bucket Pruning (Hourly)",
        replace_existing=True,
    )

    logger.info("Scheduler configured: usage bucket pruning hourly")
    return scheduler


def start_scheduler(tracker: UsageTracker):
    """Start the scheduler if not already running."""
    global scheduler

    if scheduler is None:
        scheduler = setup_scheduler(tracker)

    if not scheduler.running:
        scheduler.start()
        logger.info("Usage maintenance scheduler started")


def stop_scheduler():
    """Stop the scheduler if running."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("Usage maintenance scheduler stopped")
    scheduler = None


# Optional: Run the maintenance task manually
if __name__ == "__main__":
    asyncio.run(prune_usage_buckets(UsageTracker()))
