"""Admin endpoints: system-wide usage statistics and counter resets."""

import logging

from fastapi import APIRouter, Depends

from aicouncil.api.deps import require_admin
from aicouncil.db import User
from aicouncil.schemas import ok
from aicouncil.services.usage_tracker import UsageTracker, get_usage_tracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/usage")
async def system_usage(
    admin: User = Depends(require_admin),
    tracker: UsageTracker = Depends(get_usage_tracker),
):
    return ok(tracker.system_stats())


@router.post("/usage/reset")
async def reset_usage(
    admin: User = Depends(require_admin),
    tracker: UsageTracker = Depends(get_usage_tracker),
):
    """Drop all in-process usage history and hourly counters."""
    tracker.clear()
    logger.warning(f"[USAGE] Usage data reset by admin {admin.id}")
    return ok(message="Usage data reset")
