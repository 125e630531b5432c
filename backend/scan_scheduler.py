"""
scan_scheduler.py
- Optional background refresh that keeps the scan cache warm
- Off unless SCAN_REFRESH_SEC > 0
"""

from apscheduler.schedulers.background import BackgroundScheduler
from threading import Lock
import logging

from scanner import get_scan
from settings import SCAN_REFRESH_SEC

logger = logging.getLogger(__name__)

# held by every forced scan, from the API or the scheduler
RUN_LOCK = Lock()

scheduler = BackgroundScheduler()


def refresh_scan():
    """Force one scan into the cache; skipped while another one is running."""
    if RUN_LOCK.locked():
        return None

    with RUN_LOCK:
        scan = get_scan(force=True)
    logger.debug("background scan refreshed: %d networks", len(scan.networks))
    return scan


def has_jobs():
    return bool(scheduler.get_jobs())


if SCAN_REFRESH_SEC > 0:
    scheduler.add_job(
        refresh_scan,
        "interval",
        seconds=SCAN_REFRESH_SEC,
        id="refresh_scan",
        max_instances=1,
    )

__all__ = ["scheduler", "RUN_LOCK", "refresh_scan", "has_jobs"]
