"""
Trash cleanup scheduler.

Runs daily at TRASH_CLEANUP_HOUR (UTC) and permanently deletes entities that
have been in the trash for at least their resource's retention period, for
every soft-deletable resource registered with the panel.
"""

import asyncio
import logging
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.cron import CronTrigger  # type: ignore

from admin_panel.core.config import TRASH_CLEANUP_HOUR
from admin_panel.core.database import get_db_context
from admin_panel.resources.registry import AdminPanel, get_admin_panel
from admin_panel.services.trash_service import TrashService

logger = logging.getLogger(__name__)

# Global singleton instance
_trash_cleanup_scheduler: Optional['TrashCleanupScheduler'] = None


class TrashCleanupScheduler:
    """
    Scheduler for the periodic trash sweep.

    Database sessions are created fresh for each run to avoid stale session
    issues.
    """

    def __init__(self, panel: Optional[AdminPanel] = None, hour: int = TRASH_CLEANUP_HOUR):
        self.panel = panel
        self.hour = hour
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Trash cleanup scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_cleanup,
            CronTrigger(hour=self.hour, minute=0),
            id="trash_cleanup",
            name="Permanently delete expired trashed entities",
            replace_existing=True,
            misfire_grace_time=3600,  # Allow 1 hour grace time if server was down
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Trash cleanup scheduler started (runs daily at {self.hour:02d}:00 UTC)")

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Trash cleanup scheduler stopped")

    async def _run_cleanup(self) -> None:
        logger.info("Starting scheduled trash cleanup...")
        # Blocking database work runs off the event loop
        await asyncio.to_thread(self.run_cleanup)

    def run_cleanup(self) -> Dict[str, int]:
        """
        Sweep every soft-deletable resource.

        Each resource is committed on its own so one failure does not undo
        the others.

        Returns:
            URI key -> number of permanently deleted entities
        """
        panel = self.panel or get_admin_panel()
        results: Dict[str, int] = {}
        for resource_cls in panel.soft_deletable_resources():
            try:
                with get_db_context() as db:
                    results[resource_cls.uri_key()] = TrashService.cleanup_old_trashed(db, resource_cls)
            except Exception as e:
                logger.exception(f"Error during trash cleanup of {resource_cls.uri_key()}: {e}")
                # Don't re-raise - allow the remaining resources and future runs to proceed
        logger.info(f"Trash cleanup completed: {results}")
        return results


def get_trash_cleanup_scheduler() -> TrashCleanupScheduler:
    """
    Get the global trash cleanup scheduler instance.

    Returns:
        TrashCleanupScheduler: The global scheduler instance
    """
    global _trash_cleanup_scheduler
    if _trash_cleanup_scheduler is None:
        _trash_cleanup_scheduler = TrashCleanupScheduler()
    return _trash_cleanup_scheduler


async def start_trash_cleanup_scheduler() -> None:
    """Start the global trash cleanup scheduler."""
    scheduler = get_trash_cleanup_scheduler()
    await scheduler.start_scheduler()


async def stop_trash_cleanup_scheduler() -> None:
    """Stop the global trash cleanup scheduler."""
    scheduler = get_trash_cleanup_scheduler()
    await scheduler.stop_scheduler()
