"""
Calendar Sync Job for periodic background re-sync.
Re-runs the sync pass for every user with stored calendar credentials,
with bounded concurrency. Users needing reauth are counted, not retried.
"""

import asyncio
import time
from datetime import UTC, datetime

from relgraph.config import settings
from relgraph.db.helpers import DatabaseError
from relgraph.db.pool import db_pool
from relgraph.features.network_sync.domain.errors import CalendarSyncError, CredentialExpiredError
from relgraph.features.network_sync.services.sync_service import (
    CalendarSyncService,
    calendar_sync_service,
)
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.services import user_service

logger = get_logger(__name__)


class CalendarSyncJobError(Exception):
    """Custom exception for calendar sync job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class CalendarSyncMetrics:
    """Metrics tracking for one job run."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.start_time = datetime.now(UTC)
        self.users_processed = 0
        self.users_synced = 0
        self.reauth_required = 0
        self.failures = 0
        self.contacts_found = 0
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_success(self, user_id: str, contacts_found: int, duration_ms: float):
        self.users_processed += 1
        self.users_synced += 1
        self.contacts_found += contacts_found

        logger.debug(
            "Scheduled calendar sync succeeded",
            user_id=user_id,
            contacts_found=contacts_found,
            duration_ms=duration_ms,
            job_run="calendar_sync",
        )

    def record_reauth(self, user_id: str):
        self.users_processed += 1
        self.reauth_required += 1

    def record_failure(self, user_id: str, error: str):
        self.users_processed += 1
        self.failures += 1
        self.errors.append(
            {"user_id": user_id, "error": error, "timestamp": datetime.now(UTC).isoformat()}
        )

        logger.warning(
            "Scheduled calendar sync failed", user_id=user_id, error=error, job_run="calendar_sync"
        )

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": "calendar_sync",
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "users_processed": self.users_processed,
            "users_synced": self.users_synced,
            "reauth_required": self.reauth_required,
            "failures": self.failures,
            "contacts_found": self.contacts_found,
            "errors_count": len(self.errors),
        }


class CalendarSyncJob:
    """
    Background job that keeps every connected user's graph fresh.
    """

    def __init__(
        self,
        sync_service: CalendarSyncService | None = None,
        users=user_service,
        max_concurrent: int | None = None,
        timeout_seconds: float | None = None,
    ):
        self.sync_service = sync_service or calendar_sync_service
        self.users = users
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_SYNCS
        self.timeout_seconds = timeout_seconds or settings.CALENDAR_SYNC_TIMEOUT_SECONDS
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.job_metrics = CalendarSyncMetrics()

    async def run_once(self) -> dict:
        """
        Run a single iteration of the job.

        Raises:
            CalendarSyncJobError: If the user list cannot be loaded
        """
        if self.is_running:
            logger.warning("Calendar sync job already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        try:
            self.is_running = True
            self.job_metrics.reset()

            try:
                user_ids = await self.users.list_users_with_calendar_credentials()
            except DatabaseError as e:
                logger.error("Failed to list users for calendar sync", error=str(e))
                raise CalendarSyncJobError(
                    f"Failed to list users: {e}", operation="list_users"
                ) from e

            if user_ids:
                logger.info(
                    "Starting scheduled calendar sync",
                    user_count=len(user_ids),
                    max_concurrent=self.max_concurrent,
                )
                semaphore = asyncio.Semaphore(self.max_concurrent)
                await asyncio.gather(
                    *(self._sync_user_with_semaphore(semaphore, user_id) for user_id in user_ids),
                    return_exceptions=True,
                )
            else:
                logger.info("No users with calendar credentials")

            self.job_metrics.finalize()
            self.last_run_time = datetime.now(UTC)
            metrics = self.job_metrics.to_dict()
            logger.info("Calendar sync job completed", **metrics)
            return metrics

        finally:
            self.is_running = False

    async def _sync_user_with_semaphore(self, semaphore: asyncio.Semaphore, user_id: str):
        async with semaphore:
            await self._sync_user(user_id)

    async def _sync_user(self, user_id: str):
        start_time = time.time()
        try:
            result = await asyncio.wait_for(
                self.sync_service.sync_for_user(user_id), timeout=self.timeout_seconds
            )
        except CredentialExpiredError:
            self.job_metrics.record_reauth(user_id)
        except CalendarSyncError as e:
            self.job_metrics.record_failure(user_id, str(e))
        except TimeoutError:
            self.job_metrics.record_failure(
                user_id, f"Calendar sync timed out after {self.timeout_seconds}s"
            )
        except Exception as e:
            logger.exception("Unexpected error in scheduled calendar sync", user_id=user_id)
            self.job_metrics.record_failure(user_id, f"Unexpected error: {type(e).__name__}: {e}")
        else:
            self.job_metrics.record_success(
                user_id, result.contacts_found, (time.time() - start_time) * 1000
            )

    def get_job_status(self) -> dict:
        return {
            "job_name": "calendar_sync",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_minutes": settings.CALENDAR_SYNC_INTERVAL_MINUTES,
            "max_concurrent": self.max_concurrent,
            "last_run_metrics": self.job_metrics.to_dict() if self.last_run_time else None,
        }


# Singleton instance for application use
calendar_sync_job = CalendarSyncJob()


async def run_calendar_sync_job() -> dict:
    """Run a single iteration of the calendar sync job."""
    return await calendar_sync_job.run_once()


async def start_calendar_sync_scheduler():
    """
    Run the calendar sync job forever at CALENDAR_SYNC_INTERVAL_MINUTES.
    """
    interval_minutes = settings.CALENDAR_SYNC_INTERVAL_MINUTES
    logger.info("Starting calendar sync job scheduler", interval_minutes=interval_minutes)

    await db_pool.initialize()
    try:
        while True:
            try:
                metrics = await run_calendar_sync_job()
                if not metrics.get("skipped", False):
                    logger.info("Calendar sync job cycle completed", **metrics)
                await asyncio.sleep(interval_minutes * 60)

            except CalendarSyncJobError as e:
                logger.error(
                    "Error in calendar sync job scheduler", error=str(e), error_type=type(e).__name__
                )
                # Back off before retrying to avoid tight error loops
                await asyncio.sleep(60)
    finally:
        await db_pool.close()
