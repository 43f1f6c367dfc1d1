"""
Scheduler Service

Periodic background jobs:
- contact cache reconcile (pushes contact submissions whose database write
  failed, then prunes synced cache entries)

Single-leader election via Postgres advisory locks:
- Only the instance that acquires the lock executes the tick
- Other instances silently skip
- Controlled by SCHEDULER_ENABLED env (default: true)
"""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from scriptdesk.db import engine
from scriptdesk.services.contact_cache import get_contact_cache
from scriptdesk.settings import get_settings

logger = logging.getLogger("scheduler")

LOCK_CONTACT_SYNC = 910_001


class SchedulerService:
    _instance: "SchedulerService | None" = None

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._running = False

    @classmethod
    def get_instance(cls) -> "SchedulerService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @staticmethod
    def _uses_advisory_locks(conn: AsyncConnection) -> bool:
        return conn.dialect.name == "postgresql"

    async def _try_advisory_lock(self, conn: AsyncConnection, lock_key: int) -> bool:
        """Non-blocking session-level lock; True means this instance leads the tick.

        The lock belongs to `conn`, so the caller must keep that connection
        checked out until `_release_advisory_lock`.
        """
        if not self._uses_advisory_locks(conn):
            return True
        result = await conn.execute(text(f"SELECT pg_try_advisory_lock({lock_key})"))
        acquired = bool(result.scalar())
        await conn.commit()
        return acquired

    async def _release_advisory_lock(self, conn: AsyncConnection, lock_key: int):
        if self._uses_advisory_locks(conn):
            await conn.execute(text(f"SELECT pg_advisory_unlock({lock_key})"))
            await conn.commit()

    def start(self):
        """Start the scheduler (respects SCHEDULER_ENABLED env)."""
        settings = get_settings()
        if not settings.scheduler_enabled:
            logger.info("Scheduler DISABLED by SCHEDULER_ENABLED=false, skipping start")
            return
        if self._running:
            return

        self.scheduler.add_job(
            self.run_contact_sync,
            IntervalTrigger(minutes=settings.contact_sync_interval_minutes),
            id="contact_sync",
            name="Reconcile contact cache",
            replace_existing=True,
        )
        self.scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self):
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    async def run_contact_sync(self):
        async with engine.connect() as conn:
            if not await self._try_advisory_lock(conn, LOCK_CONTACT_SYNC):
                logger.debug("[contact_sync] lock held by another instance, skipping tick")
                return None
            try:
                async with AsyncSession(bind=conn, expire_on_commit=False) as session:
                    result = await get_contact_cache().reconcile(session)
                logger.info("[contact_sync] pushed=%d pending=%d", result["pushed"], result["pending"])
                return result
            finally:
                await self._release_advisory_lock(conn, LOCK_CONTACT_SYNC)

    def get_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
            })
        return jobs


scheduler_service = SchedulerService.get_instance()
