"""
Scheduler API Routes

Status of the background scheduler and a manual contact reconcile tick.
"""
from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from .routes_auth import AdminDep
from .services.scheduler import scheduler_service

router = APIRouter(prefix="/api/admin/scheduler", tags=["scheduler"])


class SchedulerStatus(BaseModel):
    running: bool
    jobs_count: int
    jobs: list[dict]


@router.get("/status", response_model=SchedulerStatus)
async def get_scheduler_status(_: AdminDep):
    """Get scheduler status and list of jobs."""
    jobs = scheduler_service.get_jobs()
    return SchedulerStatus(
        running=scheduler_service.is_running(),
        jobs_count=len(jobs),
        jobs=jobs,
    )


@router.post("/contact-sync")
async def run_contact_sync(_: AdminDep):
    """Run one contact reconcile tick now (skipped when another instance holds the lock)."""
    result = await scheduler_service.run_contact_sync()
    return {"skipped": result is None, **(result or {})}
