"""
Manual trigger for a radar scan pass and scheduler health.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, BackgroundTasks, Request

from ...services.filters import DEFAULT_REGISTRY
from ...services.radar_job import RadarScanJob


router = APIRouter(prefix="/api/v1", tags=["radar-scan"])


def _run_scan(job: RadarScanJob) -> None:
    asyncio.run(job.run_once())


@router.post("/radars/scan", status_code=202)
def trigger_scan(request: Request, background_tasks: BackgroundTasks) -> dict:
    job: RadarScanJob = request.app.state.radar_job
    already_running = job.guard.running
    background_tasks.add_task(_run_scan, job)
    return {"scheduled": True, "already_running": already_running}


@router.get("/health")
def health(request: Request) -> dict:
    job: RadarScanJob = request.app.state.radar_job
    thread = getattr(request.app.state, "radar_scheduler_thread", None)
    return {
        "status": "ok",
        "scheduler": {
            "enabled": thread is not None,
            "alive": bool(thread and thread.is_alive()),
            "scan_running": job.guard.running,
            "batch_size": job.batch_size,
        },
        "filters": DEFAULT_REGISTRY.ids(),
    }
