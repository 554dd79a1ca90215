"""
Radar worker process entrypoint.

Runs the radar scan loop in the foreground, for deployments that keep
the scheduler out of the API process (set ENABLE_RADAR_SCHEDULER=false
there). Run with:

    python -m runscope.worker [--once]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import threading

from .core.config import settings
from .core.db import SessionLocal
from .core.logging_config import setup_logging
from .services.radar_job import RadarScanJob, run_radar_scheduler


logger = logging.getLogger("worker")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run radar scans against captured runs")
    parser.add_argument("--once", action="store_true", help="Run a single scan pass and exit")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    args = parser.parse_args(argv)

    setup_logging(log_file=args.log_file)
    logger.info("Worker booted (pid=%s)", os.getpid())
    job = RadarScanJob(SessionLocal, batch_size=settings.radar_batch_size)

    if args.once:
        asyncio.run(job.run_once())
        return 0

    stop_event = threading.Event()
    try:
        run_radar_scheduler(stop_event, job)
    except KeyboardInterrupt:
        stop_event.set()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
