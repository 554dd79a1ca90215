"""
Radar scan job.

For every radar, fetch a bounded batch of runs that match its scope and
have no result yet, classify each one with the radar's checks and store
one ``RadarResult`` per run. Checks that compile to SQL are answered for
the whole batch with a single query; anything else goes through the
logic interpreter run by run.

Only one scan may be in flight per process. The guard is a local lock,
not a distributed one: two processes scanning the same database can
still both score a run.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import log_exception
from ..models.radar import Radar
from .filters import DEFAULT_REGISTRY, FilterRegistry
from .logic import has_non_pushdown_leaf, parse_logic
from .logic_compiler import compile_logic
from .logic_interpreter import LogicInterpreter
from .run_store import RunStore


logger = logging.getLogger("radar_job")


class SingleFlight:
    """Non-blocking, process-local mutual exclusion for the scan job."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def running(self) -> bool:
        return self._lock.locked()


@dataclass
class RadarScanStats:
    radar_id: str
    scanned: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class RadarScanJob:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: FilterRegistry = DEFAULT_REGISTRY,
        guard: Optional[SingleFlight] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry
        self.guard = guard or SingleFlight()
        if batch_size is None:
            batch_size = settings.radar_batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size}")
        self.batch_size = batch_size

    async def run_once(self) -> None:
        """Run one scan pass over every radar. Never raises."""
        if not self.guard.try_acquire():
            logger.warning("Radar scan already running; skipping")
            return
        try:
            with self.session_factory() as db:
                # Loaded runs and radars are read-only here; keep them usable across result commits.
                db.expire_on_commit = False
                store = RunStore(db)
                radar_ids = [radar.id for radar in store.list_radars()]
                for radar_id in radar_ids:
                    try:
                        radar = db.get(Radar, radar_id)
                        if radar is None:
                            continue
                        stats = await self.scan_radar(store, radar)
                    except Exception as exc:
                        db.rollback()
                        log_exception(logger, "Radar scan failed", extra={"radar_id": radar_id}, exc=exc)
                        continue
                    logger.info(
                        "Radar scanned radar_id=%s runs=%s passed=%s failed=%s skipped=%s",
                        stats.radar_id,
                        stats.scanned,
                        stats.passed,
                        stats.failed,
                        stats.skipped,
                    )
        except Exception as exc:
            log_exception(logger, "Radar scan pass failed", exc=exc)
        finally:
            self.guard.release()

    async def scan_radar(self, store: RunStore, radar: Radar) -> RadarScanStats:
        radar_id = radar.id
        view = parse_logic(radar.view)
        checks = parse_logic(radar.checks)
        scope = compile_logic(view, self.registry)
        runs = store.fetch_unscored_runs(radar, scope, self.batch_size)
        stats = RadarScanStats(radar_id=radar_id)
        logger.info("Analyzing %s runs for radar_id=%s", len(runs), radar_id)
        if not runs:
            return stats

        if not has_non_pushdown_leaf(checks, self.registry):
            predicate = compile_logic(checks, self.registry)
            run_ids = [run.id for run in runs]
            matching = store.matching_run_ids(run_ids, predicate)
            for run_id in run_ids:
                passed = run_id in matching
                try:
                    store.insert_result(radar_id, run_id, passed, [])
                except Exception as exc:
                    stats.skipped += 1
                    log_exception(logger, "Storing radar result failed", extra={"radar_id": radar_id, "run_id": run_id}, exc=exc)
                    continue
                self._count(stats, passed)
            return stats

        interpreter = LogicInterpreter(store, self.registry)
        for run in runs:
            run_id = run.id
            try:
                passed, outcomes = await interpreter.check_run(run, checks)
                store.insert_result(radar_id, run_id, passed, [o.to_dict() for o in outcomes])
            except Exception as exc:
                # The run stays unscored and is retried on the next pass.
                store.db.rollback()
                stats.skipped += 1
                log_exception(logger, "Radar check failed", extra={"radar_id": radar_id, "run_id": run_id}, exc=exc)
                continue
            logger.debug("Run %s passed=%s radar_id=%s", run_id, passed, radar_id)
            self._count(stats, passed)
        return stats

    @staticmethod
    def _count(stats: RadarScanStats, passed: bool) -> None:
        stats.scanned += 1
        if passed:
            stats.passed += 1
        else:
            stats.failed += 1


def run_radar_scheduler(stop_event: threading.Event, job: Optional[RadarScanJob] = None) -> None:
    """Thread target: run one scan pass every ``RADAR_SCAN_INTERVAL_SEC``."""
    from ..core.db import SessionLocal

    job = job or RadarScanJob(SessionLocal)
    interval_sec = max(1, settings.radar_scan_interval_sec)
    logger.info("Radar scheduler started (interval=%ss batch=%s)", interval_sec, job.batch_size)
    while not stop_event.is_set():
        try:
            asyncio.run(job.run_once())
        except Exception as exc:
            log_exception(logger, "Radar scheduler cycle failed", exc=exc)
        stop_event.wait(interval_sec)
    logger.info("Radar scheduler stopped")
