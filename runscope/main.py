"""
Entry point for the Runscope backend.

This script creates the FastAPI application, includes all API routers
and starts the radar scan scheduler thread. Run with:

    uvicorn runscope.main:app --reload

"""

from __future__ import annotations

import logging
import threading

from fastapi import FastAPI

from .api import api_router
from .core.config import settings, get_app_env
from .core.db import engine, SessionLocal
from .core.errors import log_exception
from .core.logging_config import setup_logging
from .models import Base
from .services.radar_job import RadarScanJob, run_radar_scheduler
from .services.radar_seed import seed_default_radars
from .scripts.run_migrations import run_migrations_to_head


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Runscope Backend", version="0.1.0")
    # Include API routers
    app.include_router(api_router)
    # One job per app so the API trigger and the scheduler share the same guard.
    app.state.radar_job = RadarScanJob(SessionLocal)
    app.state.radar_scheduler_stop = None
    app.state.radar_scheduler_thread = None

    @app.on_event("startup")
    def _init_db() -> None:
        logger = logging.getLogger("startup")
        env = get_app_env()
        if settings.auto_create_db:
            try:
                Base.metadata.create_all(bind=engine)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                if env == "prod":
                    raise
        if settings.auto_run_migrations:
            try:
                run_migrations_to_head(settings.database_url)
            except Exception as exc:
                log_exception(logger, "DB migrations failed", exc=exc)
                if env == "prod":
                    raise
        if settings.auto_seed_radars and settings.default_project_id:
            try:
                with SessionLocal() as db:
                    seed_default_radars(db, settings.default_project_id)
            except Exception as exc:
                log_exception(logger, "Seed radars failed", extra={"project_id": settings.default_project_id}, exc=exc)
                if env == "prod":
                    raise
        if settings.enable_radar_scheduler:
            stop_event = threading.Event()
            thread = threading.Thread(
                target=run_radar_scheduler,
                args=(stop_event, app.state.radar_job),
                daemon=True,
                name="radar-scheduler",
            )
            thread.start()
            app.state.radar_scheduler_stop = stop_event
            app.state.radar_scheduler_thread = thread

    @app.on_event("shutdown")
    def _shutdown() -> None:
        stop_event = getattr(app.state, "radar_scheduler_stop", None)
        if stop_event:
            stop_event.set()
        thread = getattr(app.state, "radar_scheduler_thread", None)
        if thread:
            thread.join(timeout=5)

    return app


app = create_app()
