"""
API package for the Runscope backend.

This package aggregates all API routers to be included in the FastAPI
application. The API is versioned under ``/api/v1``.
"""

from fastapi import APIRouter

from .v1.radars import router as radars_router
from .v1.runs import router as runs_router
from .v1.scan import router as scan_router

api_router = APIRouter()
api_router.include_router(radars_router)
api_router.include_router(runs_router)
api_router.include_router(scan_router)
