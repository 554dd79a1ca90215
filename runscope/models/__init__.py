"""
SQLAlchemy model base class for the Runscope backend.

This package defines ORM models for captured LLM runs, radars and radar
results. All models should inherit from the declarative `Base` defined
here.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .run import Run  # noqa: E402,F401
from .radar import Radar, RadarResult  # noqa: E402,F401

__all__ = [
    "Base",
    # Records
    "Run",
    # Radars
    "Radar",
    "RadarResult",
]
