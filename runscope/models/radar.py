"""
Radars and their per-run results.

A radar pairs a scope (``view``) with a pass/fail condition
(``checks``); both columns hold logic trees in their JSON wire form.
The scan job writes one ``RadarResult`` per radar and run. Nothing in
the schema enforces that: the job excludes already-scored runs before
fetching, and concurrent scans from separate processes can still race.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Integer, Boolean, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


class Radar(Base):
    __tablename__ = "radars"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id: Mapped[str] = mapped_column(String(36), index=True)
    owner_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    view: Mapped[list] = mapped_column(JSON, nullable=False)
    checks: Mapped[list] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    results: Mapped[list["RadarResult"]] = relationship(
        back_populates="radar",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class RadarResult(Base):
    __tablename__ = "radar_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    radar_id: Mapped[str] = mapped_column(String(36), ForeignKey("radars.id", ondelete="CASCADE"))
    run_id: Mapped[str] = mapped_column(String(36), ForeignKey("runs.id", ondelete="CASCADE"))
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # Ordered per-operand outcomes: [{"passed": ..., "filterId": ..., "details": ...}]
    results: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    radar: Mapped[Radar] = relationship(back_populates="results")

    __table_args__ = (
        Index("ix_radar_results_radar_run", "radar_id", "run_id"),
    )
