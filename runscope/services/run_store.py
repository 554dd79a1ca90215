"""
Storage access used by the radar engine.

Wraps a SQLAlchemy session with the handful of queries the scan job and
the interpreter need: listing radars, fetching unscored runs under a
scope predicate, existence checks under a predicate and inserting
results.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set

from sqlalchemy import select
from sqlalchemy.orm import Query, Session
from sqlalchemy.sql.elements import ColumnElement

from ..models.radar import Radar, RadarResult
from ..models.run import Run


class RunStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_radars(self) -> List[Radar]:
        return list(self.db.execute(select(Radar)).scalars().all())

    def fetch_unscored_runs(self, radar: Radar, scope: ColumnElement[bool], limit: int) -> List[Run]:
        """Runs of the radar's project under ``scope`` without a result yet, oldest first."""
        scored = select(RadarResult.run_id).where(RadarResult.radar_id == radar.id)
        stmt = (
            select(Run)
            .where(
                Run.project_id == radar.project_id,
                scope,
                Run.id.not_in(scored),
            )
            .order_by(Run.created_at.asc(), Run.id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def query_runs(self, project_id: str, predicate: ColumnElement[bool]) -> Query:
        """Project runs under ``predicate``, newest first, for paginated listings."""
        return (
            self.db.query(Run)
            .filter(Run.project_id == project_id, predicate)
            .order_by(Run.created_at.desc(), Run.id.desc())
        )

    def run_matches(self, run_id: str, predicate: ColumnElement[bool]) -> bool:
        stmt = select(Run.id).where(Run.id == run_id, predicate).limit(1)
        return self.db.execute(stmt).first() is not None

    def matching_run_ids(self, run_ids: Sequence[str], predicate: ColumnElement[bool]) -> Set[str]:
        if not run_ids:
            return set()
        stmt = select(Run.id).where(Run.id.in_(list(run_ids)), predicate)
        return set(self.db.execute(stmt).scalars().all())

    def insert_result(self, radar_id: str, run_id: str, passed: bool, results: Iterable[dict]) -> RadarResult:
        row = RadarResult(radar_id=radar_id, run_id=run_id, passed=passed, results=list(results))
        try:
            self.db.add(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return row
