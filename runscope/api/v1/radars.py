"""
API endpoints for managing radars and reading their results.
"""

from __future__ import annotations

import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ...core.db import get_db
from ...core.pagination import paginate
from ...models.radar import Radar, RadarResult
from ...models.run import Run
from ...schemas.radar import RadarChartPoint, RadarCreate, RadarOut, RadarResultOut, RadarUpdate


router = APIRouter(prefix="/api/v1/projects/{project_id}/radars", tags=["radars"])

CHART_DAYS = 7


def _with_counts(db: Session, project_id: str):
    passed = func.coalesce(func.sum(case((RadarResult.passed.is_(True), 1), else_=0)), 0)
    failed = func.coalesce(func.sum(case((RadarResult.passed.is_(False), 1), else_=0)), 0)
    return (
        db.query(Radar, passed.label("passed"), failed.label("failed"))
        .outerjoin(RadarResult, RadarResult.radar_id == Radar.id)
        .filter(Radar.project_id == project_id)
        .group_by(Radar.id)
    )


def _to_radar_out(radar: Radar, passed: int = 0, failed: int = 0) -> dict:
    out = RadarOut.model_validate(radar)
    out.passed = int(passed or 0)
    out.failed = int(failed or 0)
    return out.model_dump()


def _get_radar(db: Session, project_id: str, radar_id: str) -> Radar:
    radar = (
        db.query(Radar)
        .filter(Radar.id == radar_id, Radar.project_id == project_id)
        .first()
    )
    if not radar:
        raise HTTPException(status_code=404, detail="Radar not found")
    return radar


@router.get("", response_model=list)
def list_radars(project_id: str, db: Session = Depends(get_db)) -> list:
    rows = _with_counts(db, project_id).order_by(Radar.created_at.asc()).all()
    return [_to_radar_out(radar, passed, failed) for radar, passed, failed in rows]


@router.get("/{radar_id}", response_model=dict)
def get_radar(project_id: str, radar_id: str, db: Session = Depends(get_db)) -> dict:
    row = _with_counts(db, project_id).filter(Radar.id == radar_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Radar not found")
    radar, passed, failed = row
    return _to_radar_out(radar, passed, failed)


@router.post("", response_model=dict, status_code=201)
def create_radar(project_id: str, payload: RadarCreate, db: Session = Depends(get_db)) -> dict:
    radar = Radar(
        project_id=project_id,
        owner_id=payload.owner_id,
        description=payload.description,
        view=payload.view,
        checks=payload.checks,
    )
    db.add(radar)
    db.commit()
    db.refresh(radar)
    return _to_radar_out(radar)


@router.patch("/{radar_id}", response_model=dict)
def update_radar(project_id: str, radar_id: str, payload: RadarUpdate, db: Session = Depends(get_db)) -> dict:
    radar = _get_radar(db, project_id, radar_id)
    data = payload.model_dump(exclude_unset=True)
    for key in ("description", "view", "checks"):
        if key in data and (data[key] is not None or key == "description"):
            setattr(radar, key, data[key])
    db.add(radar)
    db.commit()
    db.refresh(radar)
    return _to_radar_out(radar)


@router.delete("/{radar_id}", response_model=dict)
def delete_radar(project_id: str, radar_id: str, db: Session = Depends(get_db)) -> dict:
    radar = _get_radar(db, project_id, radar_id)
    out = _to_radar_out(radar)
    db.delete(radar)
    db.commit()
    return out


@router.get("/{radar_id}/chart", response_model=list[RadarChartPoint])
def radar_chart(project_id: str, radar_id: str, db: Session = Depends(get_db)) -> list[RadarChartPoint]:
    """Passed/failed counts per day of run creation over the last week, zero-filled."""
    _get_radar(db, project_id, radar_id)
    today = datetime.datetime.utcnow().date()
    first_day = today - datetime.timedelta(days=CHART_DAYS - 1)
    since = datetime.datetime.combine(first_day, datetime.time.min)
    rows = (
        db.query(RadarResult.passed, Run.created_at)
        .join(Run, Run.id == RadarResult.run_id)
        .filter(
            RadarResult.radar_id == radar_id,
            Run.project_id == project_id,
            Run.created_at >= since,
        )
        .all()
    )
    buckets = {
        first_day + datetime.timedelta(days=offset): {"passed": 0, "failed": 0}
        for offset in range(CHART_DAYS)
    }
    for passed, created_at in rows:
        day = created_at.date()
        if day not in buckets:
            continue
        buckets[day]["passed" if passed else "failed"] += 1
    return [RadarChartPoint(day=day, **counts) for day, counts in sorted(buckets.items())]


@router.get("/{radar_id}/results", response_model=dict)
def list_radar_results(
    project_id: str,
    radar_id: str,
    response: Response,
    passed: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1),
    db: Session = Depends(get_db),
) -> dict:
    _get_radar(db, project_id, radar_id)
    query = db.query(RadarResult).filter(RadarResult.radar_id == radar_id)
    if passed is not None:
        query = query.filter(RadarResult.passed == passed)
    query = query.order_by(RadarResult.created_at.desc(), RadarResult.id.desc())
    return paginate(
        query,
        page=page,
        page_size=page_size,
        serialize=lambda row: RadarResultOut.model_validate(row).model_dump(),
        response=response,
    )
