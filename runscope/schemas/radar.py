"""
Pydantic schemas for radars and radar results.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..services.logic import parse_logic


def _check_logic(value: Any) -> Any:
    # Raises LogicParseError (a ValueError), which pydantic reports as 422.
    parse_logic(value)
    return value


class RadarBase(BaseModel):
    description: Optional[str] = None
    view: List[Any]
    checks: List[Any]

    @field_validator("view", "checks")
    @classmethod
    def _valid_tree(cls, value: Any) -> Any:
        return _check_logic(value)


class RadarCreate(RadarBase):
    owner_id: Optional[str] = None


class RadarUpdate(BaseModel):
    description: Optional[str] = None
    view: Optional[List[Any]] = None
    checks: Optional[List[Any]] = None

    @field_validator("view", "checks")
    @classmethod
    def _valid_tree(cls, value: Any) -> Any:
        if value is None:
            return value
        return _check_logic(value)


class RadarOut(RadarBase):
    id: str
    project_id: str
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    passed: int = 0
    failed: int = 0

    model_config = ConfigDict(from_attributes=True)


class RadarResultOut(BaseModel):
    id: int
    radar_id: str
    run_id: str
    passed: bool
    results: List[Any]
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RadarChartPoint(BaseModel):
    day: date
    passed: int
    failed: int
