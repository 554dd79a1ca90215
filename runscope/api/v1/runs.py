"""
API endpoint for listing runs under a serialized logic-tree filter.

The ``filters`` query parameter carries a token produced by
``services.logic.serialize``. Malformed tokens fall back to "no filter"
so that stale links keep working; trees that need an evaluator cannot be
listed through SQL and are rejected.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ...core.db import get_db
from ...core.errors import FilterParamsError
from ...core.pagination import paginate
from ...schemas.run import RunOut
from ...services.filters import DEFAULT_REGISTRY
from ...services.logic import deserialize_or_default, has_non_pushdown_leaf
from ...services.logic_compiler import compile_logic
from ...services.run_store import RunStore


router = APIRouter(prefix="/api/v1/projects/{project_id}/runs", tags=["runs"])


@router.get("", response_model=dict)
def list_runs(
    project_id: str,
    response: Response,
    filters: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1),
    db: Session = Depends(get_db),
) -> dict:
    tree = deserialize_or_default(filters)
    if has_non_pushdown_leaf(tree, DEFAULT_REGISTRY):
        raise HTTPException(status_code=422, detail="Filters require per-run evaluation and cannot be listed")
    try:
        predicate = compile_logic(tree, DEFAULT_REGISTRY)
    except FilterParamsError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return paginate(
        RunStore(db).query_runs(project_id, predicate),
        page=page,
        page_size=page_size,
        serialize=lambda row: RunOut.model_validate(row).model_dump(),
        response=response,
    )
