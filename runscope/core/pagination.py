"""Pagination helpers with hard caps."""

from __future__ import annotations

import os
from typing import Any, Callable, Optional

from fastapi import Response
from sqlalchemy.orm import Query


DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_PAGE_SIZE = 200


def get_max_page_size() -> int:
    raw = os.getenv("API_MAX_PAGE_SIZE", str(DEFAULT_MAX_PAGE_SIZE))
    try:
        val = int(raw)
    except Exception:
        val = DEFAULT_MAX_PAGE_SIZE
    if val < 1:
        return DEFAULT_MAX_PAGE_SIZE
    return val


def clamp_page_size(page_size: int) -> int:
    if page_size < 1:
        return 1
    return min(page_size, get_max_page_size())


def paginate(
    query: Query,
    *,
    page: int,
    page_size: int,
    serialize: Callable[[Any], dict],
    response: Optional[Response] = None,
) -> dict:
    """Apply offset/limit to an ordered query and wrap the page in an envelope.

    ``page_size`` is clamped to ``API_MAX_PAGE_SIZE``. When ``response`` is
    given, the ``X-Total-Count``/``X-Page``/``X-Page-Size`` headers are set.
    """
    page_size = clamp_page_size(page_size)
    total = query.count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    if response is not None:
        response.headers["X-Total-Count"] = str(total)
        response.headers["X-Page"] = str(page)
        response.headers["X-Page-Size"] = str(page_size)
    return {
        "items": [serialize(row) for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }
