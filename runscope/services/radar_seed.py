"""
Auto-seed baseline radars for a project.
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy.orm import Session

from ..models.radar import Radar


logger = logging.getLogger("radar_seed")

LLM_ONLY = ["AND", {"id": "type", "params": {"type": "llm"}}]

DEFAULT_RADARS: List[dict] = [
    {
        "description": "Failed or slow LLM calls",
        "view": LLM_ONLY,
        "checks": [
            "OR",
            {"id": "status", "params": {"status": "error"}},
            {"id": "duration", "params": {"operator": "gt", "duration": 30000}},
        ],
    },
    {
        "description": "Answer contains PII (Personal Identifiable Information)",
        "view": LLM_ONLY,
        "checks": [
            "OR",
            {"id": "email", "params": {"field": "output", "type": "contains"}},
            {"id": "cc", "params": {"field": "output", "type": "contains"}},
            {"id": "phone", "params": {"field": "output", "type": "contains"}},
        ],
    },
]


def _radar_exists(db: Session, project_id: str, description: str) -> bool:
    return (
        db.query(Radar)
        .filter(Radar.project_id == project_id, Radar.description == description)
        .first()
        is not None
    )


def seed_default_radars(db: Session, project_id: str) -> int:
    created = 0
    for template in DEFAULT_RADARS:
        if _radar_exists(db, project_id, template["description"]):
            continue
        db.add(
            Radar(
                project_id=project_id,
                description=template["description"],
                view=template["view"],
                checks=template["checks"],
            )
        )
        created += 1
    if created:
        db.commit()
        logger.info("Seeded %s default radars for project_id=%s", created, project_id)
    return created
