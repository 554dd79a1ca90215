import os
import tempfile

# Lightweight DB setup and disable background tasks before any runscope import.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+pysqlite:///{tempfile.gettempdir()}/runscope_test_{os.getpid()}.db",
)
os.environ.setdefault("AUTO_CREATE_DB", "true")
os.environ.setdefault("AUTO_RUN_MIGRATIONS", "false")
os.environ.setdefault("AUTO_SEED_RADARS", "false")
os.environ.setdefault("ENABLE_RADAR_SCHEDULER", "false")
os.environ.setdefault("SCORING_SERVICE_URL", "")

import datetime
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from runscope.models import Base
from runscope.models.radar import Radar
from runscope.models.run import Run


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_run(db):
    base_time = datetime.datetime(2026, 1, 1, 12, 0, 0)
    counter = {"n": 0}

    def _make(**fields) -> Run:
        counter["n"] += 1
        values = {
            "id": str(uuid.uuid4()),
            "project_id": "proj-1",
            "type": "llm",
            "name": "gpt-4o-mini",
            "status": "success",
            "input": "hello",
            "output": "hi there",
            "duration_ms": 100,
            "prompt_tokens": 10,
            "completion_tokens": 20,
            "cost": 0.001,
            "created_at": base_time + datetime.timedelta(minutes=counter["n"]),
        }
        values.update(fields)
        run = Run(**values)
        db.add(run)
        db.commit()
        return run

    return _make


@pytest.fixture
def make_radar(db):
    def _make(view, checks, project_id: str = "proj-1", description: str = "test radar") -> Radar:
        radar = Radar(project_id=project_id, description=description, view=view, checks=checks)
        db.add(radar)
        db.commit()
        return radar

    return _make
