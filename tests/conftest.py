# tests/conftest.py

from __future__ import annotations

import os

# Keep the app's module-level engine off the working directory.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from taskdeck.db.config import get_session
from taskdeck.routers.tasks import get_task_service
from taskdeck.services.recurrence_engine import RecurrenceEngine
from taskdeck.services.task_service import TaskService

from .factories import FixedClock, SequentialIds


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def recurrence(clock: FixedClock) -> RecurrenceEngine:
    return RecurrenceEngine(clock=clock, id_factory=SequentialIds())


@pytest.fixture()
def db_session():
    """Fresh in-memory database shared by every connection in the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture()
def service(db_session: Session, recurrence: RecurrenceEngine) -> TaskService:
    return TaskService(db_session, recurrence)


@pytest.fixture()
def client(db_session: Session, recurrence: RecurrenceEngine):
    from taskdeck.main import app

    app.dependency_overrides[get_session] = lambda: db_session
    app.dependency_overrides[get_task_service] = lambda: TaskService(db_session, recurrence)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
