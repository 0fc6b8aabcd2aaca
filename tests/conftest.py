"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from questlog.database.models import Base, User
from questlog.repositories.members import MemberRepository
from questlog.repositories.tasks import TaskRepository
from questlog.store.blob import MemoryBlobStore
from questlog.store.collections import CollectionStore


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all questlog tables.

    Uses StaticPool so every thread (``asyncio.to_thread`` in ``run_db``)
    shares the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


def add_user(engine: Engine, user_id: str = "u1", email: str = "ada@example.com",
             name: str | None = "Ada") -> None:
    """Insert a users row."""
    with Session(engine) as session:
        session.add(User(id=user_id, email=email, name=name))
        session.commit()


@pytest.fixture
def blob() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def store(blob: MemoryBlobStore) -> CollectionStore:
    return CollectionStore(blob)


@pytest.fixture
def members(store: CollectionStore) -> MemberRepository:
    return MemberRepository(store)


@pytest.fixture
def tasks(store: CollectionStore) -> TaskRepository:
    return TaskRepository(store)


@pytest.fixture
def client(db_engine: Engine):
    """FastAPI TestClient wired to the in-memory engine."""
    from fastapi.testclient import TestClient

    from questlog.api.deps import get_engine
    from questlog.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
