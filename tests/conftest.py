"""Shared pytest configuration and fixtures for tests."""

import sys
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flightdeck.models.project import Project, ProjectRecord  # noqa: E402,F401
from flightdeck.services.cache import SnapshotCache  # noqa: E402


@pytest.fixture
def project():
    """Blank project with default round counts and fixed timestamps."""
    return Project(
        id="p-1",
        name="Brand Renewal",
        created_at="2024-01-01T00:00:00+00:00",
        last_updated="2024-01-01T00:00:00+00:00",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def cache(tmp_path):
    return SnapshotCache(tmp_path / "cache")
