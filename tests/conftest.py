# tests/conftest.py
"""Shared fixtures. Points the app at sqlite before anything imports crowdnav.database."""

import os
import sys
import tempfile

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "crowdnav-test-logs"))
os.environ.pop("API_KEY", None)
os.environ.pop("ADVISORY_URL", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture
def session_factory():
    """Fresh in-memory database shared by every session/thread of one test."""
    from crowdnav.database import Base
    import crowdnav.models  # noqa: F401  registers tables

    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()
