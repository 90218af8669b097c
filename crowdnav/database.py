# crowdnav/database.py
"""
Database connection, session management, and table creation.
SQLAlchemy over PostgreSQL by default; any SQLAlchemy URL works (sqlite for local runs).
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from crowdnav.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Stores are called from worker threads via asyncio.to_thread
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,   # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create every table. Safe to call multiple times."""
    from crowdnav.models.zone import ZoneRecord                     # noqa
    from crowdnav.models.user_position import UserPositionRecord    # noqa
    from crowdnav.models.alert import Alert                         # noqa

    Base.metadata.create_all(bind=engine)
