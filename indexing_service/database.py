"""
Engine and session factory for the credential store.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from indexing_service.config import DATABASE_URL
from indexing_service.models import Base


def engine_options(url: str) -> dict:
    """SQLite is opened from threadpool workers; an in-memory database must stay on one connection."""
    if not url.startswith("sqlite"):
        return {}
    options = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
