import logging
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool, NullPool

Base = declarative_base()

logger = logging.getLogger(__name__)

# Get DATABASE_URL from environment, default to SQLite for tests
DATABASE_URL = os.getenv("DATABASE_URL")

# If not set, default to in-memory SQLite or try to construct PostgreSQL URL
if not DATABASE_URL:
    DB_USER = os.getenv("DB_USER", os.getenv("DATABASE_USER"))
    DB_PASSWORD = os.getenv("DB_PASSWORD", os.getenv("DATABASE_PASSWORD"))

    if DB_USER and DB_PASSWORD:
        DB_HOST = os.getenv("DB_HOST", os.getenv("DATABASE_HOST", "localhost"))
        DB_PORT = os.getenv("DB_PORT", os.getenv("DATABASE_PORT", "5432"))
        DB_NAME = os.getenv("DB_NAME", os.getenv("DATABASE_NAME", "artifacts"))
        DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    else:
        DATABASE_URL = "sqlite:///:memory:?cache=shared"
        logger.info("No DATABASE_URL or DB credentials found, using in-memory SQLite")


def build_engine(url: str):
    """Create an engine with pooling suited to the backend"""
    if url.startswith("sqlite"):
        # In-memory: share one connection (StaticPool) across threads
        if ":memory:" in url:
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        # File-based SQLite: open new connections per session to avoid cross-thread reuse
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
    return create_engine(url)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    # models must be imported so their tables register on Base
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
