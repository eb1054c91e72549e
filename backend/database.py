"""SQLite engine and session factory backing the ledger store."""

import logging
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Use DATABASE_PATH env var for Docker, default to local path for development
DATABASE_PATH = os.environ.get("DATABASE_PATH", "./db.sqlite3")
SQLALCHEMY_DATABASE_URL = f"sqlite:///{DATABASE_PATH}"

# Sync handlers run on a threadpool, so connections cross threads
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=engine):
    """Create any missing ledger tables. Models must be imported first."""
    Base.metadata.create_all(bind=bind)
    logger.info("Ledger tables ready on %s", bind.url)


def get_session_factory():
    """Session factory for handlers that open their own short-lived sessions."""
    return SessionLocal


def get_db():
    """One session per request, closed when the request finishes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
