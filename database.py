"""SQLAlchemy engine and session factory for the game store."""
import os
import time
import logging
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root (next to this file) so settings are ready regardless of cwd
load_dotenv(Path(__file__).resolve().parent / ".env")

_DEFAULT_SQLITE_PATH = Path(__file__).resolve().parent / ".local-data" / "valuechain.db"

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_DEFAULT_SQLITE_PATH}")

# Render Postgres (and many cloud providers) require SSL
if DATABASE_URL and "render.com" in DATABASE_URL and "sslmode" not in DATABASE_URL:
    DATABASE_URL = DATABASE_URL + ("&" if "?" in DATABASE_URL else "?") + "sslmode=require"

# psycopg2 expects postgresql://; Render sometimes gives postgres://
if DATABASE_URL and DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = "postgresql://" + DATABASE_URL[len("postgres://") :]


def make_engine(url: str):
    """Create an engine with settings suited to the backend behind ``url``."""
    if url.startswith("sqlite"):
        if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
            Path(url[len("sqlite:///") :]).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_pre_ping=True,  # Test connections before using them
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        connect_args={"connect_timeout": 10},
    )


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def check_connection(bind=None, retry_count=3, retry_delay=1) -> bool:
    """Ping the database, backing off exponentially between attempts.

    ``bind`` defaults to the module engine. Returns False instead of raising
    so startup and ``/health`` can report the state.
    """
    bind = bind if bind is not None else engine
    for attempt in range(1, retry_count + 1):
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            if attempt == retry_count:
                logger.error("Database unreachable after %d attempts: %s", retry_count, e)
                return False
            wait = retry_delay * 2 ** (attempt - 1)
            logger.warning("Database ping %d/%d failed: %s. Retrying in %ss", attempt, retry_count, e, wait)
            time.sleep(wait)
        else:
            if attempt > 1:
                logger.info("Database reachable after %d attempts", attempt)
            return True
    return False
