"""Engine and sessions for the local state store.

Invoices, products, templates, branding and the persisted auth session all
live in a single ``local_state`` table. By default it is a SQLite file next
to the backend package; ``DATABASE_URL`` points it at any other database
SQLAlchemy supports, in which case the pool is sized from the
``DATABASE_POOL_*`` variables.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DATABASE_URL_ENV = "DATABASE_URL"
LOCAL_STATE_DB_FILENAME = "invoicing.db"
LOCAL_STATE_DB_PATH = Path(__file__).resolve().parent.parent / LOCAL_STATE_DB_FILENAME

POOL_SIZE_ENV = "DATABASE_POOL_SIZE"
POOL_MAX_OVERFLOW_ENV = "DATABASE_MAX_OVERFLOW"
POOL_TIMEOUT_ENV = "DATABASE_POOL_TIMEOUT"
POOL_RECYCLE_ENV = "DATABASE_POOL_RECYCLE"

# The store holds a handful of rows; a small pool is plenty.
DEFAULT_POOL_SIZE = 5
DEFAULT_MAX_OVERFLOW = 10
DEFAULT_POOL_TIMEOUT = 30
DEFAULT_POOL_RECYCLE = 1800


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


def _sqlite_file(url: URL) -> Path | None:
    if not url.drivername.startswith("sqlite") or url.database in (None, "", ":memory:"):
        return None
    return Path(url.database)


def _resolve_local_state_url(raw_url: str | None) -> str:
    """Return the URL of the local state database, creating its folder for SQLite files."""

    url = make_url(raw_url) if raw_url else make_url(f"sqlite:///{LOCAL_STATE_DB_PATH.as_posix()}")
    db_file = _sqlite_file(url)
    if db_file is not None:
        db_file.parent.mkdir(parents=True, exist_ok=True)
    return url.render_as_string(hide_password=False)


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # FastAPI runs sync routes in a thread pool.
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": _read_int_env(POOL_SIZE_ENV, DEFAULT_POOL_SIZE),
        "max_overflow": _read_int_env(POOL_MAX_OVERFLOW_ENV, DEFAULT_MAX_OVERFLOW),
        "pool_timeout": _read_int_env(POOL_TIMEOUT_ENV, DEFAULT_POOL_TIMEOUT),
        "pool_recycle": _read_int_env(POOL_RECYCLE_ENV, DEFAULT_POOL_RECYCLE),
    }


SQLALCHEMY_DATABASE_URL = _resolve_local_state_url(os.getenv(DATABASE_URL_ENV))

engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_options(SQLALCHEMY_DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Request-scoped session for the routers."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Committed session for work outside a request, such as persisting the auth session."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
