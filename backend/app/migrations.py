"""Apply Alembic migrations to the local state database."""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect

from .database import SQLALCHEMY_DATABASE_URL

LOGGER = logging.getLogger(__name__)

LOCK_FILENAME = ".alembic-migration.lock"
LOCK_RETRY_DELAY = 0.25
LOCK_TIMEOUT_ENV = "ALEMBIC_MIGRATION_LOCK_TIMEOUT"
DEFAULT_LOCK_TIMEOUT = 30.0

# Tables created by ``Base.metadata.create_all`` before Alembic tracked the
# schema; seeing one of them means the database is already at that revision.
UNTRACKED_SCHEMA_REVISIONS = {"local_state": "20251018_0001"}

if os.name == "posix":  # pragma: no cover - platform specific
    import fcntl
else:  # pragma: no cover - platform specific
    import msvcrt


def _read_lock_timeout() -> float:
    raw = os.getenv(LOCK_TIMEOUT_ENV)
    if not raw:
        return DEFAULT_LOCK_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning(
            "Invalid %s=%s; falling back to %.1f seconds", LOCK_TIMEOUT_ENV, raw, DEFAULT_LOCK_TIMEOUT
        )
        return DEFAULT_LOCK_TIMEOUT
    if value <= 0:
        LOGGER.warning(
            "%s must be positive; using %.1f seconds", LOCK_TIMEOUT_ENV, DEFAULT_LOCK_TIMEOUT
        )
        return DEFAULT_LOCK_TIMEOUT
    return value


def _try_lock(handle) -> None:
    if os.name == "posix":  # pragma: no cover - platform specific
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    else:  # pragma: no cover - platform specific
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)


def _unlock(handle) -> None:
    try:
        if os.name == "posix":  # pragma: no cover - platform specific
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        else:  # pragma: no cover - platform specific
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    except OSError:  # pragma: no cover - best effort cleanup
        LOGGER.debug("Failed to release migration lock", exc_info=True)


@contextmanager
def _migration_lock(path: Path, *, timeout: float) -> Iterator[None]:
    """Serialise migrations when several workers start at the same time."""

    path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    with path.open("a+") as handle:
        while True:
            try:
                _try_lock(handle)
                break
            except OSError as error:
                if time.monotonic() >= deadline:
                    raise TimeoutError("Timed out waiting for Alembic migration lock") from error
                time.sleep(LOCK_RETRY_DELAY)
        try:
            yield
        finally:
            _unlock(handle)


def _build_config(base_dir: Path) -> Config:
    config = Config(str(base_dir / "alembic.ini"))
    config.set_main_option("script_location", str(base_dir / "alembic"))
    config.set_main_option("sqlalchemy.url", os.getenv("DATABASE_URL", SQLALCHEMY_DATABASE_URL))
    return config


def run_database_migrations() -> None:
    """Bring the local state database up to the latest Alembic revision."""

    base_dir = Path(__file__).resolve().parent.parent
    if str(base_dir) not in sys.path:
        sys.path.insert(0, str(base_dir))

    config = _build_config(base_dir)
    database_url = config.get_main_option("sqlalchemy.url")
    LOGGER.info("Running database migrations at %s", database_url)

    with _migration_lock(base_dir / LOCK_FILENAME, timeout=_read_lock_timeout()):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        engine = create_engine(database_url, connect_args=connect_args)
        try:
            inspector = inspect(engine)
            if not inspector.has_table("alembic_version"):
                for table_name, revision in UNTRACKED_SCHEMA_REVISIONS.items():
                    if inspector.has_table(table_name):
                        LOGGER.info(
                            "Found table %s without Alembic metadata; stamping revision %s",
                            table_name,
                            revision,
                        )
                        command.stamp(config, revision)
                        break

            head = ScriptDirectory.from_config(config).get_current_head()
            LOGGER.debug("Upgrading local state schema to %s", head)
            command.upgrade(config, "head")
        finally:
            engine.dispose()
