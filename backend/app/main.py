"""Expose the invoicing backend FastAPI app and enforce local development CORS defaults."""

import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .migrations import run_database_migrations
from .routers import (
    invoices_router,
    products_router,
    reports_router,
    session_router,
    settings_router,
    users_router,
)
from .services import (
    SessionBootstrapController,
    SessionState,
    UserDirectory,
    build_remote_backend_from_env,
)

LOGGER = logging.getLogger(__name__)

LOCAL_DEVELOPMENT_ORIGINS = {
    "http://localhost:5174",
    "http://localhost:5173",
}
LOCAL_DEVELOPMENT_ORIGIN = "http://localhost:5173"
LOCALHOST_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1|0\.0\.0\.0)(:\d+)?$"

DEFAULT_ALLOWED_ORIGINS = {
    "http://127.0.0.1:5173",
    "http://0.0.0.0:5173",
    *LOCAL_DEVELOPMENT_ORIGINS,
    "http://127.0.0.1:5174",
    "http://localhost:4173",
    "http://127.0.0.1:4173",
}


def _normalize_origin(origin: str) -> str | None:
    stripped = origin.strip()
    if not stripped:
        return None
    return stripped.rstrip("/")


def _read_allowed_origins(raw_origins: Iterable[str]) -> list[str]:
    normalized = {_normalize_origin(origin) for origin in raw_origins}
    return sorted({origin for origin in normalized if origin})


def _split_raw_origins(raw_value: str) -> list[str]:
    """Split a raw origin string using commas or whitespace as separators."""

    return [origin for origin in re.split(r"[\s,]+", raw_value) if origin]


def _load_allowed_origins_from_env() -> list[str]:
    raw_value = os.getenv("BACKEND_ALLOWED_ORIGINS")
    if not raw_value:
        return []
    return _read_allowed_origins(_split_raw_origins(raw_value))


def _resolve_allowed_origins() -> list[str]:
    env_origins = _load_allowed_origins_from_env()
    origins = env_origins or _read_allowed_origins(DEFAULT_ALLOWED_ORIGINS)
    # The Vite dev server origins are always accepted.
    return _read_allowed_origins([*origins, *LOCAL_DEVELOPMENT_ORIGINS])


def _read_bool_env(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def ensure_database_is_ready() -> None:
    """Apply pending database migrations when the service starts."""

    if not _read_bool_env("ENABLE_STARTUP_MIGRATIONS", True):
        LOGGER.info("Startup migrations disabled via ENABLE_STARTUP_MIGRATIONS")
        return
    LOGGER.info("Ensuring database schema is up to date before serving requests")
    run_database_migrations()


def _log_session_state(state: SessionState) -> None:
    LOGGER.info("Session state is now %s", state.status.value)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_database_is_ready()

    backend = getattr(app.state, "remote_backend", None)
    if backend is None:
        backend = build_remote_backend_from_env()
        app.state.remote_backend = backend

    controller = SessionBootstrapController(backend)
    controller.subscribe(_log_session_state)
    app.state.session_controller = controller
    app.state.user_directory = UserDirectory(backend)

    await controller.start()
    identity = controller.state.identity
    if identity is not None:
        await app.state.user_directory.refresh(identity)
    try:
        yield
    finally:
        controller.close()
        await backend.aclose()


app = FastAPI(title="God Favor Invoicing API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_resolve_allowed_origins(),
    allow_origin_regex=LOCALHOST_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session_router)
app.include_router(invoices_router, prefix="/invoices", tags=["invoices"])
app.include_router(products_router, prefix="/products", tags=["products"])
app.include_router(reports_router, prefix="/reports", tags=["reports"])
app.include_router(settings_router, prefix="/settings", tags=["settings"])
app.include_router(users_router, prefix="/users", tags=["users"])


@app.get("/", tags=["health"])
def read_root() -> dict[str, str]:
    """Return a simple health check response."""
    return {"status": "ok"}
