"""Key/value persistence for application state kept on the server."""

from __future__ import annotations

import logging
from typing import Any, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..database import session_scope

LOGGER = logging.getLogger(__name__)

INVOICES_KEY = "invoices"
PRODUCTS_KEY = "products"
TEMPLATES_KEY = "templates"
BUSINESS_PROFILE_KEY = "business_profile"
APP_ICON_KEY = "app_icon"
LOGIN_BACKGROUND_KEY = "login_background"
AUTH_SESSION_KEY = "auth.session"


class LocalStore:
    """Read and write JSON values in the ``local_state`` table.

    ``load`` returns ``(value, is_loading)`` so callers written against an
    asynchronous storage can keep their shape; reads here are synchronous and
    ``is_loading`` is therefore always ``False`` once the call returns.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def load(self, key: str, default: Any) -> Tuple[Any, bool]:
        try:
            entry = self.db.get(models.LocalStateEntry, key)
        except SQLAlchemyError:
            LOGGER.exception("Failed to read local state key %s", key)
            self.db.rollback()
            return default, False
        if entry is None or entry.value is None:
            return default, False
        return entry.value, False

    def save(self, key: str, value: Any) -> None:
        try:
            entry = self.db.get(models.LocalStateEntry, key)
            if entry is None:
                entry = models.LocalStateEntry(key=key, value=value)
                self.db.add(entry)
            else:
                entry.value = value
            self.db.commit()
        except SQLAlchemyError:
            LOGGER.exception("Failed to write local state key %s", key)
            self.db.rollback()
            raise

    def delete(self, key: str) -> None:
        entry = self.db.get(models.LocalStateEntry, key)
        if entry is None:
            return
        self.db.delete(entry)
        self.db.commit()


class PersistedSessionStore:
    """Keeps the authentication session in ``local_state`` between restarts."""

    key = AUTH_SESSION_KEY

    def load(self) -> dict[str, Any] | None:
        with session_scope() as db:
            value, _ = LocalStore(db).load(self.key, None)
        return value

    def save(self, payload: dict[str, Any] | None) -> None:
        with session_scope() as db:
            store = LocalStore(db)
            if payload is None:
                store.delete(self.key)
            else:
                store.save(self.key, payload)
