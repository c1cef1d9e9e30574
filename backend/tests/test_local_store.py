from __future__ import annotations

from contextlib import contextmanager

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from backend.app.services import local_store
from backend.app.services.local_store import LocalStore, PersistedSessionStore


def test_load_returns_default_when_key_is_missing(db_session):
    value, is_loading = LocalStore(db_session).load("products", [{"id": "prod_1"}])

    assert value == [{"id": "prod_1"}]
    assert is_loading is False


def test_save_then_load_round_trips_json(db_session):
    store = LocalStore(db_session)
    store.save("business_profile", {"name": "Acme", "address": "1 Main St\nTown"})
    store.save("business_profile", {"name": "Acme Ltd", "address": ""})

    value, is_loading = store.load("business_profile", None)

    assert value == {"name": "Acme Ltd", "address": ""}
    assert is_loading is False


def test_read_failure_falls_back_to_default(db_session, monkeypatch):
    def broken_get(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "get", broken_get)

    value, is_loading = LocalStore(db_session).load("app_icon", "/icon.svg")

    assert value == "/icon.svg"
    assert is_loading is False


def test_write_failure_is_rolled_back_and_raised(db_session, monkeypatch):
    rollbacks = []

    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", broken_commit)
    monkeypatch.setattr(db_session, "rollback", lambda: rollbacks.append(True))

    with pytest.raises(SQLAlchemyError):
        LocalStore(db_session).save("invoices", [])

    assert rollbacks == [True]


def test_persisted_session_store_round_trip(db_session, monkeypatch):
    @contextmanager
    def scope():
        yield db_session

    monkeypatch.setattr(local_store, "session_scope", scope)
    store = PersistedSessionStore()

    assert store.load() is None
    store.save({"access_token": "abc", "user": {"id": "user-1"}})
    assert store.load() == {"access_token": "abc", "user": {"id": "user-1"}}
    store.save(None)
    assert store.load() is None
