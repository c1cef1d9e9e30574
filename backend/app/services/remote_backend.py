"""Remote authentication, profile and asset storage backend.

The application talks to a hosted Supabase project: GoTrue for sign-in and
sessions, PostgREST for the ``profiles`` table and Storage for uploaded
images. ``RemoteBackend`` is the contract the rest of the code depends on;
``SupabaseBackend`` implements it over ``httpx``.
"""

from __future__ import annotations

import abc
import logging
import os
import time
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol
from urllib.parse import quote

import httpx

LOGGER = logging.getLogger(__name__)

SUPABASE_URL_ENV = "SUPABASE_URL"
SUPABASE_ANON_KEY_ENV = "SUPABASE_ANON_KEY"
SUPABASE_STORAGE_BUCKET_ENV = "SUPABASE_STORAGE_BUCKET"
SUPABASE_TIMEOUT_ENV = "SUPABASE_TIMEOUT"
PERSIST_AUTH_SESSION_ENV = "PERSIST_AUTH_SESSION"

DEFAULT_STORAGE_BUCKET = "app-assets"
DEFAULT_TIMEOUT = 10.0
PROFILES_TABLE = "profiles"

# PostgreSQL "undefined_table" and PostgREST "no rows for .single()".
UNDEFINED_TABLE_CODE = "42P01"
NO_ROWS_CODE = "PGRST116"

# Refresh slightly before the access token actually expires.
EXPIRY_MARGIN_SECONDS = 30


class RemoteConfigurationError(RuntimeError):
    """Raised when the remote backend cannot be configured."""


class RemoteBackendError(RuntimeError):
    """Raised when the remote backend rejects a request or cannot be reached."""

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class SchemaNotProvisionedError(RemoteBackendError):
    """The ``profiles`` relation does not exist yet; the database needs setup."""


class ProfileNotFoundError(RemoteBackendError):
    """No profile row matches the requested identifier."""


class AuthenticationError(RemoteBackendError):
    """Credentials were rejected by the authentication provider."""


class EmailNotConfirmedError(AuthenticationError):
    """The account exists but its e-mail address has not been confirmed."""


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None


@dataclass(frozen=True)
class AuthSession:
    """Tokens and subject returned by the authentication provider."""

    access_token: str
    user: AuthUser
    refresh_token: str | None = None
    expires_at: int | None = None

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at - EXPIRY_MARGIN_SECONDS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AuthSession":
        user = payload.get("user") or {}
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=payload.get("expires_at"),
            user=AuthUser(id=str(user["id"]), email=user.get("email")),
        )


@dataclass(frozen=True)
class SignUpResult:
    user_id: str | None
    already_registered: bool = False


SessionListener = Callable[[Optional[AuthSession]], Awaitable[None]]
Unsubscribe = Callable[[], None]


class SessionPersistence(Protocol):
    def load(self) -> dict[str, Any] | None: ...

    def save(self, payload: dict[str, Any] | None) -> None: ...


class RemoteBackend(abc.ABC):
    """Contract for the hosted authentication and storage provider."""

    def __init__(self) -> None:
        self._session_listeners: list[SessionListener] = []

    def on_session_change(self, callback: SessionListener) -> Unsubscribe:
        """Register ``callback`` for sign-in/sign-out events and return its releaser."""

        self._session_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._session_listeners:
                self._session_listeners.remove(callback)

        return unsubscribe

    async def _notify_session_change(self, session: AuthSession | None) -> None:
        for listener in list(self._session_listeners):
            try:
                await listener(session)
            except Exception:  # pragma: no cover - logged and ignored
                LOGGER.exception("Session change listener failed")

    @abc.abstractmethod
    async def probe_schema(self) -> None:
        """Run a minimal read that fails when the profiles table is missing."""

    @abc.abstractmethod
    async def get_current_session(self) -> AuthSession | None:
        """Return the active session, if any."""

    @abc.abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Authenticate with e-mail and password."""

    @abc.abstractmethod
    async def sign_out(self) -> None:
        """Terminate the active session."""

    @abc.abstractmethod
    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult:
        """Register a new account; ``metadata`` feeds the provisioning trigger."""

    @abc.abstractmethod
    async def resend_confirmation(self, email: str) -> None:
        """Send the sign-up confirmation e-mail again."""

    @abc.abstractmethod
    async def reset_password(self, email: str) -> None:
        """Send a password reset link."""

    @abc.abstractmethod
    async def read_profile(self, user_id: str) -> dict[str, Any]:
        """Return the profile row for ``user_id`` or raise ``ProfileNotFoundError``."""

    @abc.abstractmethod
    async def insert_profile(self, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a profile row and return it as stored."""

    @abc.abstractmethod
    async def list_profiles(self) -> list[dict[str, Any]]:
        """Return every profile row visible to the current session."""

    @abc.abstractmethod
    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> None:
        """Apply ``changes`` to the profile row of ``user_id``."""

    @abc.abstractmethod
    async def delete_profile(self, user_id: str) -> None:
        """Delete the profile row of ``user_id``."""

    @abc.abstractmethod
    async def upload_asset(
        self,
        name: str,
        content: bytes,
        *,
        overwrite: bool = False,
        content_type: str | None = None,
    ) -> str:
        """Store ``content`` under ``name`` and return its public URL."""

    async def aclose(self) -> None:
        """Release network resources."""


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if not isinstance(payload, dict):
        return response.text, None
    message = (
        payload.get("msg")
        or payload.get("message")
        or payload.get("error_description")
        or payload.get("error")
        or response.text
    )
    code = payload.get("code") or payload.get("error_code")
    return str(message), str(code) if code is not None else None


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise RemoteBackendError(
            f"Supabase returned a malformed response body: {exc}",
            status_code=response.status_code,
        ) from exc


def _json_object(response: httpx.Response) -> dict[str, Any]:
    payload = _json_body(response)
    if not isinstance(payload, dict):
        raise RemoteBackendError(
            "Supabase returned an unexpected response body", status_code=response.status_code
        )
    return payload


def _json_list(response: httpx.Response) -> list[dict[str, Any]]:
    payload = _json_body(response)
    if not isinstance(payload, list):
        raise RemoteBackendError(
            "Supabase returned an unexpected response body", status_code=response.status_code
        )
    return payload


def _session_from_token_payload(payload: dict[str, Any]) -> AuthSession:
    try:
        user = payload.get("user") or {}
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            expires_at = int(time.time()) + int(payload["expires_in"])
        return AuthSession(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            user=AuthUser(id=str(user["id"]), email=user.get("email")),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise RemoteBackendError(f"Incomplete token payload from Supabase: {exc!r}") from exc


class SupabaseBackend(RemoteBackend):
    """``RemoteBackend`` backed by the Supabase REST APIs."""

    _PROFILES_PATH = f"/rest/v1/{PROFILES_TABLE}"
    _SINGLE_OBJECT = {"Accept": "application/vnd.pgrst.object+json"}

    def __init__(
        self,
        *,
        url: str | None,
        anon_key: str | None,
        storage_bucket: str = DEFAULT_STORAGE_BUCKET,
        timeout: float = DEFAULT_TIMEOUT,
        session_store: SessionPersistence | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        if not url:
            raise RemoteConfigurationError(f"Environment variable '{SUPABASE_URL_ENV}' is required")
        if not anon_key:
            raise RemoteConfigurationError(f"Environment variable '{SUPABASE_ANON_KEY_ENV}' is required")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.storage_bucket = storage_bucket
        self._session_store = session_store
        self._session: AuthSession | None = None
        self._session_loaded = False
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
            headers={"apikey": anon_key},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self._session.access_token if self._session else self.anon_key
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        try:
            return await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteBackendError(f"Network error contacting Supabase: {exc}") from exc

    @staticmethod
    def _raise_for_rest_error(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        message, code = _error_message(response)
        if code == UNDEFINED_TABLE_CODE or "does not exist" in message.lower():
            raise SchemaNotProvisionedError(message, code=code, status_code=response.status_code)
        if code == NO_ROWS_CODE:
            raise ProfileNotFoundError(message, code=code, status_code=response.status_code)
        raise RemoteBackendError(message, code=code, status_code=response.status_code)

    @staticmethod
    def _raise_for_auth_error(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        message, code = _error_message(response)
        if code == "email_not_confirmed" or "email not confirmed" in message.lower():
            raise EmailNotConfirmedError(message, code=code, status_code=response.status_code)
        if response.status_code in (400, 401, 403, 422):
            raise AuthenticationError(message, code=code, status_code=response.status_code)
        raise RemoteBackendError(message, code=code, status_code=response.status_code)

    def _store_session(self, session: AuthSession | None) -> None:
        self._session = session
        if self._session_store is None:
            return
        try:
            self._session_store.save(session.to_dict() if session else None)
        except Exception:  # pragma: no cover - persistence is best effort
            LOGGER.exception("Failed to persist the authentication session")

    def _restore_session(self) -> None:
        if self._session_loaded:
            return
        self._session_loaded = True
        if self._session_store is None:
            return
        try:
            payload = self._session_store.load()
            if payload:
                self._session = AuthSession.from_dict(payload)
        except Exception:
            LOGGER.exception("Stored authentication session could not be restored")
            self._session = None

    async def _refresh_session(self, session: AuthSession) -> AuthSession | None:
        if not session.refresh_token:
            return None
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": session.refresh_token},
        )
        if response.status_code >= 400:
            message, _ = _error_message(response)
            LOGGER.warning("Session refresh rejected: %s", message)
            return None
        return _session_from_token_payload(_json_object(response))

    async def get_current_session(self) -> AuthSession | None:
        self._restore_session()
        session = self._session
        if session is None or not session.is_expired():
            return session
        refreshed = await self._refresh_session(session)
        self._store_session(refreshed)
        return refreshed

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        self._raise_for_auth_error(response)
        session = _session_from_token_payload(_json_object(response))
        self._session_loaded = True
        self._store_session(session)
        await self._notify_session_change(session)
        return session

    async def sign_out(self) -> None:
        self._restore_session()
        error: RemoteBackendError | None = None
        if self._session is not None:
            try:
                response = await self._request("POST", "/auth/v1/logout")
                if response.status_code >= 400 and response.status_code != 401:
                    message, code = _error_message(response)
                    error = RemoteBackendError(message, code=code, status_code=response.status_code)
            except RemoteBackendError as exc:
                error = exc
        # The local session is dropped even when the provider call failed.
        self._store_session(None)
        await self._notify_session_change(None)
        if error is not None:
            raise error

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult:
        response = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata},
        )
        self._raise_for_auth_error(response)
        payload = _json_object(response)
        user = payload.get("user") or payload
        # GoTrue answers an existing, unconfirmed address with an empty identity list.
        identities = user.get("identities")
        return SignUpResult(
            user_id=user.get("id"),
            already_registered=identities is not None and len(identities) == 0,
        )

    async def resend_confirmation(self, email: str) -> None:
        response = await self._request(
            "POST", "/auth/v1/resend", json={"type": "signup", "email": email}
        )
        self._raise_for_auth_error(response)

    async def reset_password(self, email: str) -> None:
        response = await self._request("POST", "/auth/v1/recover", json={"email": email})
        self._raise_for_auth_error(response)

    async def probe_schema(self) -> None:
        response = await self._request(
            "GET", self._PROFILES_PATH, params={"select": "id", "limit": "1"}
        )
        self._raise_for_rest_error(response)

    async def read_profile(self, user_id: str) -> dict[str, Any]:
        response = await self._request(
            "GET",
            self._PROFILES_PATH,
            params={"select": "*", "id": f"eq.{user_id}"},
            headers=self._SINGLE_OBJECT,
        )
        self._raise_for_rest_error(response)
        return _json_object(response)

    async def insert_profile(self, row: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            self._PROFILES_PATH,
            json=row,
            headers={**self._SINGLE_OBJECT, "Prefer": "return=representation"},
        )
        self._raise_for_rest_error(response)
        return _json_object(response)

    async def list_profiles(self) -> list[dict[str, Any]]:
        response = await self._request("GET", self._PROFILES_PATH, params={"select": "*"})
        self._raise_for_rest_error(response)
        return _json_list(response)

    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> None:
        response = await self._request(
            "PATCH", self._PROFILES_PATH, params={"id": f"eq.{user_id}"}, json=changes
        )
        self._raise_for_rest_error(response)

    async def delete_profile(self, user_id: str) -> None:
        response = await self._request(
            "DELETE", self._PROFILES_PATH, params={"id": f"eq.{user_id}"}
        )
        self._raise_for_rest_error(response)

    def public_url(self, name: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.storage_bucket}/{quote(name)}"

    async def upload_asset(
        self,
        name: str,
        content: bytes,
        *,
        overwrite: bool = False,
        content_type: str | None = None,
    ) -> str:
        headers = {"x-upsert": "true" if overwrite else "false"}
        if content_type:
            headers["Content-Type"] = content_type
        response = await self._request(
            "POST",
            f"/storage/v1/object/{self.storage_bucket}/{quote(name)}",
            content=content,
            headers=headers,
        )
        if response.status_code >= 400:
            message, code = _error_message(response)
            raise RemoteBackendError(message, code=code, status_code=response.status_code)
        return self.public_url(name)


def _read_env_var(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RemoteConfigurationError(f"Environment variable '{name}' is required")
    return value


def _read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RemoteConfigurationError(f"{name} must be a number") from exc
    if value <= 0:
        raise RemoteConfigurationError(f"{name} must be positive")
    return value


def build_remote_backend_from_env() -> RemoteBackend:
    """Create the Supabase backend from environment variables."""

    session_store: SessionPersistence | None = None
    if _read_bool_env(PERSIST_AUTH_SESSION_ENV, True):
        from .local_store import PersistedSessionStore

        session_store = PersistedSessionStore()

    return SupabaseBackend(
        url=_read_env_var(SUPABASE_URL_ENV),
        anon_key=_read_env_var(SUPABASE_ANON_KEY_ENV),
        storage_bucket=os.getenv(SUPABASE_STORAGE_BUCKET_ENV, DEFAULT_STORAGE_BUCKET),
        timeout=_read_float_env(SUPABASE_TIMEOUT_ENV, DEFAULT_TIMEOUT),
        session_store=session_store,
    )
