"""Decide which screen the application is in and keep it current.

At startup the controller checks that the remote ``profiles`` table exists,
looks for an existing session and resolves the signed-in user's profile,
creating a minimal one when it is missing. Afterwards it follows the remote
backend's sign-in/sign-out notifications for as long as it lives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..schemas import SessionStatus, UserProfile, UserRole
from .remote_backend import (
    AuthSession,
    ProfileNotFoundError,
    RemoteBackend,
    RemoteBackendError,
    SchemaNotProvisionedError,
)

LOGGER = logging.getLogger(__name__)

PROFILE_UNAVAILABLE_MESSAGE = (
    "Your user profile could not be loaded or created. Please contact support."
)
DEFAULT_DISPLAY_NAME = "New User"


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus = SessionStatus.INITIALIZING
    session: Optional[AuthSession] = None
    identity: Optional[UserProfile] = None
    login_message: Optional[str] = None


StateListener = Callable[[SessionState], None]


def default_profile_name(email: str | None) -> str:
    local_part = (email or "").split("@")[0]
    return local_part or DEFAULT_DISPLAY_NAME


async def resolve_identity(
    backend: RemoteBackend, subject_id: str, subject_email: str | None
) -> UserProfile | None:
    """Return the profile of ``subject_id``, creating a staff profile if none exists.

    Every failure is logged and reported as ``None``; nothing is retried.
    """

    try:
        row = await backend.read_profile(subject_id)
    except ProfileNotFoundError:
        LOGGER.info("No profile for user %s; creating one", subject_id)
        new_row = {
            "id": subject_id,
            "email": subject_email or "",
            "name": default_profile_name(subject_email),
            "role": UserRole.STAFF.value,
        }
        try:
            row = await backend.insert_profile(new_row)
        except RemoteBackendError as exc:
            LOGGER.error("Could not create profile for user %s: %s", subject_id, exc)
            return None
    except RemoteBackendError as exc:
        LOGGER.error("Could not read profile for user %s: %s", subject_id, exc)
        return None

    try:
        return UserProfile.model_validate(row)
    except ValidationError as exc:
        LOGGER.error("Profile row for user %s is malformed: %s", subject_id, exc)
        return None


class SessionBootstrapController:
    """Publishes the current :class:`SessionState` to subscribed listeners."""

    def __init__(self, backend: RemoteBackend) -> None:
        self._backend = backend
        self._state = SessionState()
        self._listeners: List[StateListener] = []
        self._unsubscribe_auth: Optional[Callable[[], None]] = None
        self._started = False
        self._closed = False
        # Bumped for every auth event; results of older events are discarded.
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> SessionState:
        if self._started:
            raise RuntimeError("Session bootstrap has already been started")
        self._started = True
        return await self._bootstrap(self._next_generation())

    async def recheck(self) -> SessionState:
        """Probe the remote schema again after the database was provisioned.

        Only acts while setup is required; any other state is returned unchanged.
        """

        if not self._started or self._state.status is not SessionStatus.NEEDS_SETUP:
            return self._state
        return await self._bootstrap(self._next_generation())

    async def _bootstrap(self, generation: int) -> SessionState:
        try:
            await self._backend.probe_schema()
        except SchemaNotProvisionedError as exc:
            LOGGER.warning("Remote profiles table is missing; database setup required: %s", exc)
            self._publish(generation, SessionState(status=SessionStatus.NEEDS_SETUP))
            return self._state
        except RemoteBackendError as exc:
            LOGGER.warning("Schema probe failed, continuing startup: %s", exc)

        try:
            session = await self._backend.get_current_session()
        except RemoteBackendError as exc:
            LOGGER.warning("Could not read the current session: %s", exc)
            session = None

        await self._apply_session(session, generation)

        if not self._closed and self._unsubscribe_auth is None:
            self._unsubscribe_auth = self._backend.on_session_change(self._handle_session_change)
        return self._state

    async def sign_out(self) -> None:
        """Sign out the current user and publish the logged out state."""

        try:
            await self._backend.sign_out()
        finally:
            if self._state.status is SessionStatus.LOGGED_IN:
                self._publish(self._next_generation(), SessionState(status=SessionStatus.LOGGED_OUT))

    def close(self) -> None:
        self._closed = True
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        self._listeners.clear()

    async def _handle_session_change(self, session: AuthSession | None) -> None:
        if self._closed:
            return
        await self._apply_session(session, self._next_generation())

    async def _apply_session(self, session: AuthSession | None, generation: int) -> None:
        if session is None:
            # Keep the advisory message when the sign-out follows a failed profile lookup.
            message = (
                self._state.login_message
                if self._state.status is SessionStatus.LOGGED_OUT
                else None
            )
            self._publish(
                generation, SessionState(status=SessionStatus.LOGGED_OUT, login_message=message)
            )
            return

        identity = await resolve_identity(self._backend, session.user.id, session.user.email)
        if identity is None:
            published = self._publish(
                generation,
                SessionState(
                    status=SessionStatus.LOGGED_OUT,
                    login_message=PROFILE_UNAVAILABLE_MESSAGE,
                ),
            )
            if not published:
                return
            try:
                await self._backend.sign_out()
            except RemoteBackendError as exc:
                LOGGER.warning("Remote sign-out after profile failure did not complete: %s", exc)
            return

        self._publish(
            generation,
            SessionState(status=SessionStatus.LOGGED_IN, session=session, identity=identity),
        )

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _publish(self, generation: int, state: SessionState) -> bool:
        if self._closed or generation != self._generation:
            LOGGER.debug("Dropping stale session state %s", state.status.value)
            return False
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Session state listener failed")
        return True
