"""Session endpoints: status, login, logout, database setup and confirmation e-mails."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import get_remote_backend, get_session_controller, get_user_directory
from ..services import (
    AuthenticationError,
    EmailNotConfirmedError,
    RemoteBackend,
    RemoteBackendError,
    SessionBootstrapController,
    SessionState,
    SettingsService,
    UserDirectory,
    provisioning_script,
    setup_instructions,
)

LOGGER = logging.getLogger(__name__)

EMAIL_NOT_CONFIRMED_MESSAGE = "Your email address has not been confirmed yet."
CONFIRMATION_SENT_MESSAGE = "A new confirmation link has been sent to your email address."

router = APIRouter(prefix="/session", tags=["session"])


def _to_response(state: SessionState) -> schemas.SessionStatusResponse:
    return schemas.SessionStatusResponse(
        status=state.status,
        identity=state.identity,
        login_message=state.login_message,
    )


def _login_failure(message: str, *, can_resend_confirmation: bool = False) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": message, "can_resend_confirmation": can_resend_confirmation},
    )


@router.get("", response_model=schemas.SessionStatusResponse)
def read_session(
    controller: SessionBootstrapController = Depends(get_session_controller),
) -> schemas.SessionStatusResponse:
    """Return which screen the client should show."""

    return _to_response(controller.state)


@router.post("/login", response_model=schemas.SessionStatusResponse)
async def login(
    payload: schemas.LoginRequest,
    controller: SessionBootstrapController = Depends(get_session_controller),
    backend: RemoteBackend = Depends(get_remote_backend),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.SessionStatusResponse:
    if controller.state.status is schemas.SessionStatus.NEEDS_SETUP:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database setup required",
        )
    try:
        await backend.sign_in_with_password(payload.email, payload.password)
    except EmailNotConfirmedError as exc:
        raise _login_failure(EMAIL_NOT_CONFIRMED_MESSAGE, can_resend_confirmation=True) from exc
    except AuthenticationError as exc:
        raise _login_failure(exc.message) from exc
    except RemoteBackendError as exc:
        LOGGER.warning("Sign-in request failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc

    state = controller.state
    if state.status is not schemas.SessionStatus.LOGGED_IN or state.identity is None:
        raise _login_failure(state.login_message or "Sign-in did not complete")
    await directory.refresh(state.identity)
    return _to_response(state)


@router.post("/logout", response_model=schemas.SessionStatusResponse)
async def logout(
    db: Session = Depends(get_db),
    controller: SessionBootstrapController = Depends(get_session_controller),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.SessionStatusResponse:
    """Clear the previous user's local data, then end the session.

    Without a signed-in user there is nothing to end and local data is kept.
    """

    if controller.state.status is not schemas.SessionStatus.LOGGED_IN:
        return _to_response(controller.state)
    SettingsService.reset_local_data(db)
    directory.clear()
    try:
        await controller.sign_out()
    except RemoteBackendError as exc:
        LOGGER.warning("Remote sign-out failed: %s", exc)
    return _to_response(controller.state)


@router.get("/setup-script", response_model=schemas.SetupScriptResponse)
def read_setup_script(
    backend: RemoteBackend = Depends(get_remote_backend),
) -> schemas.SetupScriptResponse:
    """Return the SQL that provisions the remote profiles table."""

    bucket = getattr(backend, "storage_bucket", None)
    instructions = setup_instructions(bucket) if bucket else setup_instructions()
    return schemas.SetupScriptResponse(instructions=instructions, sql=provisioning_script())


@router.post("/recheck", response_model=schemas.SessionStatusResponse)
async def recheck_setup(
    controller: SessionBootstrapController = Depends(get_session_controller),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.SessionStatusResponse:
    state = await controller.recheck()
    if state.status is schemas.SessionStatus.LOGGED_IN and state.identity is not None:
        await directory.refresh(state.identity)
    return _to_response(state)


@router.post("/resend-confirmation", response_model=schemas.MessageResponse)
async def resend_confirmation(
    payload: schemas.EmailRequest,
    backend: RemoteBackend = Depends(get_remote_backend),
) -> schemas.MessageResponse:
    try:
        await backend.resend_confirmation(payload.email)
    except RemoteBackendError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    return schemas.MessageResponse(message=CONFIRMATION_SENT_MESSAGE)
