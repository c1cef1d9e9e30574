"""Authentication and authorization dependencies for the API routers."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from .schemas import SessionStatus, UserProfile, UserRole
from .services.remote_backend import RemoteBackend
from .services.session_bootstrap import SessionBootstrapController
from .services.users import UserDirectory


class SecurityConfigurationError(RuntimeError):
    """Raised when the application was started without its auth components."""


def _app_state_attr(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise SecurityConfigurationError(f"Application state '{name}' is not initialised")
    return value


def get_session_controller(request: Request) -> SessionBootstrapController:
    return _app_state_attr(request, "session_controller")


def get_remote_backend(request: Request) -> RemoteBackend:
    return _app_state_attr(request, "remote_backend")


def get_user_directory(request: Request) -> UserDirectory:
    return _app_state_attr(request, "user_directory")


def get_current_identity(
    controller: SessionBootstrapController = Depends(get_session_controller),
) -> UserProfile:
    """FastAPI dependency returning the signed-in user's profile."""

    state = controller.state
    if state.status is SessionStatus.NEEDS_SETUP:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database setup required",
        )
    if state.status is not SessionStatus.LOGGED_IN or state.identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return state.identity


def require_admin(identity: UserProfile = Depends(get_current_identity)) -> UserProfile:
    """FastAPI dependency that ensures the signed-in user is an administrator."""

    if identity.role is not UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator role required")
    return identity
