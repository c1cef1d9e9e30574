"""User directory backed by the remote ``profiles`` table."""

from __future__ import annotations

import logging
from typing import Dict, List

from pydantic import ValidationError

from .. import schemas
from .remote_backend import RemoteBackend, RemoteBackendError

LOGGER = logging.getLogger(__name__)

UNKNOWN_USER_NAME = "Unknown User"

USER_CREATED_MESSAGE = (
    "User created successfully! They will need to confirm their email address to log in."
)
USER_PENDING_CONFIRMATION_MESSAGE = (
    "A user with this email already exists but has not confirmed their account. "
    "A new confirmation link has been sent."
)


class UserDirectoryError(RuntimeError):
    """Raised when a user management action is rejected."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UserDirectory:
    """In-memory list of users visible to the signed-in identity."""

    def __init__(self, backend: RemoteBackend) -> None:
        self._backend = backend
        self._users: List[schemas.UserProfile] = []
        self._loaded_for: str | None = None

    @property
    def users(self) -> List[schemas.UserProfile]:
        return list(self._users)

    async def refresh(self, identity: schemas.UserProfile) -> List[schemas.UserProfile]:
        """Reload the list; admins see every profile, staff only themselves."""

        if identity.role is not schemas.UserRole.ADMIN:
            self._users = [identity]
            self._loaded_for = identity.id
            return self.users

        try:
            rows = await self._backend.list_profiles()
        except RemoteBackendError as exc:
            LOGGER.warning("Could not fetch users, keeping the previous list: %s", exc)
            return self.users

        users: List[schemas.UserProfile] = []
        for row in rows:
            try:
                users.append(schemas.UserProfile.model_validate(row))
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed profile row %s: %s", row.get("id"), exc)
        self._users = users
        self._loaded_for = identity.id
        return self.users

    async def ensure_loaded(self, identity: schemas.UserProfile) -> List[schemas.UserProfile]:
        if self._loaded_for != identity.id:
            return await self.refresh(identity)
        return self.users

    def clear(self) -> None:
        self._users = []
        self._loaded_for = None

    def display_name(self, user_id: str) -> str:
        names: Dict[str, str] = {user.id: user.name for user in self._users}
        return names.get(user_id, UNKNOWN_USER_NAME)

    async def create_user(
        self, actor: schemas.UserProfile, data: schemas.UserCreateRequest
    ) -> schemas.UserCreateResponse:
        try:
            result = await self._backend.sign_up(
                data.email,
                data.password,
                {"name": data.name, "role": data.role.value},
            )
        except RemoteBackendError as exc:
            raise UserDirectoryError(f"Error creating user: {exc.message}") from exc

        if result.already_registered:
            LOGGER.info("Sign-up for %s matched an unconfirmed account", data.email)
            return schemas.UserCreateResponse(
                message=USER_PENDING_CONFIRMATION_MESSAGE, already_registered=True
            )
        await self.refresh(actor)
        return schemas.UserCreateResponse(message=USER_CREATED_MESSAGE)

    async def rename(self, actor: schemas.UserProfile, user_id: str, name: str) -> None:
        try:
            await self._backend.update_profile(user_id, {"name": name})
        except RemoteBackendError as exc:
            raise UserDirectoryError(f"Error updating user profile: {exc.message}") from exc
        await self.refresh(actor)

    async def change_role(
        self, actor: schemas.UserProfile, user_id: str, role: schemas.UserRole
    ) -> None:
        if user_id == actor.id:
            raise UserDirectoryError(
                "For security reasons, you cannot change your own role.", status_code=403
            )
        try:
            await self._backend.update_profile(user_id, {"role": role.value})
        except RemoteBackendError as exc:
            raise UserDirectoryError(f"Error updating user role: {exc.message}") from exc
        await self.refresh(actor)

    async def delete(self, actor: schemas.UserProfile, user_id: str) -> None:
        """Delete the profile row only; the auth account stays with the provider."""

        if user_id == actor.id:
            raise UserDirectoryError(
                "You cannot delete your own admin account.", status_code=403
            )
        try:
            await self._backend.delete_profile(user_id)
        except RemoteBackendError as exc:
            raise UserDirectoryError(f"Error deleting user profile: {exc.message}") from exc
        await self.refresh(actor)

    async def send_password_reset(self, user_id: str) -> None:
        target = next((user for user in self._users if user.id == user_id), None)
        if target is None:
            raise UserDirectoryError("User not found", status_code=404)
        try:
            await self._backend.reset_password(target.email)
        except RemoteBackendError as exc:
            raise UserDirectoryError(
                f"Error sending password reset link: {exc.message}"
            ) from exc
