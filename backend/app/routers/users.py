"""Router for the user directory and administrator user management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from .. import schemas
from ..security import get_current_identity, get_user_directory, require_admin
from ..services import UserDirectory, UserDirectoryError

router = APIRouter(dependencies=[Depends(get_current_identity)])


def _raise_directory_error(exc: UserDirectoryError) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.get("/", response_model=schemas.UserListResponse)
async def list_users(
    identity: schemas.UserProfile = Depends(get_current_identity),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.UserListResponse:
    """Administrators see every profile; staff only see themselves."""

    return schemas.UserListResponse(items=await directory.refresh(identity))


@router.post("/", response_model=schemas.UserCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: schemas.UserCreateRequest,
    admin: schemas.UserProfile = Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.UserCreateResponse:
    try:
        return await directory.create_user(admin, user_in)
    except UserDirectoryError as exc:
        _raise_directory_error(exc)


@router.patch("/{user_id}", response_model=schemas.MessageResponse)
async def rename_user(
    user_id: str,
    user_in: schemas.UserUpdateRequest,
    admin: schemas.UserProfile = Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.MessageResponse:
    try:
        await directory.rename(admin, user_id, user_in.name)
    except UserDirectoryError as exc:
        _raise_directory_error(exc)
    return schemas.MessageResponse(message="User updated successfully.")


@router.put("/{user_id}/role", response_model=schemas.MessageResponse)
async def change_user_role(
    user_id: str,
    role_in: schemas.RoleUpdateRequest,
    admin: schemas.UserProfile = Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.MessageResponse:
    try:
        await directory.change_role(admin, user_id, role_in.role)
    except UserDirectoryError as exc:
        _raise_directory_error(exc)
    return schemas.MessageResponse(message="User role updated successfully.")


@router.delete("/{user_id}", response_model=schemas.MessageResponse)
async def delete_user(
    user_id: str,
    admin: schemas.UserProfile = Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.MessageResponse:
    try:
        await directory.delete(admin, user_id)
    except UserDirectoryError as exc:
        _raise_directory_error(exc)
    return schemas.MessageResponse(
        message="User profile deleted. The authentication account must be removed by the provider."
    )


@router.post("/{user_id}/password-reset", response_model=schemas.MessageResponse)
async def send_password_reset(
    user_id: str,
    admin: schemas.UserProfile = Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
) -> schemas.MessageResponse:
    await directory.ensure_loaded(admin)
    try:
        await directory.send_password_reset(user_id)
    except UserDirectoryError as exc:
        _raise_directory_error(exc)
    return schemas.MessageResponse(message="Password reset link sent successfully.")
