"""Pydantic schemas for session and user management endpoints."""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"


class SessionStatus(str, Enum):
    """Which screen the frontend should show."""

    INITIALIZING = "initializing"
    NEEDS_SETUP = "needs_setup"
    LOGGED_OUT = "logged_out"
    LOGGED_IN = "logged_in"


class UserProfile(BaseModel):
    """Profile row stored remotely for every authenticated user."""

    id: str
    name: str
    email: str
    role: UserRole = UserRole.STAFF

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("role", mode="before")
    @classmethod
    def _default_missing_role(cls, value):
        # The profiles.role column is nullable; treat a missing role as staff.
        return UserRole.STAFF if value is None else value


def _normalize_email(value: str) -> str:
    normalized = value.strip()
    if "@" not in normalized:
        raise ValueError("A valid email address is required.")
    return normalized


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _normalize_email(value)


class EmailRequest(BaseModel):
    email: str = Field(..., min_length=3)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _normalize_email(value)


class SessionStatusResponse(BaseModel):
    status: SessionStatus
    identity: UserProfile | None = None
    login_message: str | None = None


class SetupScriptResponse(BaseModel):
    instructions: str
    sql: str


class MessageResponse(BaseModel):
    message: str


class UserListResponse(BaseModel):
    items: List[UserProfile]


class UserCreateRequest(BaseModel):
    """Payload an administrator submits to register a new user."""

    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.STAFF

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("User name cannot be empty.")
        return stripped


class UserCreateResponse(BaseModel):
    message: str
    already_registered: bool = False


class UserUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("User name cannot be empty.")
        return stripped


class RoleUpdateRequest(BaseModel):
    role: UserRole
