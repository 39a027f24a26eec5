"""Pydantic schemas for registration, login and User CRUD."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, field_validator

from ticketing.models.user import ROLES
from ticketing.schemas.common import PageMeta

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
MAX_NAME_LENGTH = 100


def normalise_email(value: str) -> str:
    value = _CONTROL_CHARS_RE.sub("", value).strip().lower()
    if not value:
        raise ValueError("Email is required")
    if len(value) > 255:
        raise ValueError("Email must be at most 255 characters")
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email format")
    return value


def _check_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(value) > MAX_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters")
    return value


def _check_name(value: str) -> str:
    value = _CONTROL_CHARS_RE.sub("", value).strip()
    if not value:
        raise ValueError("Name is required")
    if len(value) > MAX_NAME_LENGTH:
        raise ValueError(f"Name must be at most {MAX_NAME_LENGTH} characters")
    return value


def _check_role(value: str) -> str:
    if value not in ROLES:
        raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
    return value


class UserRegister(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _check_name(v)


class AdminRegister(UserRegister):
    secret: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("password")
    @classmethod
    def _require_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class UserCreate(UserRegister):
    """Admin-side creation; may set role and active flag directly."""

    role: str = "user"
    is_active: bool = True

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        return _check_role(v)


class UserUpdate(BaseModel):
    email: str | None = None
    password: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: str | None = None
    is_active: bool | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str | None) -> str | None:
        return normalise_email(v) if v is not None else v

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str | None) -> str | None:
        return _check_password(v) if v is not None else v

    @field_validator("first_name", "last_name")
    @classmethod
    def _validate_name(cls, v: str | None) -> str | None:
        return _check_name(v) if v is not None else v

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str | None) -> str | None:
        return _check_role(v) if v is not None else v


class UserRead(BaseModel):
    id: int
    email: str
    first_name: str | None
    last_name: str | None
    role: str
    is_active: bool
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    message: str
    data: UserRead
    token: str


class UserResponse(BaseModel):
    message: str
    data: UserRead


class UserListResponse(BaseModel):
    message: str
    data: list[UserRead]
    meta: PageMeta
