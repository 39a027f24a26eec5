"""Pydantic schemas for bearer tokens and the identity they carry."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class Identity(BaseModel):
    user_id: int
    email: str
    role: str

    model_config = {"frozen": True}

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class IssuedToken(BaseModel):
    token: str
    expires_at: datetime


class SessionRead(BaseModel):
    id: int
    device_info: str | None
    ip_address: str | None
    expires_at: datetime
    created_at: datetime | None
    last_used_at: datetime | None

    model_config = {"from_attributes": True}


class RevokedCount(BaseModel):
    revoked_count: int


class RevokedResponse(BaseModel):
    message: str
    data: RevokedCount


class SessionListResponse(BaseModel):
    message: str
    data: list[SessionRead]
