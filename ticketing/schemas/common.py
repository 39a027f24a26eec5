"""Response envelopes shared by several routers."""

from __future__ import annotations

from pydantic import BaseModel


class MessageResponse(BaseModel):
    message: str


class PageMeta(BaseModel):
    total: int
    limit: int
    offset: int
