"""
User management — admin CRUD plus self-service profile access.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import (ensure_no_privileged_changes,
                                ensure_self_or_admin, get_context,
                                get_current_identity, get_db, require_admin)
from ticketing.core.context import AppContext
from ticketing.core.exceptions import NotFoundError
from ticketing.models.user import User
from ticketing.schemas.common import MessageResponse, PageMeta
from ticketing.schemas.token import Identity, RevokedCount, RevokedResponse
from ticketing.schemas.user import (UserCreate, UserListResponse, UserRead,
                                    UserResponse, UserUpdate)
from ticketing.services.accounts import create_user, update_user
from ticketing.services.ledger import SessionLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    role: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    _admin: Identity = Depends(require_admin),
) -> UserListResponse:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(query.order_by(User.id).limit(limit).offset(offset))
    return UserListResponse(
        message="Users retrieved successfully",
        data=[UserRead.model_validate(u) for u in result.scalars().all()],
        meta=PageMeta(total=total, limit=limit, offset=offset),
    )


@router.post("", response_model=UserResponse, status_code=201)
async def create_user_endpoint(
    body: UserCreate,
    context: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
) -> UserResponse:
    """Create an account directly (admin only); no session is opened for it."""
    user = await create_user(
        db,
        context.passwords,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        is_active=body.is_active,
    )
    await db.commit()
    logger.info("Admin %s created user %s", admin.user_id, user.id)
    return UserResponse(message="User created successfully", data=UserRead.model_validate(user))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    ensure_self_or_admin(identity, user_id, "view")
    user = await _get_user_or_404(db, user_id)
    return UserResponse(message="User retrieved successfully", data=UserRead.model_validate(user))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user_endpoint(
    user_id: int,
    body: UserUpdate,
    context: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    ensure_self_or_admin(identity, user_id, "update")
    changes = body.model_dump(exclude_none=True)
    ensure_no_privileged_changes(identity, changes)

    user = await _get_user_or_404(db, user_id)
    await update_user(db, context.passwords, user, changes)
    await db.commit()
    return UserResponse(message="User updated successfully", data=UserRead.model_validate(user))


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
) -> MessageResponse:
    user = await _get_user_or_404(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.info("Admin %s deleted user %s", admin.user_id, user_id)
    return MessageResponse(message="User deleted successfully")


@router.post("/{user_id}/logout-all", response_model=RevokedResponse)
async def force_logout_all(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
) -> RevokedResponse:
    """Revoke every session of another user."""
    await _get_user_or_404(db, user_id)
    revoked = await SessionLedger(db).revoke_all(user_id)
    await db.commit()
    logger.info("Admin %s revoked %d session(s) of user %s", admin.user_id, revoked, user_id)
    return RevokedResponse(
        message="User logged out from all devices",
        data=RevokedCount(revoked_count=revoked),
    )
