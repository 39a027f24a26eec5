"""
Auth endpoints — register, login, logout and session management.

Every successful register/login mints a token and records it in the
session ledger within the same transaction as the user row.
"""

# No ``from __future__ import annotations`` here: slowapi wraps these
# handlers and FastAPI must resolve their parameter types eagerly.

import hmac
import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import (get_client_info, get_context,
                                get_current_identity, get_current_token,
                                get_current_user, get_db)
from ticketing.core.context import AppContext
from ticketing.core.exceptions import AuthorizationError
from ticketing.core.rate_limit import (auth_rate_limit, bind_rate_limit_settings,
                                       limiter, rate_limit_exempt)
from ticketing.models.user import User
from ticketing.schemas.common import MessageResponse
from ticketing.schemas.token import (Identity, RevokedCount, RevokedResponse,
                                     SessionListResponse, SessionRead)
from ticketing.schemas.user import (AdminRegister, AuthResponse, LoginRequest,
                                    UserRead, UserRegister, UserResponse)
from ticketing.services.accounts import authenticate, create_user
from ticketing.services.ledger import SessionLedger

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth", tags=["auth"], dependencies=[Depends(bind_rate_limit_settings)]
)


async def _open_session(
    context: AppContext, db: AsyncSession, user: User, request: Request
) -> str:
    issued = context.tokens.issue(Identity(user_id=user.id, email=user.email, role=user.role))
    device_info, ip_address = get_client_info(request)
    await SessionLedger(db).record_session(
        user.id,
        issued.token,
        issued.expires_at,
        device_info=device_info,
        ip_address=ip_address,
    )
    return issued.token


@router.post("/register", response_model=AuthResponse, status_code=201)
@limiter.limit(auth_rate_limit, exempt_when=rate_limit_exempt)
async def register(
    request: Request,
    body: UserRegister,
    context: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    user = await create_user(
        db,
        context.passwords,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    token = await _open_session(context, db, user, request)
    await db.commit()
    logger.info("User %s registered", user.id)
    return AuthResponse(
        message="User registered successfully",
        data=UserRead.model_validate(user),
        token=token,
    )


@router.post("/register-admin", response_model=AuthResponse, status_code=201)
@limiter.limit(auth_rate_limit, exempt_when=rate_limit_exempt)
async def register_admin(
    request: Request,
    body: AdminRegister,
    x_admin_secret: str | None = Header(default=None, alias="X-Admin-Secret"),
    context: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create an admin account; requires the shared registration secret."""
    expected = context.settings.ADMIN_REGISTRATION_SECRET
    if not expected:
        raise AuthorizationError("Admin registration is disabled")
    presented = body.secret or x_admin_secret or ""
    if not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected admin registration for %s: bad secret", body.email)
        raise AuthorizationError("Invalid admin registration secret")

    user = await create_user(
        db,
        context.passwords,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role="admin",
    )
    token = await _open_session(context, db, user, request)
    await db.commit()
    logger.info("Admin %s registered", user.id)
    return AuthResponse(
        message="Admin registered successfully",
        data=UserRead.model_validate(user),
        token=token,
    )


@router.post("/login", response_model=AuthResponse)
@limiter.limit(auth_rate_limit, exempt_when=rate_limit_exempt)
async def login(
    request: Request,
    body: LoginRequest,
    context: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    user = await authenticate(db, context.passwords, body.email, body.password)
    token = await _open_session(context, db, user, request)
    await db.commit()
    logger.info("User %s logged in", user.id)
    return AuthResponse(
        message="Login successful",
        data=UserRead.model_validate(user),
        token=token,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    identity: Identity = Depends(get_current_identity),
    raw_token: str = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Revoke the token this request was made with."""
    await SessionLedger(db).revoke(raw_token)
    await db.commit()
    logger.info("User %s logged out", identity.user_id)
    return MessageResponse(message="Logout successful")


@router.post("/logout-all", response_model=RevokedResponse)
async def logout_all(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> RevokedResponse:
    revoked = await SessionLedger(db).revoke_all(identity.user_id)
    await db.commit()
    logger.info("User %s logged out of all devices (%d sessions)", identity.user_id, revoked)
    return RevokedResponse(
        message="Logged out from all devices",
        data=RevokedCount(revoked_count=revoked),
    )


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> SessionListResponse:
    rows = await SessionLedger(db).list_active(identity.user_id)
    return SessionListResponse(
        message="Active sessions retrieved successfully",
        data=[SessionRead.model_validate(row) for row in rows],
    )


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(
        message="User retrieved successfully",
        data=UserRead.model_validate(current_user),
    )
