"""
Bearer token issuing / verification (python-jose) and password hashing (passlib bcrypt).
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from ticketing.core.config import Settings
from ticketing.core.exceptions import (ConfigurationError, TokenExpiredError,
                                       TokenInvalidError)
from ticketing.models.user import ROLES
from ticketing.schemas.token import Identity, IssuedToken


# ── Passwords ───────────────────────────────────────────────────────
def build_password_context(rounds: int = 12) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


# ── JWT tokens ──────────────────────────────────────────────────────
class TokenIssuer:
    """Mints and checks signed, time-bound tokens asserting ``{userId, email, role}``.

    Pure cryptography: whether a particular token is still honoured is the
    session ledger's decision, not this class's.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_in: timedelta = timedelta(days=7),
    ) -> None:
        if not secret or not secret.strip():
            raise ConfigurationError("JWT_SECRET environment variable is required")
        self._secret = secret
        self._algorithm = algorithm
        self.expires_in = expires_in

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            expires_in=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    def issue(self, identity: Identity, now: datetime | None = None) -> IssuedToken:
        # exp is serialised with second precision, keep expires_at identical
        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires_at = issued_at + self.expires_in
        token = jwt.encode(
            {
                "userId": identity.user_id,
                "email": identity.email,
                "role": identity.role,
                "iat": issued_at,
                "exp": expires_at,
                "jti": secrets.token_urlsafe(16),
            },
            self._secret,
            algorithm=self._algorithm,
        )
        return IssuedToken(token=token, expires_at=expires_at)

    def verify(self, token: str) -> Identity:
        """Return the identity in *token* or raise an authentication error.

        ``TokenExpiredError`` is reserved for genuine tokens past their
        ``exp``; every other failure is reported as ``TokenInvalidError``.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except JWTError as exc:
            raise TokenInvalidError() from exc

        user_id = payload.get("userId")
        email = payload.get("email")
        role = payload.get("role")
        if not isinstance(user_id, int) or not isinstance(email, str) or role not in ROLES:
            raise TokenInvalidError()
        return Identity(user_id=user_id, email=email, role=role)
