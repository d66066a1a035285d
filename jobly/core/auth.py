from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

logger = logging.getLogger(__name__)


class UnauthorizedError(Exception):
    """Raised when the caller is not allowed to invoke an operation."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


@dataclass(slots=True, frozen=True)
class Identity:
    subject: str
    # Raw claim value; only a boolean True grants admin.
    is_admin: Any = False
    issued_at: datetime | None = None

    @property
    def has_admin_flag(self) -> bool:
        return self.is_admin is True


def parse_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class TokenAuthenticator:
    """Signs and verifies the bearer tokens handed out at login.

    Verification problems never propagate: a caller presenting a broken,
    forged or expired token is treated the same as one presenting none.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_seconds: int | None = None) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_seconds = expire_seconds

    def create_token(self, username: str, is_admin: bool = False) -> str:
        issued_at = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "username": username,
            "isAdmin": is_admin,
            "iat": issued_at,
        }
        if self.expire_seconds is not None:
            payload["exp"] = issued_at + timedelta(seconds=self.expire_seconds)
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def authenticate(self, authorization: str | None) -> Identity | None:
        token = parse_bearer_token(authorization)
        if token is None:
            return None

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.PyJWTError as exc:
            logger.info("bearer token rejected: %s", exc)
            return None

        return self._identity_from_payload(payload)

    @staticmethod
    def _identity_from_payload(payload: Any) -> Identity | None:
        if not isinstance(payload, dict):
            return None
        username = payload.get("username")
        if not isinstance(username, str) or not username:
            logger.info("bearer token payload missing username")
            return None

        issued_at: datetime | None = None
        iat = payload.get("iat")
        if isinstance(iat, (int, float)) and not isinstance(iat, bool):
            issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)

        return Identity(subject=username, is_admin=payload.get("isAdmin", False), issued_at=issued_at)
