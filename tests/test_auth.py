from __future__ import annotations

import asyncio
import time

import jwt
import pytest
from fastapi import HTTPException
from starlette.requests import Request

from jobly.core.auth import Identity, TokenAuthenticator, UnauthorizedError, parse_bearer_token
from jobly.core.security import (
    AllowAnyone,
    RequireAdmin,
    RequireLoggedIn,
    RequireSubjectOrAdmin,
    get_identity,
    guard,
)


def _request(headers: dict[str, str] | None = None, path_params: dict[str, str] | None = None) -> Request:
    raw_headers = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": raw_headers,
            "path_params": path_params or {},
        }
    )


def test_parse_bearer_token() -> None:
    assert parse_bearer_token("Bearer abc") == "abc"
    assert parse_bearer_token("bearer  abc ") == "abc"
    assert parse_bearer_token("Basic abc") is None
    assert parse_bearer_token("Bearer ") is None
    assert parse_bearer_token(None) is None


def test_authenticate_valid_token(authenticator: TokenAuthenticator) -> None:
    token = authenticator.create_token("test", is_admin=False)

    identity = authenticator.authenticate(f"Bearer {token}")

    assert identity is not None
    assert identity.subject == "test"
    assert identity.is_admin is False
    assert identity.issued_at is not None


def test_authenticate_without_header_is_anonymous(authenticator: TokenAuthenticator) -> None:
    assert authenticator.authenticate(None) is None
    assert authenticator.authenticate("") is None


def test_authenticate_token_signed_with_other_secret_is_anonymous(authenticator: TokenAuthenticator) -> None:
    forged = TokenAuthenticator(secret_key="wrong").create_token("test", is_admin=True)

    assert authenticator.authenticate(f"Bearer {forged}") is None


def test_authenticate_garbage_token_is_anonymous(authenticator: TokenAuthenticator) -> None:
    assert authenticator.authenticate("Bearer not-a-jwt") is None


def test_authenticate_payload_without_username_is_anonymous(authenticator: TokenAuthenticator) -> None:
    token = jwt.encode({"isAdmin": True}, "test-secret", algorithm="HS256")

    assert authenticator.authenticate(f"Bearer {token}") is None


def test_authenticate_expired_token_is_anonymous() -> None:
    authenticator = TokenAuthenticator(secret_key="test-secret", expire_seconds=60)
    token = jwt.encode(
        {"username": "test", "isAdmin": False, "iat": int(time.time()) - 120, "exp": int(time.time()) - 60},
        "test-secret",
        algorithm="HS256",
    )

    assert authenticator.authenticate(f"Bearer {token}") is None


def test_authenticate_keeps_raw_admin_claim(authenticator: TokenAuthenticator) -> None:
    token = jwt.encode({"username": "test", "isAdmin": "true"}, "test-secret", algorithm="HS256")

    identity = authenticator.authenticate(f"Bearer {token}")

    assert identity is not None
    assert identity.is_admin == "true"
    assert identity.has_admin_flag is False


def test_require_logged_in() -> None:
    RequireLoggedIn().check(Identity(subject="test"), {})

    with pytest.raises(UnauthorizedError):
        RequireLoggedIn().check(None, {})


def test_allow_anyone_passes_anonymous() -> None:
    AllowAnyone().check(None, {})


def test_require_admin_accepts_boolean_true_only() -> None:
    RequireAdmin().check(Identity(subject="admin", is_admin=True), {})

    for flag in (False, "true", "True", 1, "yes", None):
        with pytest.raises(UnauthorizedError):
            RequireAdmin().check(Identity(subject="test", is_admin=flag), {})

    with pytest.raises(UnauthorizedError):
        RequireAdmin().check(None, {})


def test_require_subject_or_admin() -> None:
    rule = RequireSubjectOrAdmin("username")
    user = Identity(subject="u1", is_admin=False)

    rule.check(user, {"username": "u1"})
    rule.check(Identity(subject="admin", is_admin=True), {"username": "u2"})

    with pytest.raises(UnauthorizedError):
        rule.check(user, {"username": "u2"})
    with pytest.raises(UnauthorizedError):
        rule.check(Identity(subject="u1", is_admin="true"), {"username": "u2"})
    with pytest.raises(UnauthorizedError):
        rule.check(None, {"username": "u1"})


def test_get_identity_runs_once_per_request(authenticator: TokenAuthenticator) -> None:
    class CountingAuthenticator(TokenAuthenticator):
        calls = 0

        def authenticate(self, authorization: str | None) -> Identity | None:
            CountingAuthenticator.calls += 1
            return super().authenticate(authorization)

    counting = CountingAuthenticator(secret_key="test-secret")
    token = authenticator.create_token("u1")
    request = _request({"Authorization": f"Bearer {token}"})

    first = asyncio.run(get_identity(request, counting))
    second = asyncio.run(get_identity(request, counting))

    assert first is second
    assert first is not None and first.subject == "u1"
    assert CountingAuthenticator.calls == 1


def test_get_identity_caches_anonymous() -> None:
    request = _request()

    assert asyncio.run(get_identity(request, TokenAuthenticator(secret_key="test-secret"))) is None
    assert request.state.identity is None


def test_guard_raises_401_and_returns_identity() -> None:
    enforce = guard(RequireSubjectOrAdmin("username"))
    identity = Identity(subject="u1")

    assert asyncio.run(enforce(_request(path_params={"username": "u1"}), identity)) is identity

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(enforce(_request(path_params={"username": "u2"}), identity))
    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Unauthorized"
