from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from fastapi import Depends, HTTPException, Request, status

from jobly.core.auth import Identity, TokenAuthenticator, UnauthorizedError
from jobly.core.config import get_settings


@lru_cache
def get_token_authenticator() -> TokenAuthenticator:
    settings = get_settings()
    return TokenAuthenticator(
        secret_key=settings.secret_key,
        algorithm=settings.token_algorithm,
        expire_seconds=settings.token_expire_seconds,
    )


async def get_identity(
    request: Request,
    authenticator: TokenAuthenticator = Depends(get_token_authenticator),
) -> Identity | None:
    if hasattr(request.state, "identity"):
        return request.state.identity

    identity = authenticator.authenticate(request.headers.get("Authorization"))
    request.state.identity = identity
    return identity


@dataclass(slots=True, frozen=True)
class AllowAnyone:
    def check(self, identity: Identity | None, route_params: Mapping[str, Any]) -> None:
        return None


@dataclass(slots=True, frozen=True)
class RequireLoggedIn:
    def check(self, identity: Identity | None, route_params: Mapping[str, Any]) -> None:
        if identity is None:
            raise UnauthorizedError()


@dataclass(slots=True, frozen=True)
class RequireAdmin:
    def check(self, identity: Identity | None, route_params: Mapping[str, Any]) -> None:
        if identity is None or not identity.has_admin_flag:
            raise UnauthorizedError()


@dataclass(slots=True, frozen=True)
class RequireSubjectOrAdmin:
    subject_param: str

    def check(self, identity: Identity | None, route_params: Mapping[str, Any]) -> None:
        if identity is None:
            raise UnauthorizedError()
        if identity.has_admin_flag:
            return
        if identity.subject != route_params.get(self.subject_param):
            raise UnauthorizedError()


AuthzRule = Union[AllowAnyone, RequireLoggedIn, RequireAdmin, RequireSubjectOrAdmin]


def guard(rule: AuthzRule) -> Callable[..., Awaitable[Identity | None]]:
    """Build a route dependency that enforces ``rule`` before the handler runs."""

    async def enforce(request: Request, identity: Identity | None = Depends(get_identity)) -> Identity | None:
        try:
            rule.check(identity, request.path_params)
        except UnauthorizedError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        return identity

    return enforce


require_logged_in = guard(RequireLoggedIn())
require_admin = guard(RequireAdmin())
