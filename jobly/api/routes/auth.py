import logging

from fastapi import APIRouter, Depends, HTTPException, status

from jobly.core.auth import Identity, TokenAuthenticator
from jobly.core.security import get_token_authenticator, require_logged_in
from jobly.schemas.auth import TokenOut, TokenRequest
from jobly.schemas.users import UserRegisterRequest
from jobly.services.repository import (
    RepositoryConflictError,
    RepositoryUnauthorizedError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/token", response_model=TokenOut)
async def issue_token(
    payload: TokenRequest,
    repository=Depends(get_repository),
    authenticator: TokenAuthenticator = Depends(get_token_authenticator),
) -> TokenOut:
    try:
        user = await repository.authenticate_user(payload.username, payload.password)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryUnauthorizedError as exc:
        logger.info("login rejected username=%s", payload.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    return TokenOut(token=authenticator.create_token(user["username"], is_admin=user["is_admin"]))


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserRegisterRequest,
    repository=Depends(get_repository),
    authenticator: TokenAuthenticator = Depends(get_token_authenticator),
) -> TokenOut:
    try:
        user = await repository.register_user(
            username=payload.username,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    logger.info("registered username=%s", user["username"])
    return TokenOut(token=authenticator.create_token(user["username"], is_admin=user["is_admin"]))


@router.get("/me")
async def current_identity(identity: Identity = Depends(require_logged_in)) -> dict[str, object]:
    return {"username": identity.subject, "isAdmin": identity.has_admin_flag}
