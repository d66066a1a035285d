from fastapi import APIRouter, Depends, HTTPException, status

from jobly.core.auth import TokenAuthenticator
from jobly.core.security import RequireSubjectOrAdmin, get_token_authenticator, guard, require_admin
from jobly.schemas.users import UserCreateRequest, UserCreatedOut, UserDetailOut, UserOut, UserPatchRequest
from jobly.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)
from jobly.services.sql import QueryBuildError

router = APIRouter()

require_self_or_admin = guard(RequireSubjectOrAdmin("username"))


@router.post(
    "",
    response_model=UserCreatedOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_user(
    payload: UserCreateRequest,
    repository=Depends(get_repository),
    authenticator: TokenAuthenticator = Depends(get_token_authenticator),
) -> UserCreatedOut:
    try:
        row = await repository.register_user(
            username=payload.username,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            is_admin=payload.is_admin,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return UserCreatedOut(
        user=UserOut(**row),
        token=authenticator.create_token(row["username"], is_admin=row["is_admin"]),
    )


@router.get("", response_model=list[UserOut], dependencies=[Depends(require_admin)])
async def list_users(repository=Depends(get_repository)) -> list[UserOut]:
    try:
        rows = await repository.list_users()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [UserOut(**row) for row in rows]


@router.get("/{username}", response_model=UserDetailOut, dependencies=[Depends(require_self_or_admin)])
async def get_user(username: str, repository=Depends(get_repository)) -> UserDetailOut:
    try:
        row = await repository.get_user(username)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return UserDetailOut(**row)


@router.patch("/{username}", response_model=UserOut, dependencies=[Depends(require_self_or_admin)])
async def patch_user(
    username: str,
    payload: UserPatchRequest,
    repository=Depends(get_repository),
) -> UserOut:
    try:
        row = await repository.update_user(username, payload.model_dump(by_alias=True, exclude_unset=True))
    except QueryBuildError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=[str(exc)]) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return UserOut(**row)


@router.delete("/{username}", dependencies=[Depends(require_self_or_admin)])
async def delete_user(username: str, repository=Depends(get_repository)) -> dict[str, str]:
    try:
        await repository.remove_user(username)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return {"deleted": username}


@router.post("/{username}/jobs/{job_id}", dependencies=[Depends(require_self_or_admin)])
async def apply_to_job(username: str, job_id: int, repository=Depends(get_repository)) -> dict[str, int]:
    try:
        await repository.apply_to_job(username, job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return {"applied": job_id}
