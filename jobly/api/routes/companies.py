from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobly.core.security import require_admin
from jobly.schemas.companies import (
    CompanyCreateRequest,
    CompanyDetailOut,
    CompanyFilterQuery,
    CompanyOut,
    CompanyPatchRequest,
)
from jobly.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)
from jobly.services.sql import QueryBuildError

router = APIRouter()


@router.post(
    "",
    response_model=CompanyOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_company(payload: CompanyCreateRequest, repository=Depends(get_repository)) -> CompanyOut:
    try:
        row = await repository.create_company(
            handle=payload.handle,
            name=payload.name,
            description=payload.description,
            num_employees=payload.num_employees,
            logo_url=payload.logo_url,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return CompanyOut(**row)


@router.get("", response_model=list[CompanyOut])
async def list_companies(
    filters: Annotated[CompanyFilterQuery, Query()],
    repository=Depends(get_repository),
) -> list[CompanyOut]:
    search = filters.model_dump(exclude_none=True)
    try:
        if search:
            rows = await repository.search_companies(search)
        else:
            rows = await repository.list_companies()
    except QueryBuildError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=[str(exc)]) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [CompanyOut(**row) for row in rows]


@router.get("/{handle}", response_model=CompanyDetailOut)
async def get_company(handle: str, repository=Depends(get_repository)) -> CompanyDetailOut:
    try:
        row = await repository.get_company(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return CompanyDetailOut(**row)


@router.patch("/{handle}", response_model=CompanyOut, dependencies=[Depends(require_admin)])
async def patch_company(
    handle: str,
    payload: CompanyPatchRequest,
    repository=Depends(get_repository),
) -> CompanyOut:
    try:
        row = await repository.update_company(handle, payload.model_dump(by_alias=True, exclude_unset=True))
    except QueryBuildError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=[str(exc)]) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return CompanyOut(**row)


@router.delete("/{handle}", dependencies=[Depends(require_admin)])
async def delete_company(handle: str, repository=Depends(get_repository)) -> dict[str, str]:
    try:
        await repository.remove_company(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return {"deleted": handle}
