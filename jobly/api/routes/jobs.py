from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobly.core.security import require_admin
from jobly.schemas.jobs import JobCreateRequest, JobDetailOut, JobFilterQuery, JobOut, JobPatchRequest
from jobly.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)
from jobly.services.sql import QueryBuildError

router = APIRouter()


@router.post(
    "",
    response_model=JobOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_job(payload: JobCreateRequest, repository=Depends(get_repository)) -> JobOut:
    try:
        row = await repository.create_job(
            title=payload.title,
            salary=payload.salary,
            equity=payload.equity,
            company_handle=payload.company_handle,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return JobOut(**row)


@router.get("", response_model=list[JobOut])
async def list_jobs(
    filters: Annotated[JobFilterQuery, Query()],
    repository=Depends(get_repository),
) -> list[JobOut]:
    search = filters.model_dump(exclude_none=True)
    try:
        if search:
            rows = await repository.search_jobs(search)
        else:
            rows = await repository.list_jobs()
    except QueryBuildError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=[str(exc)]) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [JobOut(**row) for row in rows]


@router.get("/{job_id}", response_model=JobDetailOut)
async def get_job(job_id: int, repository=Depends(get_repository)) -> JobDetailOut:
    try:
        row = await repository.get_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return JobDetailOut(**row)


@router.patch("/{job_id}", response_model=JobOut, dependencies=[Depends(require_admin)])
async def patch_job(job_id: int, payload: JobPatchRequest, repository=Depends(get_repository)) -> JobOut:
    try:
        row = await repository.update_job(job_id, payload.model_dump(exclude_unset=True))
    except QueryBuildError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=[str(exc)]) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return JobOut(**row)


@router.delete("/{job_id}", dependencies=[Depends(require_admin)])
async def delete_job(job_id: int, repository=Depends(get_repository)) -> dict[str, int]:
    try:
        await repository.remove_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return {"deleted": job_id}
