from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from jobly.core.config import get_settings
from jobly.core.passwords import hash_password, verify_password
from jobly.services.sql import (
    COMPANY_COLUMNS,
    COMPANY_FILTER_RULES,
    JOB_COLUMNS,
    JOB_FILTER_RULES,
    USER_COLUMNS,
    build_partial_update,
    build_predicates,
)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when a create would duplicate an existing entity."""


class RepositoryUnauthorizedError(RepositoryError):
    """Raised when login credentials do not match a user."""


COMPANY_SELECT = "handle, name, description, num_employees, logo_url"
JOB_SELECT = "id, title, salary, equity, company_handle"
USER_SELECT = "username, first_name, last_name, email, is_admin"


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        bcrypt_work_factor: int,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.bcrypt_work_factor = bcrypt_work_factor
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # Companies

    async def create_company(
        self,
        *,
        handle: str,
        name: str,
        description: str,
        num_employees: int | None,
        logo_url: str | None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into companies (handle, name, description, num_employees, logo_url)
                values ($1, $2, $3, $4, $5)
                returning {COMPANY_SELECT}
                """,
                handle,
                name,
                description,
                num_employees,
                logo_url,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"Duplicate company: {handle}") from exc
        return self._company_row_to_dict(row)

    async def list_companies(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {COMPANY_SELECT}
            from companies
            order by name
            """
        )
        return [self._company_row_to_dict(row) for row in rows]

    async def search_companies(self, filters: dict[str, Any]) -> list[dict[str, Any]]:
        predicates = build_predicates(filters, COMPANY_FILTER_RULES)
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {COMPANY_SELECT}
            from companies
            where {predicates.where_clause}
            order by name
            """,
            *predicates.values,
        )
        return [self._company_row_to_dict(row) for row in rows]

    async def get_company(self, handle: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {COMPANY_SELECT}
            from companies
            where handle = $1
            """,
            handle,
        )
        if not row:
            raise RepositoryNotFoundError(f"No company: {handle}")

        job_rows = await pool.fetch(
            """
            select id, title, salary, equity
            from jobs
            where company_handle = $1
            order by id
            """,
            handle,
        )
        company = self._company_row_to_dict(row)
        company["jobs"] = [
            {
                "id": job_row["id"],
                "title": job_row["title"],
                "salary": job_row["salary"],
                "equity": job_row["equity"],
            }
            for job_row in job_rows
        ]
        return company

    async def update_company(self, handle: str, update: dict[str, Any]) -> dict[str, Any]:
        partial = build_partial_update(update, COMPANY_COLUMNS)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update companies
                set {partial.set_clause}
                where handle = {partial.next_placeholder}
                returning {COMPANY_SELECT}
                """,
                *partial.values,
                handle,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"Duplicate company name: {update.get('name')}") from exc
        if not row:
            raise RepositoryNotFoundError(f"No company: {handle}")
        return self._company_row_to_dict(row)

    async def remove_company(self, handle: str) -> None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            delete from companies
            where handle = $1
            returning handle
            """,
            handle,
        )
        if not row:
            raise RepositoryNotFoundError(f"No company: {handle}")

    # Jobs

    async def create_job(
        self,
        *,
        title: str,
        salary: int | None,
        equity: Any,
        company_handle: str,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into jobs (title, salary, equity, company_handle)
                values ($1, $2, $3, $4)
                returning {JOB_SELECT}
                """,
                title,
                salary,
                equity,
                company_handle,
            )
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryNotFoundError(f"No company: {company_handle}") from exc
        return self._job_row_to_dict(row)

    async def list_jobs(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {JOB_SELECT}
            from jobs
            order by title
            """
        )
        return [self._job_row_to_dict(row) for row in rows]

    async def search_jobs(self, filters: dict[str, Any]) -> list[dict[str, Any]]:
        predicates = build_predicates(filters, JOB_FILTER_RULES)
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {JOB_SELECT}
            from jobs
            where {predicates.where_clause}
            order by title
            """,
            *predicates.values,
        )
        return [self._job_row_to_dict(row) for row in rows]

    async def get_job(self, job_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {JOB_SELECT}
            from jobs
            where id = $1
            """,
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"No job: {job_id}")

        company_row = await pool.fetchrow(
            f"""
            select {COMPANY_SELECT}
            from companies
            where handle = $1
            """,
            row["company_handle"],
        )
        job = self._job_row_to_dict(row)
        job["company"] = self._company_row_to_dict(company_row) if company_row else None
        return job

    async def update_job(self, job_id: int, update: dict[str, Any]) -> dict[str, Any]:
        partial = build_partial_update(update, JOB_COLUMNS)
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            update jobs
            set {partial.set_clause}
            where id = {partial.next_placeholder}
            returning {JOB_SELECT}
            """,
            *partial.values,
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"No job: {job_id}")
        return self._job_row_to_dict(row)

    async def remove_job(self, job_id: int) -> None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            delete from jobs
            where id = $1
            returning id
            """,
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"No job: {job_id}")

    # Users

    async def register_user(
        self,
        *,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        email: str,
        is_admin: bool = False,
    ) -> dict[str, Any]:
        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_work_factor)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into users (username, password, first_name, last_name, email, is_admin)
                values ($1, $2, $3, $4, $5, $6)
                returning {USER_SELECT}
                """,
                username,
                password_hash,
                first_name,
                last_name,
                email,
                is_admin,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"Duplicate username: {username}") from exc
        return self._user_row_to_dict(row)

    async def authenticate_user(self, username: str, password: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {USER_SELECT}, password
            from users
            where username = $1
            """,
            username,
        )
        if not row or not await asyncio.to_thread(verify_password, password, row["password"]):
            raise RepositoryUnauthorizedError("Invalid username/password")
        return self._user_row_to_dict(row)

    async def list_users(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {USER_SELECT}
            from users
            order by username
            """
        )
        return [self._user_row_to_dict(row) for row in rows]

    async def get_user(self, username: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {USER_SELECT}
            from users
            where username = $1
            """,
            username,
        )
        if not row:
            raise RepositoryNotFoundError(f"No user: {username}")

        application_rows = await pool.fetch(
            """
            select job_id
            from applications
            where username = $1
            order by job_id
            """,
            username,
        )
        user = self._user_row_to_dict(row)
        user["jobs"] = [application_row["job_id"] for application_row in application_rows]
        return user

    async def update_user(self, username: str, update: dict[str, Any]) -> dict[str, Any]:
        if update.get("password") is not None:
            password_hash = await asyncio.to_thread(hash_password, update["password"], self.bcrypt_work_factor)
            update = {key: password_hash if key == "password" else value for key, value in update.items()}
        partial = build_partial_update(update, USER_COLUMNS)
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            update users
            set {partial.set_clause}
            where username = {partial.next_placeholder}
            returning {USER_SELECT}
            """,
            *partial.values,
            username,
        )
        if not row:
            raise RepositoryNotFoundError(f"No user: {username}")
        return self._user_row_to_dict(row)

    async def remove_user(self, username: str) -> None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            delete from users
            where username = $1
            returning username
            """,
            username,
        )
        if not row:
            raise RepositoryNotFoundError(f"No user: {username}")

    async def apply_to_job(self, username: str, job_id: int) -> None:
        pool = await self._get_pool()
        try:
            await pool.execute(
                """
                insert into applications (username, job_id)
                values ($1, $2)
                """,
                username,
                job_id,
            )
        except pg_exc.ForeignKeyViolationError as exc:
            if "username" in (exc.constraint_name or ""):
                raise RepositoryNotFoundError(f"No user: {username}") from exc
            raise RepositoryNotFoundError(f"No job: {job_id}") from exc
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"{username} already applied to job {job_id}") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JOBLY_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _company_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "handle": row["handle"],
            "name": row["name"],
            "description": row["description"],
            "num_employees": row["num_employees"],
            "logo_url": row["logo_url"],
        }

    @staticmethod
    def _job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "salary": row["salary"],
            "equity": row["equity"],
            "company_handle": row["company_handle"],
        }

    @staticmethod
    def _user_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "username": row["username"],
            "first_name": row["first_name"],
            "last_name": row["last_name"],
            "email": row["email"],
            "is_admin": row["is_admin"],
        }


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        bcrypt_work_factor=settings.bcrypt_work_factor,
    )
