from __future__ import annotations

import os
from decimal import Decimal
from typing import Any

import pytest

os.environ["JOBLY_SECRET_KEY"] = "test-secret"
os.environ["JOBLY_OTEL_ENABLED"] = "false"
os.environ["JOBLY_BCRYPT_WORK_FACTOR"] = "4"

from fastapi.testclient import TestClient  # noqa: E402

from jobly.core.auth import TokenAuthenticator  # noqa: E402
from jobly.core.config import get_settings  # noqa: E402
from jobly.core.security import get_token_authenticator  # noqa: E402
from jobly.main import app  # noqa: E402
from jobly.services.repository import (  # noqa: E402
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnauthorizedError,
    get_repository,
)
from jobly.services.sql import (  # noqa: E402
    COMPANY_COLUMNS,
    COMPANY_FILTER_RULES,
    JOB_COLUMNS,
    JOB_FILTER_RULES,
    USER_COLUMNS,
    build_partial_update,
    build_predicates,
)

TEST_SECRET = "test-secret"


class FakeJoblyRepository:
    """In-memory stand-in for PostgresRepository.

    Partial updates and searches go through the real fragment builders so the
    routes see the same validation errors they would against Postgres.
    """

    def __init__(self) -> None:
        self.companies: dict[str, dict[str, Any]] = {
            handle: {
                "handle": handle,
                "name": handle.upper(),
                "description": f"Desc{index}",
                "num_employees": index,
                "logo_url": f"http://{handle}.img",
            }
            for index, handle in enumerate(("c1", "c2", "c3"), start=1)
        }
        self.jobs: dict[int, dict[str, Any]] = {
            1: {"id": 1, "title": "J1", "salary": 100, "equity": Decimal("0.1"), "company_handle": "c1"},
            2: {"id": 2, "title": "J2", "salary": 200, "equity": Decimal("0.2"), "company_handle": "c2"},
            3: {"id": 3, "title": "J3", "salary": 300, "equity": Decimal("0"), "company_handle": "c3"},
        }
        self.users: dict[str, dict[str, Any]] = {
            "u1": _user("u1", is_admin=False),
            "u2": _user("u2", is_admin=False),
            "u3": _user("u3", is_admin=True),
        }
        self.passwords: dict[str, str] = {"u1": "password1", "u2": "password2", "u3": "password3"}
        self.applications: set[tuple[str, int]] = set()

    async def close(self) -> None:
        return None

    async def create_company(self, **data: Any) -> dict[str, Any]:
        if data["handle"] in self.companies:
            raise RepositoryConflictError(f"Duplicate company: {data['handle']}")
        self.companies[data["handle"]] = dict(data)
        return dict(data)

    async def list_companies(self) -> list[dict[str, Any]]:
        return sorted(self.companies.values(), key=lambda row: row["name"])

    async def search_companies(self, filters: dict[str, Any]) -> list[dict[str, Any]]:
        build_predicates(filters, COMPANY_FILTER_RULES)
        rows = list(self.companies.values())
        if "nameLike" in filters:
            rows = [row for row in rows if filters["nameLike"].lower() in row["name"].lower()]
        if "minEmployees" in filters:
            rows = [row for row in rows if (row["num_employees"] or 0) >= filters["minEmployees"]]
        if "maxEmployees" in filters:
            rows = [row for row in rows if (row["num_employees"] or 0) <= filters["maxEmployees"]]
        return sorted(rows, key=lambda row: row["name"])

    async def get_company(self, handle: str) -> dict[str, Any]:
        if handle not in self.companies:
            raise RepositoryNotFoundError(f"No company: {handle}")
        company = dict(self.companies[handle])
        company["jobs"] = [
            {key: job[key] for key in ("id", "title", "salary", "equity")}
            for job in self.jobs.values()
            if job["company_handle"] == handle
        ]
        return company

    async def update_company(self, handle: str, update: dict[str, Any]) -> dict[str, Any]:
        build_partial_update(update, COMPANY_COLUMNS)
        if handle not in self.companies:
            raise RepositoryNotFoundError(f"No company: {handle}")
        if any(
            row["name"] == update.get("name") for other, row in self.companies.items() if other != handle
        ):
            raise RepositoryConflictError(f"Duplicate company name: {update['name']}")
        for name, value in update.items():
            self.companies[handle][COMPANY_COLUMNS.resolve(name)] = value
        return dict(self.companies[handle])

    async def remove_company(self, handle: str) -> None:
        if self.companies.pop(handle, None) is None:
            raise RepositoryNotFoundError(f"No company: {handle}")

    async def create_job(self, **data: Any) -> dict[str, Any]:
        if data["company_handle"] not in self.companies:
            raise RepositoryNotFoundError(f"No company: {data['company_handle']}")
        job_id = max(self.jobs, default=0) + 1
        self.jobs[job_id] = {"id": job_id, **data}
        return dict(self.jobs[job_id])

    async def list_jobs(self) -> list[dict[str, Any]]:
        return sorted(self.jobs.values(), key=lambda row: row["title"])

    async def search_jobs(self, filters: dict[str, Any]) -> list[dict[str, Any]]:
        build_predicates(filters, JOB_FILTER_RULES)
        rows = list(self.jobs.values())
        if "title" in filters:
            rows = [row for row in rows if filters["title"].lower() in row["title"].lower()]
        if "minSalary" in filters:
            rows = [row for row in rows if (row["salary"] or 0) >= filters["minSalary"]]
        if filters.get("hasEquity") is True:
            rows = [row for row in rows if (row["equity"] or 0) > 0]
        return sorted(rows, key=lambda row: row["title"])

    async def get_job(self, job_id: int) -> dict[str, Any]:
        if job_id not in self.jobs:
            raise RepositoryNotFoundError(f"No job: {job_id}")
        job = dict(self.jobs[job_id])
        job["company"] = self.companies.get(job["company_handle"])
        return job

    async def update_job(self, job_id: int, update: dict[str, Any]) -> dict[str, Any]:
        build_partial_update(update, JOB_COLUMNS)
        if job_id not in self.jobs:
            raise RepositoryNotFoundError(f"No job: {job_id}")
        for name, value in update.items():
            self.jobs[job_id][JOB_COLUMNS.resolve(name)] = value
        return dict(self.jobs[job_id])

    async def remove_job(self, job_id: int) -> None:
        if self.jobs.pop(job_id, None) is None:
            raise RepositoryNotFoundError(f"No job: {job_id}")

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
        if username in self.users:
            raise RepositoryConflictError(f"Duplicate username: {username}")
        self.users[username] = {
            "username": username,
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "is_admin": is_admin,
        }
        self.passwords[username] = password
        return dict(self.users[username])

    async def authenticate_user(self, username: str, password: str) -> dict[str, Any]:
        if self.passwords.get(username) != password:
            raise RepositoryUnauthorizedError("Invalid username/password")
        return dict(self.users[username])

    async def list_users(self) -> list[dict[str, Any]]:
        return sorted(self.users.values(), key=lambda row: row["username"])

    async def get_user(self, username: str) -> dict[str, Any]:
        if username not in self.users:
            raise RepositoryNotFoundError(f"No user: {username}")
        user = dict(self.users[username])
        user["jobs"] = sorted(job_id for applicant, job_id in self.applications if applicant == username)
        return user

    async def update_user(self, username: str, update: dict[str, Any]) -> dict[str, Any]:
        build_partial_update(update, USER_COLUMNS)
        if username not in self.users:
            raise RepositoryNotFoundError(f"No user: {username}")
        for name, value in update.items():
            if name == "password":
                self.passwords[username] = value
                continue
            self.users[username][USER_COLUMNS.resolve(name)] = value
        return dict(self.users[username])

    async def remove_user(self, username: str) -> None:
        if self.users.pop(username, None) is None:
            raise RepositoryNotFoundError(f"No user: {username}")

    async def apply_to_job(self, username: str, job_id: int) -> None:
        if username not in self.users:
            raise RepositoryNotFoundError(f"No user: {username}")
        if job_id not in self.jobs:
            raise RepositoryNotFoundError(f"No job: {job_id}")
        if (username, job_id) in self.applications:
            raise RepositoryConflictError(f"{username} already applied to job {job_id}")
        self.applications.add((username, job_id))


def _user(username: str, *, is_admin: bool) -> dict[str, Any]:
    return {
        "username": username,
        "first_name": f"{username.upper()}F",
        "last_name": f"{username.upper()}L",
        "email": f"{username}@email.com",
        "is_admin": is_admin,
    }


@pytest.fixture
def authenticator() -> TokenAuthenticator:
    return TokenAuthenticator(secret_key=TEST_SECRET)


@pytest.fixture
def fake_repo() -> FakeJoblyRepository:
    return FakeJoblyRepository()


@pytest.fixture
def api_client(fake_repo: FakeJoblyRepository) -> TestClient:
    get_settings.cache_clear()
    get_token_authenticator.cache_clear()
    app.dependency_overrides[get_repository] = lambda: fake_repo

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    get_token_authenticator.cache_clear()


@pytest.fixture
def u1_headers(authenticator: TokenAuthenticator) -> dict[str, str]:
    return {"Authorization": f"Bearer {authenticator.create_token('u1', is_admin=False)}"}


@pytest.fixture
def admin_headers(authenticator: TokenAuthenticator) -> dict[str, str]:
    return {"Authorization": f"Bearer {authenticator.create_token('u3', is_admin=True)}"}
