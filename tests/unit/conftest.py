"""
Shared fixtures for unit tests.

FakeAccessor keeps jobs and builds in dictionaries and records every write,
so reconciler and terminator tests can assert on the resulting state.
"""

import copy
from datetime import UTC, datetime

import pytest

from build_common.accessor import Accessor
from build_common.errors import AlreadyExistsError, ConflictError, NotFoundError
from build_common.keys import to_key
from build_common.models import Build, ProwJob

FAKE_NAMESPACE = "prow-job"
FAKE_CONTEXT = "default"
FAKE_BUILD_ID = "7777777777"


class FakeAccessor(Accessor):
    """In-memory accessor with injectable failures."""

    def __init__(self, now: datetime | None = None):
        self.jobs: dict[str, ProwJob] = {}
        self.builds: dict[str, Build] = {}
        self.current_time = now or datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        self.fail: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []

    def _maybe_fail(self, operation: str, name: str) -> None:
        error = self.fail.get(operation) or self.fail.get(f"{operation}:{name}")
        if error is not None:
            raise error

    # Seeding helpers

    def add_job(self, job: ProwJob) -> ProwJob:
        job.resource_version = job.resource_version or "1"
        self.jobs[job.name] = copy.deepcopy(job)
        return job

    def add_build(self, context: str, namespace: str, build: Build) -> Build:
        build.namespace = namespace
        self.builds[to_key(context, namespace, build.name)] = copy.deepcopy(build)
        return build

    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if not call[0].startswith("get")]

    # Accessor

    async def get_job(self, name: str) -> ProwJob:
        self.calls.append(("get_job", name))
        self._maybe_fail("get_job", name)
        if name not in self.jobs:
            raise NotFoundError("ProwJob", name)
        return copy.deepcopy(self.jobs[name])

    async def update_job(self, job: ProwJob) -> ProwJob:
        self.calls.append(("update_job", job.name))
        self._maybe_fail("update_job", job.name)
        current = self.jobs.get(job.name)
        if current is None:
            raise NotFoundError("ProwJob", job.name)
        if current.resource_version != job.resource_version:
            raise ConflictError("ProwJob", job.name, job.resource_version)
        stored = copy.deepcopy(job)
        stored.resource_version = str(int(current.resource_version or 0) + 1)
        self.jobs[job.name] = stored
        return copy.deepcopy(stored)

    async def list_jobs(self, namespace: str) -> list[ProwJob]:
        self.calls.append(("list_jobs", namespace))
        return [
            copy.deepcopy(job)
            for job in self.jobs.values()
            if job.namespace == namespace
        ]

    async def get_execution(self, context: str, namespace: str, name: str) -> Build:
        key = to_key(context, namespace, name)
        self.calls.append(("get_execution", key))
        self._maybe_fail("get_execution", name)
        if key not in self.builds:
            raise NotFoundError("Build", key)
        return copy.deepcopy(self.builds[key])

    async def create_execution(
        self, context: str, namespace: str, build: Build
    ) -> Build:
        key = to_key(context, namespace, build.name)
        self.calls.append(("create_execution", key))
        self._maybe_fail("create_execution", build.name)
        if key in self.builds:
            raise AlreadyExistsError("Build", key)
        self.builds[key] = copy.deepcopy(build)
        return copy.deepcopy(build)

    async def delete_execution(self, context: str, namespace: str, name: str) -> None:
        key = to_key(context, namespace, name)
        self.calls.append(("delete_execution", key))
        self._maybe_fail("delete_execution", name)
        if key not in self.builds:
            raise NotFoundError("Build", key)
        del self.builds[key]

    async def list_execution_keys(self) -> list[str]:
        return sorted(self.builds)

    async def new_build_id(self, job: ProwJob) -> str:
        return FAKE_BUILD_ID

    def now(self) -> datetime:
        return self.current_time


@pytest.fixture
def fake_accessor():
    """Create an empty in-memory accessor."""
    return FakeAccessor()
