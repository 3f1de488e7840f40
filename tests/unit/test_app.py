"""
Unit tests for the read-only status API.
"""

import os
import tempfile
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from build_common.models import (
    BUILD_SUCCEEDED,
    Build,
    BuildSpec,
    Condition,
    ProwJob,
    ProwJobSpec,
    ProwJobState,
    ProwJobStatus,
    ProwJobType,
)
from build_persistence.sqlite_accessor import SQLiteAccessor
from build_server.app import app, get_accessor


@pytest.fixture
async def test_db():
    """Create a temporary test database with two jobs and one build."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    accessor = SQLiteAccessor(path, namespace="prow-jobs")
    await accessor.initialize()

    await accessor.create_job(
        ProwJob(
            name="running",
            namespace="prow-jobs",
            spec=ProwJobSpec(
                type=ProwJobType.PERIODIC, job="ci-periodic", build_spec=BuildSpec()
            ),
            status=ProwJobStatus(
                state=ProwJobState.PENDING,
                description="build running",
                start_time=datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
            ),
        )
    )
    await accessor.create_job(
        ProwJob(
            name="queued",
            namespace="prow-jobs",
            spec=ProwJobSpec(job="ci-periodic", build_spec=BuildSpec()),
        )
    )
    build = Build(name="running", labels={"created-by-prow": "true"})
    build.status.set_condition(Condition(type=BUILD_SUCCEEDED, message="step 2 of 3"))
    await accessor.create_execution("default", "prow-jobs", build)

    yield accessor

    await accessor.close()
    if os.path.exists(path):
        os.unlink(path)


@pytest.fixture
def test_client(test_db):
    """Create a test client with overridden accessor."""

    def override_get_accessor():
        return test_db

    app.dependency_overrides[get_accessor] = override_get_accessor

    client = TestClient(app)

    yield client

    # Cleanup
    app.dependency_overrides.clear()


class TestStatusAPI:
    """Test suite for the status endpoints."""

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_list_prow_jobs(self, test_client):
        response = test_client.get("/prowjobs")

        assert response.status_code == 200
        jobs = {job["name"]: job for job in response.json()}
        assert set(jobs) == {"running", "queued"}
        assert jobs["running"]["state"] == "pending"
        assert jobs["running"]["description"] == "build running"
        assert jobs["running"]["start_time"] == "2024-01-15T10:30:00+00:00"
        assert jobs["queued"]["state"] is None

    def test_filter_prow_jobs_by_state(self, test_client):
        response = test_client.get("/prowjobs", params={"state": "pending"})

        assert response.status_code == 200
        assert [job["name"] for job in response.json()] == ["running"]

    def test_filter_with_unknown_state(self, test_client):
        response = test_client.get("/prowjobs", params={"state": "sleeping"})

        assert response.status_code == 422

    def test_get_prow_job(self, test_client):
        response = test_client.get("/prowjobs/running")

        assert response.status_code == 200
        data = response.json()
        assert data["spec"]["job"] == "ci-periodic"
        assert data["status"]["state"] == "pending"
        assert data["resource_version"] == "1"

    def test_get_missing_prow_job(self, test_client):
        response = test_client.get("/prowjobs/nope")

        assert response.status_code == 404
        assert response.json()["detail"] == "ProwJob not found"

    def test_list_builds(self, test_client):
        response = test_client.get("/builds")

        assert response.status_code == 200
        assert response.json() == [
            {
                "context": "default",
                "namespace": "prow-jobs",
                "name": "running",
                "conditions": [
                    {
                        "type": BUILD_SUCCEEDED,
                        "status": "Unknown",
                        "reason": "",
                        "message": "step 2 of 3",
                    }
                ],
                "deleting": False,
            }
        ]

    def test_get_build(self, test_client):
        response = test_client.get("/builds/default/prow-jobs/running")

        assert response.status_code == 200
        assert response.json()["labels"] == {"created-by-prow": "true"}

    def test_get_missing_build(self, test_client):
        response = test_client.get("/builds/other/prow-jobs/running")

        assert response.status_code == 404
        assert response.json()["detail"] == "Build not found"
