"""
Read-only status API for jobs and builds.

Operators observe job progress through the job status itself; this API
exposes it over HTTP next to the builds the controller created.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException

from build_common.errors import NotFoundError
from build_common.models import ProwJob, ProwJobState
from build_persistence.sqlite_accessor import SQLiteAccessor

logger = logging.getLogger(__name__)

# Global accessor (initialized at startup)
accessor: SQLiteAccessor | None = None


def get_database_path() -> str:
    """
    Get the database path from environment or use default.

    Environment variables:
    - BUILD_DB_PATH: Custom database path (useful for testing)
    """
    return os.environ.get("BUILD_DB_PATH", "build_controller.db")


def get_namespace() -> str:
    """Namespace of the jobs served (BUILD_NAMESPACE, default "default")."""
    return os.environ.get("BUILD_NAMESPACE", "default")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Connect to the database on startup and close it on shutdown.

    Note: The build-controller owns schema initialization; the server only
    reads from an existing database.
    """
    global accessor

    accessor = SQLiteAccessor(get_database_path(), namespace=get_namespace())

    yield

    if accessor:
        await accessor.close()
        accessor = None


app = FastAPI(lifespan=lifespan)


def get_accessor() -> SQLiteAccessor:
    """
    Get the global accessor instance.

    Raises:
        RuntimeError: If the accessor is not initialized
    """
    if accessor is None:
        raise RuntimeError("Accessor not initialized")
    return accessor


def job_summary(job: ProwJob) -> dict[str, Any]:
    """Summary of a job for listings."""
    status = job.status.to_dict()
    return {
        "name": job.name,
        "job": job.spec.job,
        "type": job.spec.type.value,
        "agent": job.spec.agent,
        "state": status["state"],
        "description": status["description"],
        "start_time": status["start_time"],
        "completion_time": status["completion_time"],
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/prowjobs")
async def list_prow_jobs(
    state: ProwJobState | None = None,
    store: SQLiteAccessor = Depends(get_accessor),
) -> list[dict[str, Any]]:
    """
    List jobs in the served namespace.

    Args:
        state: Only return jobs in this state
    """
    jobs = await store.list_jobs(store.namespace)
    if state is not None:
        jobs = [job for job in jobs if job.status.state == state]
    return [job_summary(job) for job in jobs]


@app.get("/prowjobs/{name}")
async def get_prow_job(
    name: str, store: SQLiteAccessor = Depends(get_accessor)
) -> dict[str, Any]:
    """
    Get a job with its full spec and status.

    Raises:
        HTTPException: 404 if the job is not found
    """
    try:
        job = await store.get_job(name)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="ProwJob not found")
    return job.to_dict()


@app.get("/builds")
async def list_builds(
    store: SQLiteAccessor = Depends(get_accessor),
) -> list[dict[str, Any]]:
    """List all builds with the context they run in."""
    builds = await store.list_executions()
    return [
        {
            "context": context,
            "namespace": build.namespace,
            "name": build.name,
            "conditions": [c.to_dict() for c in build.status.conditions],
            "deleting": build.deletion_timestamp is not None,
        }
        for context, build in builds
    ]


@app.get("/builds/{context}/{namespace}/{name}")
async def get_build(
    context: str,
    namespace: str,
    name: str,
    store: SQLiteAccessor = Depends(get_accessor),
) -> dict[str, Any]:
    """
    Get a build.

    Raises:
        HTTPException: 404 if the build is not found
    """
    try:
        build = await store.get_execution(context, namespace, name)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Build not found")
    return build.to_dict()


def main() -> None:
    """Serve the status API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    host = os.environ.get("BUILD_SERVER_HOST", "127.0.0.1")
    port = int(os.environ.get("BUILD_SERVER_PORT", "8000"))
    uvicorn.run(app, host=host, port=port)
