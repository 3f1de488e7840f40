"""
SQLite implementation of the resource accessor.

Uses aiosqlite for async operations. Resources are stored as JSON documents
next to an integer resource version; every update is a compare-and-swap on
that version, which gives writers optimistic concurrency.
"""

import dataclasses
import json
from datetime import UTC, datetime

import aiosqlite

from build_common.accessor import Accessor
from build_common.errors import AlreadyExistsError, ConflictError, NotFoundError
from build_common.keys import to_key
from build_common.models import Build, ProwJob

JOB_KIND = "ProwJob"
BUILD_KIND = "Build"


class SQLiteAccessor(Accessor):
    """
    SQLite-based storage for jobs and builds.

    Uses a single database file with multiple tables:
    - prow_jobs: Job intents, keyed by namespace and name
    - builds: Builds, keyed by cluster context, namespace and name
    - build_ids: Last build number handed out per job
    """

    def __init__(self, db_path: str = "build_controller.db", namespace: str = "default"):
        """
        Initialize the SQLite accessor.

        Args:
            db_path: Path to the SQLite database file
            namespace: Control namespace that get_job() reads from
        """
        self.db_path = db_path
        self.namespace = namespace
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(self.db_path)
        return self._connection

    async def initialize(self) -> None:
        """Create database tables if they don't exist."""
        conn = await self._get_connection()

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS prow_jobs (
                namespace TEXT NOT NULL,
                name TEXT NOT NULL,
                resource_version INTEGER NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (namespace, name)
            )
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS builds (
                context TEXT NOT NULL,
                namespace TEXT NOT NULL,
                name TEXT NOT NULL,
                resource_version INTEGER NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (context, namespace, name)
            )
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS build_ids (
                job TEXT PRIMARY KEY,
                last_id INTEGER NOT NULL
            )
        """)

        await conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # Jobs

    @staticmethod
    def _job_from_row(data: str, resource_version: int) -> ProwJob:
        job = ProwJob.from_dict(json.loads(data))
        job.resource_version = str(resource_version)
        return job

    async def create_job(self, job: ProwJob) -> ProwJob:
        """
        Create a new job.

        Args:
            job: Job to persist

        Returns:
            The stored job with its resource version

        Raises:
            AlreadyExistsError: If a job with the same name exists
        """
        conn = await self._get_connection()
        try:
            await conn.execute(
                "INSERT INTO prow_jobs (namespace, name, resource_version, data) VALUES (?, ?, 1, ?)",
                (job.namespace, job.name, json.dumps(job.to_dict())),
            )
        except aiosqlite.IntegrityError as e:
            raise AlreadyExistsError(JOB_KIND, job.name) from e
        await conn.commit()
        return await self._read_job(job.namespace, job.name)

    async def _read_job(self, namespace: str, name: str) -> ProwJob:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT data, resource_version FROM prow_jobs WHERE namespace = ? AND name = ?",
            (namespace, name),
        )
        row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(JOB_KIND, name)
        return self._job_from_row(row[0], row[1])

    async def get_job(self, name: str) -> ProwJob:
        return await self._read_job(self.namespace, name)

    async def update_job(self, job: ProwJob) -> ProwJob:
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            UPDATE prow_jobs
            SET data = ?, resource_version = resource_version + 1
            WHERE namespace = ? AND name = ? AND resource_version = ?
            """,
            (
                json.dumps(job.to_dict()),
                job.namespace,
                job.name,
                int(job.resource_version or 0),
            ),
        )
        await conn.commit()
        if cursor.rowcount == 0:
            # Distinguish a vanished job from a stale write
            await self._read_job(job.namespace, job.name)
            raise ConflictError(JOB_KIND, job.name, job.resource_version)
        return await self._read_job(job.namespace, job.name)

    async def list_jobs(self, namespace: str) -> list[ProwJob]:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT data, resource_version FROM prow_jobs WHERE namespace = ? ORDER BY name",
            (namespace,),
        )
        rows = await cursor.fetchall()
        return [self._job_from_row(row[0], row[1]) for row in rows]

    async def list_all_jobs(self) -> list[ProwJob]:
        """List jobs across every namespace."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT data, resource_version FROM prow_jobs ORDER BY namespace, name"
        )
        rows = await cursor.fetchall()
        return [self._job_from_row(row[0], row[1]) for row in rows]

    # Builds

    @staticmethod
    def _build_from_row(data: str, resource_version: int) -> Build:
        build = Build.from_dict(json.loads(data))
        build.resource_version = str(resource_version)
        return build

    async def get_execution(self, context: str, namespace: str, name: str) -> Build:
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            SELECT data, resource_version FROM builds
            WHERE context = ? AND namespace = ? AND name = ?
            """,
            (context, namespace, name),
        )
        row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(BUILD_KIND, to_key(context, namespace, name))
        return self._build_from_row(row[0], row[1])

    async def create_execution(
        self, context: str, namespace: str, build: Build
    ) -> Build:
        conn = await self._get_connection()
        stored = dataclasses.replace(build, namespace=namespace)
        try:
            await conn.execute(
                """
                INSERT INTO builds (context, namespace, name, resource_version, data)
                VALUES (?, ?, ?, 1, ?)
                """,
                (context, namespace, build.name, json.dumps(stored.to_dict())),
            )
        except aiosqlite.IntegrityError as e:
            raise AlreadyExistsError(
                BUILD_KIND, to_key(context, namespace, build.name)
            ) from e
        await conn.commit()
        return await self.get_execution(context, namespace, build.name)

    async def update_execution(
        self, context: str, namespace: str, build: Build
    ) -> Build:
        """
        Write a build back, as the build engine does when reporting status.

        Raises:
            NotFoundError: If the build no longer exists
            ConflictError: If the build changed since it was read
        """
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            UPDATE builds
            SET data = ?, resource_version = resource_version + 1
            WHERE context = ? AND namespace = ? AND name = ? AND resource_version = ?
            """,
            (
                json.dumps(build.to_dict()),
                context,
                namespace,
                build.name,
                int(build.resource_version or 0),
            ),
        )
        await conn.commit()
        if cursor.rowcount == 0:
            await self.get_execution(context, namespace, build.name)
            raise ConflictError(
                BUILD_KIND, to_key(context, namespace, build.name), build.resource_version
            )
        return await self.get_execution(context, namespace, build.name)

    async def delete_execution(self, context: str, namespace: str, name: str) -> None:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "DELETE FROM builds WHERE context = ? AND namespace = ? AND name = ?",
            (context, namespace, name),
        )
        await conn.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(BUILD_KIND, to_key(context, namespace, name))

    async def list_executions(self) -> list[tuple[str, Build]]:
        """
        List every build.

        Returns:
            List of (context, build) pairs
        """
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT context, data, resource_version FROM builds ORDER BY context, namespace, name"
        )
        rows = await cursor.fetchall()
        return [(row[0], self._build_from_row(row[1], row[2])) for row in rows]

    async def list_execution_keys(self) -> list[str]:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT context, namespace, name FROM builds ORDER BY context, namespace, name"
        )
        rows = await cursor.fetchall()
        return [to_key(row[0], row[1], row[2]) for row in rows]

    # Identifiers and time

    async def new_build_id(self, job: ProwJob) -> str:
        """Hand out the next build number of the job, starting at 1."""
        conn = await self._get_connection()
        counter = job.spec.job or job.name
        # Increment and read back in a single statement
        cursor = await conn.execute(
            """
            INSERT INTO build_ids (job, last_id) VALUES (?, 1)
            ON CONFLICT(job) DO UPDATE SET last_id = last_id + 1
            RETURNING last_id
            """,
            (counter,),
        )
        row = await cursor.fetchone()
        await cursor.close()
        await conn.commit()
        assert row is not None
        return str(row[0])

    def now(self) -> datetime:
        return datetime.now(UTC)
