"""
Reconciliation of a single job intent with its build.

The reconciler re-reads both resources on every call and derives the single
action to take from what it observes: create the build, delete it, project
its status onto the job, or nothing. A crash between two writes is repaired
by the next call, which finds the build already present and re-derives the
job status from it.
"""

import copy
import logging
from datetime import timedelta

from build_common.accessor import Accessor
from build_common.errors import ConfigurationError, NotFoundError
from build_common.keys import cluster_to_context, from_key
from build_common.labels import is_owned
from build_common.models import (
    KNATIVE_BUILD_AGENT,
    Build,
    ProwJob,
    ProwJobState,
    ProwJobStatus,
)

from .build_spec import DEFAULT_TIMEOUT, make_build
from .status import DESC_SCHEDULING, prow_job_status

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Syncs one (cluster context, namespace, name) key per call.

    The caller guarantees at most one reconcile per key at a time and retries
    failed keys; the reconciler itself never retries.
    """

    def __init__(
        self,
        accessor: Accessor,
        agent: str = KNATIVE_BUILD_AGENT,
        default_timeout: timedelta = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the reconciler.

        Args:
            accessor: Reads and writes jobs and builds
            agent: Agent tag of the jobs this controller owns
            default_timeout: Build timeout for jobs that do not set one
        """
        self.accessor = accessor
        self.agent = agent
        self.default_timeout = default_timeout

    async def _get_build(self, context: str, namespace: str, name: str) -> Build | None:
        try:
            return await self.accessor.get_execution(context, namespace, name)
        except NotFoundError:
            return None

    async def _get_job(self, name: str) -> ProwJob | None:
        try:
            return await self.accessor.get_job(name)
        except NotFoundError:
            return None

    def _wants_build(self, key: str, context: str, job: ProwJob | None) -> bool:
        if job is None or job.complete():
            return False
        if job.spec.agent != self.agent:
            return False
        job_context = cluster_to_context(job.spec.cluster)
        if job_context != cluster_to_context(context):
            logger.warning(f"{key} found in context {context} not {job_context}")
            return False
        return True

    async def reconcile(self, key: str) -> None:
        """
        Reconcile the job and build identified by key.

        Args:
            key: Reconcile key from build_common.keys.to_key()

        Raises:
            InvalidKeyError: If the key cannot be decoded
            ConfigurationError: If the job needs a build but has no template
            DecorationError: If the job's source checkout cannot be built
            Exception: Any accessor failure, for the caller to retry
        """
        context, namespace, name = from_key(key)

        build = await self._get_build(context, namespace, name)
        job = await self._get_job(name)

        if not self._wants_build(key, context, job):
            await self._delete_unwanted(key, context, namespace, build)
            return

        assert job is not None

        if build is not None and build.deletion_timestamp is not None:
            logger.debug(f"Waiting for deleted build {key} to go away")
            return

        if build is None:
            await self._create(key, context, namespace, job)
            return

        await self._sync_status(key, job, build)

    async def _delete_unwanted(
        self, key: str, context: str, namespace: str, build: Build | None
    ) -> None:
        if build is None or build.deletion_timestamp is not None:
            logger.debug(f"Nothing to delete for {key}")
            return
        if not is_owned(build):
            logger.warning(f"Ignoring build {key} without created-by-prow label")
            return

        logger.info(f"Deleting build {key}")
        try:
            await self.accessor.delete_execution(context, namespace, build.name)
        except NotFoundError:
            logger.debug(f"Build {key} already deleted")

    async def _create(
        self, key: str, context: str, namespace: str, job: ProwJob
    ) -> None:
        if job.spec.build_spec is None:
            raise ConfigurationError(f"job {job.name} has no build_spec")

        build_id = await self.accessor.new_build_id(job)
        build = make_build(job, build_id, self.default_timeout)

        logger.info(f"Creating build {key} (build id {build_id})")
        await self.accessor.create_execution(context, namespace, build)

        updated = copy.deepcopy(job)
        updated.status = ProwJobStatus(
            state=ProwJobState.TRIGGERED,
            description=DESC_SCHEDULING,
            start_time=self.accessor.now(),
        )
        logger.info(f"Updating job {job.name} to {ProwJobState.TRIGGERED.value}")
        await self.accessor.update_job(updated)

    async def _sync_status(self, key: str, job: ProwJob, build: Build) -> None:
        state, description = prow_job_status(build.status)

        status = copy.deepcopy(job.status)
        status.state = state
        status.description = description
        if status.start_time is None:
            status.start_time = build.status.start_time or self.accessor.now()
        if state.terminal and status.completion_time is None:
            status.completion_time = build.status.completion_time or self.accessor.now()

        if status == job.status:
            logger.debug(f"Job {job.name} already up to date with build {key}")
            return

        updated = copy.deepcopy(job)
        updated.status = status
        logger.info(
            f"Updating job {job.name} to {state.value} ({description!r}) from build {key}"
        )
        await self.accessor.update_job(updated)
