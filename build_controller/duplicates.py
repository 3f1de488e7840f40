"""
Cancellation of superseded duplicate presubmit jobs.

When several presubmits run for the same job and the same pull requests,
only the most recently started one still matters. The sweep aborts the
others and removes their builds.
"""

import copy
import logging
from collections import defaultdict
from datetime import UTC, datetime

from build_common.accessor import Accessor
from build_common.errors import NotFoundError, TerminationError
from build_common.labels import is_owned
from build_common.models import (
    KNATIVE_BUILD_AGENT,
    ProwJob,
    ProwJobState,
    ProwJobType,
)

from .config import ControllerConfig

logger = logging.getLogger(__name__)

_NEVER_STARTED = datetime.min.replace(tzinfo=UTC)


def job_identity(job: ProwJob) -> tuple[str, str, tuple[int, ...]]:
    """Logical identity shared by duplicate runs: job, repo and pulls."""
    refs = job.spec.refs
    if refs is None:
        return job.spec.job, "", ()
    return (
        job.spec.job,
        f"{refs.org}/{refs.repo}",
        tuple(sorted(pull.number for pull in refs.pulls)),
    )


def _start_time(job: ProwJob) -> datetime:
    start = job.status.start_time
    if start is None:
        return _NEVER_STARTED
    if start.tzinfo is None:
        return start.replace(tzinfo=UTC)
    return start


def superseded_jobs(jobs: list[ProwJob], agent: str) -> list[ProwJob]:
    """
    Find the active presubmits that a newer run of the same job replaces.

    Args:
        jobs: Jobs to consider
        agent: Only jobs of this agent are grouped

    Returns:
        Jobs to abort, ordered by name
    """
    groups: dict[tuple, list[ProwJob]] = defaultdict(list)
    for job in jobs:
        if job.spec.agent != agent or job.spec.type != ProwJobType.PRESUBMIT:
            continue
        if job.complete() or job.status.state == ProwJobState.ABORTED:
            continue
        groups[job_identity(job)].append(job)

    superseded = []
    for group in groups.values():
        if len(group) < 2:
            continue
        newest = max(group, key=_start_time)
        superseded.extend(job for job in group if job is not newest)
    return sorted(superseded, key=lambda job: job.name)


class DuplicateTerminator:
    """Aborts superseded duplicate jobs and deletes their builds."""

    def __init__(
        self,
        accessor: Accessor,
        config: ControllerConfig,
        agent: str = KNATIVE_BUILD_AGENT,
    ):
        self.accessor = accessor
        self.config = config
        self.agent = agent

    async def terminate_duplicates(self, context: str, namespace: str) -> None:
        """
        Abort every superseded duplicate job in a namespace.

        Failures for one job do not stop the sweep; they are collected and
        raised together once every job has been attempted.

        Args:
            context: Cluster context the builds live in
            namespace: Namespace of the jobs and their builds

        Raises:
            TerminationError: If any job could not be aborted or cleaned up
        """
        if not self.config.allow_cancellations(context):
            logger.debug(f"Cancellations disabled for context {context}")
            return

        jobs = await self.accessor.list_jobs(namespace)
        errors: list[Exception] = []
        for job in superseded_jobs(jobs, self.agent):
            aborted = copy.deepcopy(job)
            aborted.status.state = ProwJobState.ABORTED
            logger.info(f"Aborting duplicate job {job.name} ({job.spec.job})")
            try:
                await self.accessor.update_job(aborted)
            except Exception as e:
                logger.error(f"Failed to abort job {job.name}: {e}")
                errors.append(e)
                continue

            try:
                await self._delete_build(context, namespace, job.name)
            except Exception as e:
                logger.error(f"Failed to delete build for aborted job {job.name}: {e}")
                errors.append(e)

        if errors:
            raise TerminationError(errors)

    async def _delete_build(self, context: str, namespace: str, name: str) -> None:
        try:
            build = await self.accessor.get_execution(context, namespace, name)
        except NotFoundError:
            return
        if not is_owned(build):
            logger.warning(
                f"Not deleting build {context}/{namespace}/{name} without created-by-prow label"
            )
            return
        try:
            await self.accessor.delete_execution(context, namespace, name)
        except NotFoundError:
            pass
