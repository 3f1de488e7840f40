"""
Projection of observed build status onto job status.
"""

from build_common.models import (
    BUILD_SUCCEEDED,
    BuildStatus,
    Condition,
    ConditionStatus,
    ProwJobState,
)

DESC_SCHEDULING = "scheduling"
DESC_INITIALIZING = "build initializing"
DESC_RUNNING = "build running"
DESC_SUCCEEDED = "build succeeded"
DESC_FAILED = "build failed"
DESC_MISSING_CONDITION = "build status missing 'succeeded' condition"


def description(condition: Condition, fallback: str) -> str:
    """Describe a condition by its message, else its reason, else fallback."""
    if condition.message:
        return condition.message
    if condition.reason:
        return condition.reason
    return fallback


def prow_job_status(status: BuildStatus) -> tuple[ProwJobState, str]:
    """
    Translate a build's status into a job state and description.

    An Unknown Succeeded condition always means the build is still going,
    even if the build engine already recorded a completion time.

    Args:
        status: Observed status of the build

    Returns:
        Tuple of (state, description)
    """
    condition = status.get_condition(BUILD_SUCCEEDED)
    if condition is None:
        if status.completion_time is None:
            return ProwJobState.TRIGGERED, DESC_SCHEDULING
        return ProwJobState.ERROR, DESC_MISSING_CONDITION

    if condition.status == ConditionStatus.TRUE:
        return ProwJobState.SUCCESS, description(condition, DESC_SUCCEEDED)
    if condition.status == ConditionStatus.FALSE:
        return ProwJobState.FAILURE, description(condition, DESC_FAILED)
    if status.start_time is None:
        return ProwJobState.TRIGGERED, description(condition, DESC_INITIALIZING)
    return ProwJobState.PENDING, description(condition, DESC_RUNNING)
