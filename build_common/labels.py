"""
Labels and annotations stamped on the builds this controller creates.
"""

import re

from .models import Build, ProwJob

CREATED_BY_PROW = "created-by-prow"
PROW_JOB_TYPE_LABEL = "prow.k8s.io/type"
PROW_JOB_ID_LABEL = "prow.k8s.io/id"
PROW_JOB_NAME_LABEL = "prow.k8s.io/job"
ORG_LABEL = "prow.k8s.io/refs.org"
REPO_LABEL = "prow.k8s.io/refs.repo"
PULL_LABEL = "prow.k8s.io/refs.pull"

MAX_LABEL_VALUE_LENGTH = 63

_INVALID_LABEL_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def label_value(value: str) -> str:
    """Sanitize a string into a valid label value."""
    value = _INVALID_LABEL_CHARS.sub("", value)[:MAX_LABEL_VALUE_LENGTH]
    # Label values must begin and end with an alphanumeric character
    return value.strip("._-")


def labels_for_job(job: ProwJob) -> tuple[dict[str, str], dict[str, str]]:
    """
    Compute the labels and annotations for the build of a job.

    The job's own labels are carried over first so the controller labels
    always win, including the ownership marker.

    Returns:
        Tuple of (labels, annotations)
    """
    labels = dict(job.labels)
    labels[CREATED_BY_PROW] = "true"
    labels[PROW_JOB_TYPE_LABEL] = job.spec.type.value
    labels[PROW_JOB_ID_LABEL] = job.name
    labels[PROW_JOB_NAME_LABEL] = label_value(job.spec.job)

    refs = job.spec.refs
    if refs is not None:
        labels[ORG_LABEL] = label_value(refs.org)
        labels[REPO_LABEL] = label_value(refs.repo)
        if refs.pulls:
            labels[PULL_LABEL] = str(refs.pulls[0].number)

    annotations = dict(job.annotations)
    annotations[PROW_JOB_NAME_LABEL] = job.spec.job
    return labels, annotations


def is_owned(build: Build) -> bool:
    """Whether the build was created by this controller and may be deleted."""
    return build.labels.get(CREATED_BY_PROW) == "true"
