"""
Clone decoration for builds.

Turns the code references of a job into a source step that checks them out
with the clonerefs utility, plus the volumes that step needs.
"""

import json

from build_common.errors import DecorationError
from build_common.models import (
    EnvVar,
    ProwJob,
    Refs,
    Step,
    Volume,
    VolumeMount,
)

CODE_VOLUME = "code"
LOG_VOLUME = "logs"
SSH_KEYS_MOUNT = "/secrets/ssh"

GIT_USER_NAME = "ci-robot"
GIT_USER_EMAIL = "ci-robot@k8s.io"


def repo_path(refs: Refs) -> str:
    """Import path a repository is cloned to, below <root>/src."""
    if refs.path_alias:
        return refs.path_alias
    return f"github.com/{refs.org}/{refs.repo}"


def path_for_refs(base_dir: str, refs: Refs) -> str:
    """Directory a repository is checked out into."""
    return f"{base_dir}/src/{repo_path(refs)}"


def job_refs(job: ProwJob) -> list[Refs]:
    """All refs of a job, primary refs first."""
    refs = []
    if job.spec.refs is not None:
        refs.append(job.spec.refs)
    refs.extend(job.spec.extra_refs)
    return refs


def _validate_refs(refs: list[Refs]) -> None:
    seen = set()
    for ref in refs:
        if not (ref.org or ref.repo or ref.path_alias):
            raise DecorationError("refs must name an org, repo or path alias")
        for pull in ref.pulls:
            if pull.number <= 0:
                raise DecorationError(
                    f"invalid pull number {pull.number} for {repo_path(ref)}"
                )
        path = repo_path(ref)
        if path in seen:
            raise DecorationError(f"refs for {path} are specified more than once")
        seen.add(path)


def build_clone_artifacts(
    job: ProwJob, code_mount: str, log_mount: str
) -> tuple[Step | None, list[Refs], list[Volume]]:
    """
    Create the clonerefs step for a job.

    Args:
        job: Job whose refs should be checked out
        code_mount: Path the code volume is mounted at
        log_mount: Path the log volume is mounted at

    Returns:
        Tuple of (clone_step, refs, volumes). clone_step is None and the
        lists are empty when the job has no refs.

    Raises:
        DecorationError: If the job is not decorated or its refs are malformed
    """
    refs = job_refs(job)
    if not refs:
        return None, [], []

    decoration = job.spec.decoration_config
    if decoration is None:
        raise DecorationError(f"job {job.name} has refs but no decoration config")
    if decoration.utility_images is None:
        raise DecorationError(f"job {job.name} has no utility images configured")
    _validate_refs(refs)

    volumes = [
        Volume(name=LOG_VOLUME, empty_dir=True),
        Volume(name=CODE_VOLUME, empty_dir=True),
    ]
    mounts = [
        VolumeMount(name=LOG_VOLUME, mount_path=log_mount),
        VolumeMount(name=CODE_VOLUME, mount_path=code_mount),
    ]
    key_files = []
    for secret in decoration.ssh_key_secrets:
        path = f"{SSH_KEYS_MOUNT}/{secret}"
        volumes.append(Volume(name=secret, secret_name=secret))
        mounts.append(VolumeMount(name=secret, mount_path=path, read_only=True))
        key_files.append(path)

    options = {
        "src_root": code_mount,
        "log": f"{log_mount}/clone.json",
        "git_user_name": GIT_USER_NAME,
        "git_user_email": GIT_USER_EMAIL,
        "refs": [ref.to_dict() for ref in refs],
        "key_files": key_files,
    }
    step = Step(
        name="clone-refs",
        image=decoration.utility_images.clonerefs,
        command=["/clonerefs"],
        env=[EnvVar(name="CLONEREFS_OPTIONS", value=json.dumps(options))],
        volume_mounts=mounts,
    )
    return step, refs, volumes
