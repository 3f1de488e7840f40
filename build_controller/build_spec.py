"""
Construction of builds from job intents.

make_build() turns a ProwJob's build template into a Build: it attaches the
ownership labels, defaults the timeout, injects the standard job environment
and checks out the job's code references.
"""

import copy
import json
from datetime import timedelta

from build_common.errors import ConfigurationError
from build_common.labels import labels_for_job
from build_common.models import (
    ArgumentSpec,
    Build,
    EnvVar,
    ProwJob,
    ProwJobType,
    Refs,
    SourceSpec,
    Step,
    TemplateInstantiationSpec,
)

from .decorate import build_clone_artifacts, path_for_refs

DEFAULT_TIMEOUT = timedelta(hours=1)

# Builds run with their sources below a well-known workspace
CODE_MOUNT = "/workspace"
LOG_MOUNT = "/var/prow-build-log"
WORKDIR_ARGUMENT = "WORKDIR"


def pull_refs(refs: Refs) -> str:
    """Encode refs as base_ref:base_sha,number:sha,... for PULL_REFS."""
    parts = [f"{refs.base_ref}:{refs.base_sha}"]
    parts.extend(f"{pull.number}:{pull.sha}" for pull in refs.pulls)
    return ",".join(parts)


def build_env(job: ProwJob, build_id: str) -> dict[str, str]:
    """
    Compute the standard environment for a job's build.

    Args:
        job: Job the build runs for
        build_id: Identifier allocated for this build

    Returns:
        Mapping of environment variable names to values
    """
    spec = job.spec
    job_spec = {
        "type": spec.type.value,
        "job": spec.job,
        "buildid": build_id,
        "prowjobid": job.name,
        "refs": spec.refs.to_dict() if spec.refs else None,
        "extra_refs": [refs.to_dict() for refs in spec.extra_refs],
    }
    env = {
        "BUILD_ID": build_id,
        "BUILD_NUMBER": build_id,
        "PROW_JOB_ID": job.name,
        "JOB_NAME": spec.job,
        "JOB_TYPE": spec.type.value,
        "JOB_SPEC": json.dumps(job_spec, sort_keys=True),
    }
    if spec.type == ProwJobType.PERIODIC or spec.refs is None:
        return env

    refs = spec.refs
    env["REPO_OWNER"] = refs.org
    env["REPO_NAME"] = refs.repo
    env["PULL_BASE_REF"] = refs.base_ref
    env["PULL_BASE_SHA"] = refs.base_sha
    env["PULL_REFS"] = pull_refs(refs)
    if spec.type == ProwJobType.PRESUBMIT and refs.pulls:
        env["PULL_NUMBER"] = str(refs.pulls[0].number)
        env["PULL_PULL_SHA"] = refs.pulls[0].sha
    return env


def default_env(step: Step, env: dict[str, str]) -> None:
    """Append each variable in env that the step does not already set."""
    existing = {var.name for var in step.env}
    for name, value in env.items():
        if name in existing:
            continue
        step.env.append(EnvVar(name=name, value=value))


def default_arguments(
    template: TemplateInstantiationSpec, env: dict[str, str]
) -> None:
    """Append each argument in env that the template does not already set."""
    existing = {arg.name for arg in template.arguments}
    for name, value in env.items():
        if name in existing:
            continue
        template.arguments.append(ArgumentSpec(name=name, value=value))


def inject_environment(build: Build, env: dict[str, str]) -> None:
    for step in build.spec.steps:
        default_env(step, env)
    if build.spec.template is not None:
        default_arguments(build.spec.template, env)


def work_dir(refs: Refs) -> ArgumentSpec:
    """The WORKDIR argument pointing at the checkout of refs."""
    return ArgumentSpec(name=WORKDIR_ARGUMENT, value=path_for_refs(CODE_MOUNT, refs))


def inject_source(build: Build, job: ProwJob) -> None:
    """
    Check out the job's refs as the build's source.

    Does nothing when the build already declares a source or the job has no
    refs. Steps without a working directory start in the first checkout.

    Raises:
        DecorationError: If the clone step cannot be constructed
    """
    if build.spec.source is not None:
        return

    clone_step, refs, volumes = build_clone_artifacts(job, CODE_MOUNT, LOG_MOUNT)
    if clone_step is None:
        return

    build.spec.volumes.extend(volumes)
    build.spec.source = SourceSpec(custom=clone_step)

    workdir = work_dir(refs[0])
    if build.spec.template is not None:
        build.spec.template.arguments.append(workdir)
    for step in build.spec.steps:
        if step.working_dir:
            continue
        step.working_dir = workdir.value


def make_build(
    job: ProwJob, build_id: str, default_timeout: timedelta = DEFAULT_TIMEOUT
) -> Build:
    """
    Create the build for a job.

    Args:
        job: Job to build
        build_id: Identifier allocated for this build
        default_timeout: Timeout used when the job does not configure one

    Returns:
        A new Build, not yet persisted

    Raises:
        ConfigurationError: If the job has no build template
        DecorationError: If the job's refs cannot be checked out
    """
    if job.spec.build_spec is None:
        raise ConfigurationError(f"job {job.name} has no build_spec")

    labels, annotations = labels_for_job(job)
    build = Build(
        name=job.name,
        namespace=job.namespace,
        labels=labels,
        annotations=annotations,
        spec=copy.deepcopy(job.spec.build_spec),
    )

    decoration = job.spec.decoration_config
    if decoration is not None and decoration.timeout:
        build.spec.timeout = decoration.timeout
    else:
        build.spec.timeout = default_timeout

    inject_environment(build, build_env(job, build_id))
    inject_source(build, job)
    return build
