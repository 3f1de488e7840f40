"""
Data models for job intents (ProwJobs) and execution resources (Builds).

These models represent the domain objects used throughout the controller,
independent of the underlying storage mechanism. States and condition values
are closed enumerations; strings only appear in to_dict/from_dict.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

KNATIVE_BUILD_AGENT = "knative-build"
KUBERNETES_AGENT = "kubernetes"
JENKINS_AGENT = "jenkins"

BUILD_SUCCEEDED = "Succeeded"


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_duration(value: timedelta | None) -> float | None:
    return value.total_seconds() if value is not None else None


def _parse_duration(value: float | None) -> timedelta | None:
    return timedelta(seconds=value) if value is not None else None


class ProwJobState(str, Enum):
    """Lifecycle state of a job intent."""

    TRIGGERED = "triggered"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ABORTED = "aborted"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        ProwJobState.SUCCESS,
        ProwJobState.FAILURE,
        ProwJobState.ABORTED,
        ProwJobState.ERROR,
    }
)


class ProwJobType(str, Enum):
    PRESUBMIT = "presubmit"
    POSTSUBMIT = "postsubmit"
    PERIODIC = "periodic"
    BATCH = "batch"


class ConditionStatus(str, Enum):
    """Tri-state value of a build condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


# ============================================================================
# Job intent
# ============================================================================


@dataclass
class Pull:
    number: int
    author: str = ""
    sha: str = ""
    ref: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "author": self.author,
            "sha": self.sha,
            "ref": self.ref,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pull":
        return cls(
            number=data["number"],
            author=data.get("author", ""),
            sha=data.get("sha", ""),
            ref=data.get("ref", ""),
        )


@dataclass
class Refs:
    """A repository to check out, optionally with pull requests merged in."""

    org: str = ""
    repo: str = ""
    base_ref: str = ""
    base_sha: str = ""
    pulls: list[Pull] = field(default_factory=list)
    path_alias: str = ""
    clone_uri: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "org": self.org,
            "repo": self.repo,
            "base_ref": self.base_ref,
            "base_sha": self.base_sha,
            "pulls": [pull.to_dict() for pull in self.pulls],
            "path_alias": self.path_alias,
            "clone_uri": self.clone_uri,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Refs":
        return cls(
            org=data.get("org", ""),
            repo=data.get("repo", ""),
            base_ref=data.get("base_ref", ""),
            base_sha=data.get("base_sha", ""),
            pulls=[Pull.from_dict(p) for p in data.get("pulls", [])],
            path_alias=data.get("path_alias", ""),
            clone_uri=data.get("clone_uri", ""),
        )


@dataclass
class UtilityImages:
    """Images for the pod utilities used to decorate a job."""

    clonerefs: str = ""
    initupload: str = ""
    entrypoint: str = ""
    sidecar: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "clonerefs": self.clonerefs,
            "initupload": self.initupload,
            "entrypoint": self.entrypoint,
            "sidecar": self.sidecar,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UtilityImages":
        return cls(
            clonerefs=data.get("clonerefs", ""),
            initupload=data.get("initupload", ""),
            entrypoint=data.get("entrypoint", ""),
            sidecar=data.get("sidecar", ""),
        )


@dataclass
class DecorationConfig:
    timeout: timedelta | None = None
    utility_images: UtilityImages | None = None
    ssh_key_secrets: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timeout": _format_duration(self.timeout),
            "utility_images": self.utility_images.to_dict()
            if self.utility_images
            else None,
            "ssh_key_secrets": list(self.ssh_key_secrets),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DecorationConfig":
        images = data.get("utility_images")
        return cls(
            timeout=_parse_duration(data.get("timeout")),
            utility_images=UtilityImages.from_dict(images) if images is not None else None,
            ssh_key_secrets=list(data.get("ssh_key_secrets", [])),
        )


@dataclass
class ProwJobSpec:
    """
    Desired execution described by a job intent.

    build_spec is the template copied into the Build; it may be absent, in
    which case the controller refuses to create a Build for the job.
    """

    type: ProwJobType = ProwJobType.PERIODIC
    agent: str = KNATIVE_BUILD_AGENT
    cluster: str = ""
    job: str = ""
    refs: Refs | None = None
    extra_refs: list[Refs] = field(default_factory=list)
    build_spec: "BuildSpec | None" = None
    decoration_config: DecorationConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "agent": self.agent,
            "cluster": self.cluster,
            "job": self.job,
            "refs": self.refs.to_dict() if self.refs else None,
            "extra_refs": [refs.to_dict() for refs in self.extra_refs],
            "build_spec": self.build_spec.to_dict() if self.build_spec else None,
            "decoration_config": self.decoration_config.to_dict()
            if self.decoration_config
            else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProwJobSpec":
        refs = data.get("refs")
        build_spec = data.get("build_spec")
        decoration = data.get("decoration_config")
        return cls(
            type=ProwJobType(data.get("type", ProwJobType.PERIODIC.value)),
            agent=data.get("agent", KNATIVE_BUILD_AGENT),
            cluster=data.get("cluster", ""),
            job=data.get("job", ""),
            refs=Refs.from_dict(refs) if refs is not None else None,
            extra_refs=[Refs.from_dict(r) for r in data.get("extra_refs", [])],
            build_spec=BuildSpec.from_dict(build_spec) if build_spec is not None else None,
            decoration_config=DecorationConfig.from_dict(decoration)
            if decoration is not None
            else None,
        )


@dataclass
class ProwJobStatus:
    state: ProwJobState | None = None
    description: str = ""
    start_time: datetime | None = None
    completion_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value if self.state else None,
            "description": self.description,
            "start_time": _format_time(self.start_time),
            "completion_time": _format_time(self.completion_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProwJobStatus":
        state = data.get("state")
        return cls(
            state=ProwJobState(state) if state else None,
            description=data.get("description", ""),
            start_time=_parse_time(data.get("start_time")),
            completion_time=_parse_time(data.get("completion_time")),
        )


@dataclass
class ProwJob:
    """
    A declarative record of a desired CI execution.

    Jobs progress through states: triggered -> pending -> success/failure
    Additional terminal states: aborted, error
    """

    name: str
    namespace: str = "default"
    spec: ProwJobSpec = field(default_factory=ProwJobSpec)
    status: ProwJobStatus = field(default_factory=ProwJobStatus)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str | None = None

    def complete(self) -> bool:
        """Whether the job has reached a terminal state or completion time."""
        if self.status.completion_time is not None:
            return True
        return self.status.state is not None and self.status.state.terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
            "resource_version": self.resource_version,
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProwJob":
        return cls(
            name=data["name"],
            namespace=data.get("namespace", "default"),
            spec=ProwJobSpec.from_dict(data.get("spec", {})),
            status=ProwJobStatus.from_dict(data.get("status", {})),
            labels=dict(data.get("labels", {})),
            annotations=dict(data.get("annotations", {})),
            resource_version=data.get("resource_version"),
        )


# ============================================================================
# Execution resource
# ============================================================================


@dataclass
class EnvVar:
    name: str
    value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnvVar":
        return cls(name=data["name"], value=data.get("value", ""))


@dataclass
class ArgumentSpec:
    name: str
    value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArgumentSpec":
        return cls(name=data["name"], value=data.get("value", ""))


@dataclass
class VolumeMount:
    name: str
    mount_path: str
    read_only: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "mount_path": self.mount_path,
            "read_only": self.read_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumeMount":
        return cls(
            name=data["name"],
            mount_path=data["mount_path"],
            read_only=data.get("read_only", False),
        )


@dataclass
class Volume:
    """A volume available to build steps: either scratch space or a secret."""

    name: str
    empty_dir: bool = False
    secret_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "empty_dir": self.empty_dir,
            "secret_name": self.secret_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Volume":
        return cls(
            name=data["name"],
            empty_dir=data.get("empty_dir", False),
            secret_name=data.get("secret_name"),
        )


@dataclass
class Step:
    """A single container run as part of a build."""

    name: str = ""
    image: str = ""
    command: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)
    env: list[EnvVar] = field(default_factory=list)
    working_dir: str = ""
    volume_mounts: list[VolumeMount] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "command": list(self.command),
            "args": list(self.args),
            "env": [var.to_dict() for var in self.env],
            "working_dir": self.working_dir,
            "volume_mounts": [mount.to_dict() for mount in self.volume_mounts],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Step":
        return cls(
            name=data.get("name", ""),
            image=data.get("image", ""),
            command=list(data.get("command", [])),
            args=list(data.get("args", [])),
            env=[EnvVar.from_dict(e) for e in data.get("env", [])],
            working_dir=data.get("working_dir", ""),
            volume_mounts=[
                VolumeMount.from_dict(m) for m in data.get("volume_mounts", [])
            ],
        )


@dataclass
class TemplateInstantiationSpec:
    """Reference to a build template plus the arguments to instantiate it."""

    name: str = ""
    kind: str = "BuildTemplate"
    arguments: list[ArgumentSpec] = field(default_factory=list)
    env: list[EnvVar] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "arguments": [arg.to_dict() for arg in self.arguments],
            "env": [var.to_dict() for var in self.env],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateInstantiationSpec":
        return cls(
            name=data.get("name", ""),
            kind=data.get("kind", "BuildTemplate"),
            arguments=[ArgumentSpec.from_dict(a) for a in data.get("arguments", [])],
            env=[EnvVar.from_dict(e) for e in data.get("env", [])],
        )


@dataclass
class SourceSpec:
    custom: Step | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"custom": self.custom.to_dict() if self.custom else None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceSpec":
        custom = data.get("custom")
        return cls(custom=Step.from_dict(custom) if custom is not None else None)


@dataclass
class BuildSpec:
    steps: list[Step] = field(default_factory=list)
    template: TemplateInstantiationSpec | None = None
    source: SourceSpec | None = None
    volumes: list[Volume] = field(default_factory=list)
    timeout: timedelta | None = None
    service_account_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [step.to_dict() for step in self.steps],
            "template": self.template.to_dict() if self.template else None,
            "source": self.source.to_dict() if self.source else None,
            "volumes": [volume.to_dict() for volume in self.volumes],
            "timeout": _format_duration(self.timeout),
            "service_account_name": self.service_account_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildSpec":
        template = data.get("template")
        source = data.get("source")
        return cls(
            steps=[Step.from_dict(s) for s in data.get("steps", [])],
            template=TemplateInstantiationSpec.from_dict(template)
            if template is not None
            else None,
            source=SourceSpec.from_dict(source) if source is not None else None,
            volumes=[Volume.from_dict(v) for v in data.get("volumes", [])],
            timeout=_parse_duration(data.get("timeout")),
            service_account_name=data.get("service_account_name", ""),
        )


@dataclass
class Condition:
    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "status": self.status.value,
            "reason": self.reason,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Condition":
        return cls(
            type=data["type"],
            status=ConditionStatus(data.get("status", ConditionStatus.UNKNOWN.value)),
            reason=data.get("reason", ""),
            message=data.get("message", ""),
        )


@dataclass
class BuildStatus:
    """Observed state of a build, written by the build engine."""

    conditions: list[Condition] = field(default_factory=list)
    start_time: datetime | None = None
    completion_time: datetime | None = None

    def get_condition(self, condition_type: str) -> Condition | None:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def set_condition(self, condition: Condition) -> None:
        """Add a condition, replacing any existing one of the same type."""
        self.conditions = [c for c in self.conditions if c.type != condition.type]
        self.conditions.append(condition)

    def to_dict(self) -> dict[str, Any]:
        return {
            "conditions": [c.to_dict() for c in self.conditions],
            "start_time": _format_time(self.start_time),
            "completion_time": _format_time(self.completion_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildStatus":
        return cls(
            conditions=[Condition.from_dict(c) for c in data.get("conditions", [])],
            start_time=_parse_time(data.get("start_time")),
            completion_time=_parse_time(data.get("completion_time")),
        )


@dataclass
class Build:
    """
    The unit of work executed by the build engine for a job intent.

    A build shares its name with the job that owns it. The controller only
    reads status; the build engine writes it.
    """

    name: str
    namespace: str = "default"
    spec: BuildSpec = field(default_factory=BuildSpec)
    status: BuildStatus = field(default_factory=BuildStatus)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    deletion_timestamp: datetime | None = None
    resource_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
            "deletion_timestamp": _format_time(self.deletion_timestamp),
            "resource_version": self.resource_version,
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Build":
        return cls(
            name=data["name"],
            namespace=data.get("namespace", "default"),
            spec=BuildSpec.from_dict(data.get("spec", {})),
            status=BuildStatus.from_dict(data.get("status", {})),
            labels=dict(data.get("labels", {})),
            annotations=dict(data.get("annotations", {})),
            deletion_timestamp=_parse_time(data.get("deletion_timestamp")),
            resource_version=data.get("resource_version"),
        )
