"""
Error taxonomy shared by the controller, persistence and operator surfaces.

Accessor implementations signal the expected outcomes of reads and writes
(not found, already exists, stale write) with the exceptions below; anything
else they raise is treated as a transient failure by the controller.
"""


class BuildControllerError(Exception):
    """Base class for all errors raised by the build controller."""


class NotFoundError(BuildControllerError):
    """The requested resource does not exist (yet, or any more)."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} {name!r} not found")
        self.kind = kind
        self.name = name


class AlreadyExistsError(BuildControllerError):
    """A resource with the same identity already exists."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} {name!r} already exists")
        self.kind = kind
        self.name = name


class ConflictError(BuildControllerError):
    """An optimistic-concurrency write lost against a newer version."""

    def __init__(self, kind: str, name: str, resource_version: str | None):
        super().__init__(
            f"{kind} {name!r} was modified since resource version {resource_version}"
        )
        self.kind = kind
        self.name = name
        self.resource_version = resource_version


class InvalidKeyError(BuildControllerError):
    """A reconcile key could not be decoded. Retrying will not help."""


class ConfigurationError(BuildControllerError):
    """A job intent is misconfigured in a way only a human can fix."""


class DecorationError(BuildControllerError):
    """The source checkout for a job could not be constructed."""


class TerminationError(BuildControllerError):
    """One or more jobs could not be aborted during a duplicate sweep."""

    def __init__(self, errors: list[Exception]):
        summary = "; ".join(str(e) for e in errors)
        super().__init__(f"{len(errors)} duplicate job(s) failed to terminate: {summary}")
        self.errors = errors
