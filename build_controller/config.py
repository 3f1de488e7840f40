"""
Controller configuration.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from build_common.keys import DEFAULT_CLUSTER_CONTEXT
from build_common.models import KNATIVE_BUILD_AGENT

ALL_CONTEXTS = "*"


@dataclass
class ControllerConfig:
    """
    Settings for the build controller.

    cancellation_contexts lists the cluster contexts in which duplicate jobs
    may be cancelled; "*" enables cancellation everywhere.
    """

    namespace: str = "default"
    agent: str = KNATIVE_BUILD_AGENT
    contexts: list[str] = field(default_factory=lambda: [DEFAULT_CLUSTER_CONTEXT])
    cancellation_contexts: set[str] = field(default_factory=set)
    reconcile_interval: float = 2.0
    workers: int = 4
    default_timeout: timedelta = timedelta(hours=1)

    def allow_cancellations(self, context: str) -> bool:
        """Whether superseded jobs may be cancelled in a cluster context."""
        return (
            ALL_CONTEXTS in self.cancellation_contexts
            or context in self.cancellation_contexts
        )
