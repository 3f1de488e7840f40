"""
Reconcile keys: the (cluster context, namespace, name) unit of work.
"""

from .errors import InvalidKeyError

DEFAULT_CLUSTER_CONTEXT = "default"


def to_key(context: str, namespace: str, name: str) -> str:
    """Encode a reconcile key as "context/namespace/name"."""
    return f"{context}/{namespace}/{name}"


def from_key(key: str) -> tuple[str, str, str]:
    """
    Decode a reconcile key.

    Args:
        key: Key produced by to_key()

    Returns:
        Tuple of (context, namespace, name)

    Raises:
        InvalidKeyError: If the key does not have exactly three parts or
                         names no object
    """
    parts = key.split("/")
    if len(parts) != 3:
        raise InvalidKeyError(f"bad key: {key!r}")
    context, namespace, name = parts
    if not name:
        raise InvalidKeyError(f"bad key: {key!r} has no name")
    return context, namespace, name


def cluster_to_context(cluster: str) -> str:
    """Map a job's cluster selector to the cluster context it builds in."""
    return cluster or DEFAULT_CLUSTER_CONTEXT
