"""HTTP clients for the Kubernetes API (source) and OPA (sink)."""

from opasync.clients.errors import APIError, AuthenticationError, NotFoundError
from opasync.clients.kubernetes import (
    KubernetesClient,
    KubernetesSource,
    KubernetesWatch,
    collection_path,
    decode_event,
)
from opasync.clients.opa import OPAClient, join_path

__all__ = [
    # Errors
    "APIError",
    "AuthenticationError",
    "NotFoundError",
    # Kubernetes
    "KubernetesClient",
    "KubernetesSource",
    "KubernetesWatch",
    "collection_path",
    "decode_event",
    # OPA
    "OPAClient",
    "join_path",
]
