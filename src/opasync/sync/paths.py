"""Storage paths for replicated objects.

Objects are stored under ``<namespace>/<name>`` for namespaced resource
types and under ``<name>`` otherwise.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from opasync.core.config import ResourceType


class MissingIdentityError(ValueError):
    """The object carries no usable name or namespace."""


def object_identity(obj: Any) -> tuple[str, str]:
    """Extract (name, namespace) from a remote object.

    Supports Kubernetes JSON (a mapping with a ``metadata`` mapping) and
    any object exposing ``name``/``namespace`` attributes, directly or on
    a ``metadata`` attribute.

    Args:
        obj: The remote object.

    Returns:
        Tuple of name and namespace (empty string when absent).

    Raises:
        MissingIdentityError: If no name can be found.
    """
    if isinstance(obj, Mapping):
        metadata = obj.get("metadata")
        if not isinstance(metadata, Mapping):
            raise MissingIdentityError(f"object has no metadata: {obj!r}")
        name = metadata.get("name")
        namespace = metadata.get("namespace")
    else:
        source = getattr(obj, "metadata", obj)
        name = getattr(source, "name", None)
        namespace = getattr(source, "namespace", None)

    if not name or not isinstance(name, str):
        raise MissingIdentityError(f"object has no name: {obj!r}")
    return name, namespace or ""


def object_path(resource_type: ResourceType, obj: Any) -> str:
    """Compute the storage path of an object.

    Raises:
        MissingIdentityError: If the name, or for namespaced types the
            namespace, is missing.
    """
    name, namespace = object_identity(obj)
    if not resource_type.namespaced:
        return name
    if not namespace:
        raise MissingIdentityError(
            f"object {name!r} of namespaced type {resource_type} has no namespace"
        )
    return f"{namespace}/{name}"
