"""Shared configuration classes for opasync.

This module defines configuration classes used by both the Kubernetes
and OPA clients, and the ResourceType that identifies a synced collection.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


@dataclass
class ServerConfig:
    """Configuration for connecting to an HTTP API server.

    Used by both the Kubernetes client (KubernetesClient) and the OPA client
    (OPAClient) to ensure consistent connection settings.

    Attributes:
        server_url: Base URL of the server (e.g., "https://10.0.0.1:443").
        token: Bearer token, or empty string for anonymous access.
        timeout: Request/connection timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
        ca_cert: Optional path to a CA bundle used instead of the system store.
    """

    server_url: str
    token: str = ""
    timeout: float = 30.0
    verify_ssl: bool = True
    ca_cert: str | None = None

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def verify(self) -> bool | str:
        """Value for httpx's ``verify`` argument."""
        if not self.verify_ssl:
            return False
        return self.ca_cert or True

    @property
    def headers(self) -> dict[str, str]:
        """Default request headers (authorization when a token is set)."""
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    @classmethod
    def in_cluster(
        cls,
        account_dir: Path = SERVICE_ACCOUNT_DIR,
        timeout: float = 30.0,
    ) -> ServerConfig:
        """Build a Kubernetes API config from the pod's service account.

        Args:
            account_dir: Directory holding the mounted token and ca.crt.
            timeout: Request timeout in seconds.

        Returns:
            ServerConfig pointing at the in-cluster API server.

        Raises:
            RuntimeError: If not running inside a Kubernetes pod.
        """
        host = os.environ.get("KUBERNETES_SERVICE_HOST")
        port = os.environ.get("KUBERNETES_SERVICE_PORT")
        if not host or not port:
            raise RuntimeError(
                "KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT must be set"
            )
        if ":" in host:
            host = f"[{host}]"

        token_file = account_dir / "token"
        if not token_file.exists():
            raise RuntimeError(f"Service account token not found: {token_file}")

        ca_file = account_dir / "ca.crt"
        return cls(
            server_url=f"https://{host}:{port}",
            token=token_file.read_text().strip(),
            timeout=timeout,
            ca_cert=str(ca_file) if ca_file.exists() else None,
        )


@dataclass(frozen=True)
class ResourceType:
    """A remote collection to replicate.

    Attributes:
        group: API group; empty string for the core group.
        version: API version (e.g., "v1").
        resource: Plural resource name (e.g., "pods"). Also the sink prefix.
        namespaced: Whether instances live in a namespace.
    """

    group: str
    version: str
    resource: str
    namespaced: bool = True

    def __str__(self) -> str:
        if self.group:
            return f"{self.group}/{self.version}/{self.resource}"
        return f"{self.version}/{self.resource}"

    @classmethod
    def parse(cls, value: str, namespaced: bool = True) -> ResourceType:
        """Parse ``[group/]version/resource``.

        Args:
            value: Resource type string, e.g. "v1/pods" or "apps/v1/deployments".
            namespaced: Whether the resource is namespaced.

        Returns:
            The parsed ResourceType.

        Raises:
            ValueError: If the string does not have two or three parts.
        """
        parts = value.strip().strip("/").split("/")
        if any(not part for part in parts):
            raise ValueError(f"Invalid resource type: {value!r}")
        if len(parts) == 2:
            return cls("", parts[0], parts[1], namespaced)
        if len(parts) == 3:
            return cls(parts[0], parts[1], parts[2], namespaced)
        raise ValueError(
            f"Invalid resource type: {value!r} (expected [group/]version/resource)"
        )
