"""HTTP client for the OPA v1 Data API.

OPAClient implements DataSink: whole documents are written with PUT and
removed with a JSON patch. ``prefixed()`` returns a view rooted deeper in
the data tree that shares the same connection pool.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from opasync.clients.errors import NotFoundError, check_response

if TYPE_CHECKING:
    from opasync.core.config import ServerConfig

logger = logging.getLogger(__name__)

DATA_ROOT = "/v1/data"


def join_path(*segments: str) -> str:
    """Join path segments with single slashes, dropping empty ones."""
    parts = [part for segment in segments for part in segment.split("/") if part]
    return "/".join(parts)


class OPAClient:
    """Async client writing documents into OPA's data tree."""

    def __init__(
        self,
        config: ServerConfig,
        prefix: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: OPA server URL and optional token.
            prefix: Data path under /v1/data that this client writes to.
            transport: Optional transport override.
            client: Shared HTTP client (used by prefixed views).
        """
        self._config = config
        self._prefix = join_path(prefix)
        self._client = client or httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            headers=config.headers,
            verify=config.verify,
            transport=transport,
        )

    @property
    def prefix(self) -> str:
        return self._prefix

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> OPAClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    def prefixed(self, path: str) -> OPAClient:
        """Get a client rooted at ``path`` below this one's prefix."""
        return OPAClient(
            self._config,
            prefix=join_path(self._prefix, path),
            client=self._client,
        )

    def url(self, path: str = "") -> str:
        """Data API URL of a document below this client's prefix."""
        full = join_path(self._prefix, path)
        return f"{DATA_ROOT}/{full}" if full else DATA_ROOT

    async def put_data(self, path: str, value: Any) -> None:
        """Create or overwrite the document at ``path``.

        Raises:
            APIError: If OPA rejects the write.
        """
        response = await self._client.put(self.url(path), json=value)
        check_response(response)

    async def patch_data(self, path: str, op: str, value: Any = None) -> None:
        """Apply a single JSON patch operation to the document at ``path``."""
        operation: dict[str, Any] = {"op": op, "path": "/"}
        if value is not None:
            operation["value"] = value
        response = await self._client.patch(self.url(path), json=[operation])
        check_response(response)

    # === DataSink ===

    async def replace_subtree(self, prefix: str, value: Any) -> None:
        logger.debug("Replacing %s", self.url(prefix))
        await self.put_data(prefix, value)

    async def upsert(self, path: str, obj: Any) -> None:
        await self.put_data(path, obj)

    async def remove(self, path: str) -> None:
        try:
            await self.patch_data(path, "remove")
        except NotFoundError:
            logger.debug("Document %s already absent", self.url(path))
