"""HTTP client for the Kubernetes list/watch API.

This module provides:
- KubernetesClient: Async HTTP client for listing and watching collections
- KubernetesSource: ResourceSource bound to one ResourceType
- KubernetesWatch: Decoder for a streamed watch response
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import httpx

from opasync.clients.errors import APIError, check_response
from opasync.sync.types import (
    Added,
    ChangeEvent,
    Deleted,
    ListResult,
    Modified,
    SourceErrorEvent,
    StreamClosed,
)

if TYPE_CHECKING:
    from opasync.core.config import ResourceType, ServerConfig

logger = logging.getLogger(__name__)

# Server-side watch duration; the read timeout adds slack so a silent
# connection fails instead of blocking forever.
WATCH_TIMEOUT_SECONDS = 300
WATCH_READ_SLACK = 30.0

EVENT_TYPES: dict[str, type[Added] | type[Modified] | type[Deleted]] = {
    "ADDED": Added,
    "MODIFIED": Modified,
    "DELETED": Deleted,
}


def collection_path(resource_type: ResourceType) -> str:
    """URL path of a collection across all namespaces.

    Core group resources live under /api, named groups under /apis.
    """
    if not resource_type.group:
        return f"/api/{resource_type.version}/{resource_type.resource}"
    return (
        f"/apis/{resource_type.group}/{resource_type.version}/"
        f"{resource_type.resource}"
    )


def decode_event(line: str) -> ChangeEvent:
    """Decode one line of a watch response.

    Args:
        line: JSON object ``{"type": ..., "object": ...}``.

    Returns:
        The change event. Unknown types end the stream.

    Raises:
        APIError: If the line is not valid JSON.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise APIError(f"Invalid watch event: {line[:100]!r}") from e
    if not isinstance(data, dict):
        raise APIError(f"Invalid watch event: {line[:100]!r}")

    event_type = data.get("type")
    obj = data.get("object")

    event_cls = EVENT_TYPES.get(event_type)
    if event_cls is not None:
        return event_cls(obj)
    if event_type == "ERROR":
        if isinstance(obj, dict) and obj.get("message"):
            code = obj.get("code")
            message = obj["message"]
            return SourceErrorEvent(f"{code} {message}" if code is not None else message)
        return SourceErrorEvent(obj)

    logger.warning("Unknown watch event type: %s", event_type)
    return StreamClosed()


class KubernetesWatch:
    """Change events from one streamed watch response."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._lines: AsyncIterator[str] = response.aiter_lines()
        self._closed = False

    async def next_event(self) -> ChangeEvent:
        """Wait for the next event.

        Returns:
            The decoded event, or StreamClosed once the server ends the body.
        """
        if self._closed:
            return StreamClosed()
        while True:
            try:
                line = await anext(self._lines)
            except StopAsyncIteration:
                return StreamClosed()
            if line.strip():
                return decode_event(line)

    async def close(self) -> None:
        """Close the underlying response."""
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class KubernetesClient:
    """Async HTTP client for the Kubernetes API server."""

    def __init__(
        self,
        config: ServerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: API server URL, token and TLS settings.
            transport: Optional transport override.
        """
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            headers={"Accept": "application/json", **config.headers},
            verify=config.verify,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> KubernetesClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    def source(self, resource_type: ResourceType) -> KubernetesSource:
        """Get a ResourceSource for a collection."""
        return KubernetesSource(self, resource_type)

    async def list(self, resource_type: ResourceType) -> ListResult:
        """List a collection.

        Returns:
            Items and the list's resourceVersion.

        Raises:
            APIError: If the request fails.
        """
        response = check_response(
            await self._client.get(collection_path(resource_type))
        )
        data: dict[str, Any] = response.json()
        items = data.get("items") or []
        resource_version = (data.get("metadata") or {}).get("resourceVersion", "")
        return ListResult(items=items, resource_version=resource_version)

    async def watch(
        self,
        resource_type: ResourceType,
        resource_version: str,
    ) -> KubernetesWatch:
        """Open a watch on a collection.

        Args:
            resource_type: Collection to watch.
            resource_version: Token from the preceding list.

        Returns:
            The open event stream. The caller must close it.

        Raises:
            APIError: If the server rejects the watch.
        """
        request = self._client.build_request(
            "GET",
            collection_path(resource_type),
            params={
                "watch": "1",
                "resourceVersion": resource_version,
                "timeoutSeconds": str(WATCH_TIMEOUT_SECONDS),
            },
            timeout=httpx.Timeout(
                self._config.timeout, read=WATCH_TIMEOUT_SECONDS + WATCH_READ_SLACK
            ),
        )
        response = await self._client.send(request, stream=True)
        if response.status_code >= 400:
            try:
                await response.aread()
                check_response(response)
            finally:
                await response.aclose()
        return KubernetesWatch(response)


class KubernetesSource:
    """List/watch API of one resource collection."""

    def __init__(self, client: KubernetesClient, resource_type: ResourceType) -> None:
        self._client = client
        self._resource_type = resource_type

    async def list(self) -> ListResult:
        return await self._client.list(self._resource_type)

    async def watch(self, resource_version: str) -> KubernetesWatch:
        return await self._client.watch(self._resource_type, resource_version)
