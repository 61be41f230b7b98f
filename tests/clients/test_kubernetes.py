"""Tests for the Kubernetes list/watch client."""

from __future__ import annotations

import json

import pytest

from opasync.clients.errors import APIError, AuthenticationError, NotFoundError
from opasync.clients.kubernetes import (
    KubernetesClient,
    collection_path,
    WATCH_READ_SLACK,
    WATCH_TIMEOUT_SECONDS,
    decode_event,
)
from opasync.core.config import ResourceType, ServerConfig
from opasync.sync.types import Added, Deleted, Modified, SourceErrorEvent, StreamClosed

PODS = ResourceType.parse("v1/pods")
DEPLOYMENTS = ResourceType.parse("apps/v1/deployments")


def make_config(server_url: str = "http://kube", token: str = "token123") -> ServerConfig:
    """Create a ServerConfig for testing."""
    return ServerConfig(server_url=server_url, token=token)


def pod(name: str, namespace: str = "default") -> dict[str, object]:
    return {"kind": "Pod", "metadata": {"name": name, "namespace": namespace}}


def watch_body(*events: tuple[str, object]) -> bytes:
    return "".join(
        json.dumps({"type": event_type, "object": obj}) + "\n"
        for event_type, obj in events
    ).encode()


class TestCollectionPath:
    """Tests for collection_path."""

    def test_core_group(self) -> None:
        """Core group resources live under /api."""
        assert collection_path(PODS) == "/api/v1/pods"

    def test_named_group(self) -> None:
        """Named groups live under /apis/<group>."""
        assert collection_path(DEPLOYMENTS) == "/apis/apps/v1/deployments"


class TestDecodeEvent:
    """Tests for decode_event."""

    @pytest.mark.parametrize(
        ("event_type", "event_cls"),
        [("ADDED", Added), ("MODIFIED", Modified), ("DELETED", Deleted)],
    )
    def test_object_events(self, event_type: str, event_cls: type) -> None:
        """Object events should carry the decoded object."""
        event = decode_event(json.dumps({"type": event_type, "object": pod("a")}))
        assert isinstance(event, event_cls)
        assert event.object == pod("a")

    def test_error_event_with_status(self) -> None:
        """ERROR events should carry the Status code and message."""
        status = {"kind": "Status", "code": 410, "message": "too old resource version"}
        event = decode_event(json.dumps({"type": "ERROR", "object": status}))
        assert event == SourceErrorEvent("410 too old resource version")

    def test_error_event_without_code(self) -> None:
        """A Status without a code should carry the message alone."""
        event = decode_event(json.dumps({"type": "ERROR", "object": {"message": "Gone"}}))
        assert event == SourceErrorEvent("Gone")

    def test_error_event_without_message(self) -> None:
        """ERROR events without a message should carry the raw object."""
        event = decode_event(json.dumps({"type": "ERROR", "object": {"code": 500}}))
        assert event == SourceErrorEvent({"code": 500})

    def test_unknown_type_closes_stream(self) -> None:
        """Unrecognized types should end the stream."""
        event = decode_event(json.dumps({"type": "BOOKMARK", "object": {}}))
        assert isinstance(event, StreamClosed)

    @pytest.mark.parametrize("line", ["not json", "[1, 2]"])
    def test_invalid_line_raises(self, line: str) -> None:
        """Malformed lines should raise APIError."""
        with pytest.raises(APIError):
            decode_event(line)


class TestList:
    """Tests for KubernetesClient.list."""

    @pytest.mark.asyncio
    async def test_list_core_group(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return items in order with the list's resourceVersion."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods",
            match_headers={"Authorization": "Bearer token123"},
            json={
                "kind": "PodList",
                "metadata": {"resourceVersion": "100"},
                "items": [pod("b"), pod("a")],
            },
        )

        async with KubernetesClient(make_config()) as client:
            result = await client.list(PODS)

        assert result.resource_version == "100"
        assert [item["metadata"]["name"] for item in result.items] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_list_named_group_via_source(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A bound source should list its own collection."""
        httpx_mock.add_response(
            url="http://kube/apis/apps/v1/deployments",
            json={"metadata": {"resourceVersion": "7"}, "items": None},
        )

        async with KubernetesClient(make_config()) as client:
            result = await client.source(DEPLOYMENTS).list()

        assert result.resource_version == "7"
        assert list(result.items) == []

    @pytest.mark.asyncio
    async def test_list_unauthorized(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """401 should raise AuthenticationError."""
        httpx_mock.add_response(url="http://kube/api/v1/pods", status_code=401, json={})

        async with KubernetesClient(make_config()) as client:
            with pytest.raises(AuthenticationError):
                await client.list(PODS)

    @pytest.mark.asyncio
    async def test_list_not_found(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """404 should raise NotFoundError."""
        httpx_mock.add_response(
            url="http://kube/apis/apps/v1/deployments",
            status_code=404,
            json={"kind": "Status", "message": "the server could not find the requested resource"},
        )

        async with KubernetesClient(make_config()) as client:
            with pytest.raises(NotFoundError, match="could not find"):
                await client.list(DEPLOYMENTS)

    @pytest.mark.asyncio
    async def test_list_server_error(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """5xx should raise APIError with the status code."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods",
            status_code=503,
            text="unavailable",
        )

        async with KubernetesClient(make_config()) as client:
            with pytest.raises(APIError) as exc_info:
                await client.list(PODS)

        assert exc_info.value.status_code == 503
        assert "unavailable" in str(exc_info.value)


class TestWatch:
    """Tests for KubernetesClient.watch and KubernetesWatch."""

    @pytest.mark.asyncio
    async def test_watch_yields_events_then_closes(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should decode each line in order, then report StreamClosed."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods?watch=1&resourceVersion=100&timeoutSeconds=300",
            content=watch_body(("ADDED", pod("b")), ("DELETED", pod("a"))),
        )

        async with KubernetesClient(make_config()) as client:
            stream = await client.watch(PODS, "100")
            first = await stream.next_event()
            second = await stream.next_event()
            third = await stream.next_event()
            await stream.close()

        assert first == Added(pod("b"))
        assert second == Deleted(pod("a"))
        assert isinstance(third, StreamClosed)

    @pytest.mark.asyncio
    async def test_watch_skips_blank_lines(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Blank keep-alive lines should be ignored."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods?watch=1&resourceVersion=5&timeoutSeconds=300",
            content=b"\n" + watch_body(("MODIFIED", pod("a"))) + b"\n",
        )

        async with KubernetesClient(make_config()) as client:
            stream = await client.source(PODS).watch("5")
            event = await stream.next_event()
            closed = await stream.next_event()
            await stream.close()

        assert event == Modified(pod("a"))
        assert isinstance(closed, StreamClosed)

    @pytest.mark.asyncio
    async def test_watch_error_event(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """An ERROR line should become a SourceErrorEvent."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods?watch=1&resourceVersion=1&timeoutSeconds=300",
            content=watch_body(("ERROR", {"code": 410, "message": "Gone"})),
        )

        async with KubernetesClient(make_config()) as client:
            stream = await client.watch(PODS, "1")
            event = await stream.next_event()
            await stream.close()

        assert event == SourceErrorEvent("410 Gone")

    @pytest.mark.asyncio
    async def test_watch_rejected(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A failed watch request should raise APIError."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods?watch=1&resourceVersion=1&timeoutSeconds=300",
            status_code=500,
            json={"message": "internal error"},
        )

        async with KubernetesClient(make_config()) as client:
            with pytest.raises(APIError) as exc_info:
                await client.watch(PODS, "1")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_closed_stream_reports_closed(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """next_event after close should return StreamClosed; close is idempotent."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods?watch=1&resourceVersion=1&timeoutSeconds=300",
            content=watch_body(("ADDED", pod("a"))),
        )

        async with KubernetesClient(make_config()) as client:
            stream = await client.watch(PODS, "1")
            await stream.close()
            await stream.close()
            event = await stream.next_event()

        assert isinstance(event, StreamClosed)

    @pytest.mark.asyncio
    async def test_watch_is_bounded(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """The watch should ask the server to end it and bound the read wait."""
        httpx_mock.add_response(
            url="http://kube/api/v1/pods?watch=1&resourceVersion=1&timeoutSeconds=300",
            content=b"",
        )

        async with KubernetesClient(make_config()) as client:
            stream = await client.watch(PODS, "1")
            event = await stream.next_event()
            await stream.close()

        request = httpx_mock.get_request()
        assert request.url.params["timeoutSeconds"] == str(WATCH_TIMEOUT_SECONDS)
        read_timeout = request.extensions["timeout"]["read"]
        assert read_timeout == WATCH_TIMEOUT_SECONDS + WATCH_READ_SLACK
        assert isinstance(event, StreamClosed)
