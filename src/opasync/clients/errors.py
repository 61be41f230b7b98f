"""HTTP API errors shared by the Kubernetes and OPA clients."""

from __future__ import annotations

import httpx


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication or authorization failed."""


class NotFoundError(APIError):
    """Resource not found."""


def _detail(response: httpx.Response, default: str) -> str:
    """Best-effort error message from a JSON error body.

    Kubernetes returns a Status object with ``message``; OPA returns
    ``{"code": ..., "message": ...}``.
    """
    try:
        data = response.json()
    except ValueError:
        return response.text or default
    if isinstance(data, dict):
        return str(data.get("message") or data.get("detail") or default)
    return default


def check_response(response: httpx.Response) -> httpx.Response:
    """Raise the matching APIError for a failed response.

    The response body must already be read.
    """
    if response.status_code in (401, 403):
        raise AuthenticationError(
            _detail(response, "Unauthorized"), response.status_code
        )
    if response.status_code == 404:
        raise NotFoundError(_detail(response, "Resource not found"), 404)
    if response.status_code >= 400:
        raise APIError(_detail(response, "Unknown error"), response.status_code)
    return response
