"""Shared httpx plumbing for hosted collaborator APIs."""

from __future__ import annotations

from collections.abc import Mapping

import httpx

from lingobus_schemas.primitives import JsonValue

DEFAULT_TIMEOUT_S = 30.0


class HttpCollaborator:
    """Base for adapters that call a JSON HTTP API.

    An injected ``httpx.AsyncClient`` is reused and left open; without one a
    short-lived client is created for each request.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the collaborator.

        Args:
            base_url: API base URL without a trailing slash.
            timeout_s: Request timeout in seconds.
            http_client: Optional pre-configured HTTP client for dependency
                injection.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._http_client = http_client

    async def _post(
        self,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: JsonValue | None = None,
        data: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> dict[str, JsonValue]:
        """POST to ``base_url + path`` and return the decoded JSON object.

        Raises:
            httpx.HTTPError: On transport failures and non-2xx statuses.
            ValueError: If the body is not a JSON object.
        """
        url = f"{self._base_url}{path}"
        if self._http_client is not None:
            response = await self._http_client.post(
                url, params=params, json=json, data=data, auth=auth
            )
        else:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                response = await client.post(
                    url, params=params, json=json, data=data, auth=auth
                )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object from {url}")
        return payload


def describe_http_error(exc: Exception) -> str:
    """Return a one-line description of an HTTP or decoding failure."""
    if isinstance(exc, httpx.HTTPStatusError):
        url = exc.request.url.copy_remove_param("key")
        return f"HTTP {exc.response.status_code} from {url}"
    return str(exc) or type(exc).__name__
