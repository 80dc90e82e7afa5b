"""Asynchronous HTTP client shared by all stores.

This module provides :class:`CloudClient`, a thin wrapper around
:class:`httpx.AsyncClient` that applies the request settings from
:class:`~ccauth.models.Settings` and maps transport failures to
:class:`~ccauth.exceptions.NetworkError`.

Unlike a general purpose API client it does not retry: every store decides
for itself whether a failure is worth another attempt, and none currently
does. HTTP error statuses are returned to the caller, which knows whether a
400 means "bad password" or "bad descriptor"; :func:`error_detail` extracts
a short description for logging.

See Also:
    :mod:`ccauth.stores` for the callers.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from ccauth.exceptions import NetworkError
from ccauth.models import Settings


class CloudClient:
    """Asynchronous HTTP client for instance and identity provider calls.

    Must be used as an async context manager. URLs are always absolute,
    since a single client talks to the instance, its config endpoint and
    the identity provider.

    Args:
        settings: Settings supplying the request timeout and SSL verification.
        transport: Optional transport override (tests pass an
            :class:`httpx.MockTransport`).

    Example::

        async with CloudClient(settings) as client:
            response = await client.get("https://cc.example.com/config.json")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or Settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> CloudClient:
        config = self._settings.request
        self._client = httpx.AsyncClient(
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request and return the response whatever its status.

        Args:
            method: HTTP method.
            url: Absolute URL.
            headers: Extra request headers.
            data: Form-encoded body (``application/x-www-form-urlencoded``).

        Raises:
            NetworkError: On connection, timeout or other transport failures.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        kwargs: dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": {"Accept": "application/json", **(headers or {})},
        }
        if data is not None:
            kwargs["data"] = data

        try:
            return await self._client.request(**kwargs)
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send an async GET request."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send an async POST request."""
        return await self.request("POST", url, **kwargs)


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first. If that fails, returns the raw
    text. Returns ``None`` for responses with no content.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def error_detail(response: httpx.Response) -> str:
    """Return a one-line description of an error response, for logs."""
    data = extract_response_data(response)
    if isinstance(data, dict):
        msg = (
            data.get("error_description")
            or data.get("message")
            or data.get("error")
            or data.get("detail")
            or ""
        )
    elif data is None:
        msg = ""
    else:
        msg = str(data)[:200]

    prefix = f"HTTP {response.status_code}"
    return f"{prefix}: {msg}" if msg else prefix
