"""HTTP client module for ccauth.

Provides :class:`CloudClient`, a non-blocking client backed by
:class:`httpx.AsyncClient`, plus helpers for reading error responses.

Example::

    from ccauth.client import CloudClient

    async with CloudClient(settings) as client:
        resp = await client.get("https://cc.example.com/config.json")
"""

from ccauth.client.async_client import CloudClient, error_detail, extract_response_data

__all__ = ["CloudClient", "error_detail", "extract_response_data"]
