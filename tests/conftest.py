"""Shared test fixtures for ccauth.

Provides a scriptable fake instance (config descriptor, identity provider
token endpoint and cluster inventory behind an :class:`httpx.MockTransport`),
isolated config environments, output state management and a CLI runner.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional
from urllib.parse import parse_qsl

import httpx
import pytest

from ccauth.client.async_client import CloudClient
from ccauth.models import Settings
from ccauth.output import OutputFormat, OutputManager, reset_output, set_output


CLOUD_URL = "https://cc.example.com"
ISSUER = "https://kc.example.com/auth/realms/iam"

_CLUSTERS_RE = re.compile(r"^/api/v1/namespaces/([^/]+)/clusters$")


def make_jwt(claims: dict[str, Any]) -> str:
    """Build an unsigned compact JWT carrying *claims*."""

    def _segment(data: dict[str, Any]) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{_segment({'alg': 'none', 'typ': 'JWT'})}.{_segment(claims)}.sig"


def cluster_item(name: str, namespace: str, ready: bool = True) -> dict[str, Any]:
    return {
        "metadata": {"name": name, "namespace": namespace, "uid": f"uid-{name}"},
        "status": {"providerStatus": {"ready": ready}},
    }


class FakeInstance:
    """Stand-in for an instance and its identity provider.

    Every attribute can be changed by a test before (or between) requests.
    All received requests are recorded in :attr:`requests`.
    """

    def __init__(self, sso: bool = False) -> None:
        self.config: Any = {
            "keycloakLogin": sso,
            "keycloakUrl": ISSUER,
            "clientId": "lens",
        }
        self.config_status = 200
        self.users = {"admin": "secret"}
        self.codes = {"good-code": "sso-user"}
        self.id_token_claims: Optional[dict[str, Any]] = None
        self.expires_in = 300
        self.namespaces = ["default", "team-a"]
        self.clusters: dict[str, list[Any]] = {
            "default": [cluster_item("mgmt", "default")],
            "team-a": [cluster_item("child", "team-a", ready=False)],
        }
        self.failing_namespaces: set[str] = set()
        self.token_status: Optional[int] = None
        self.requests: list[httpx.Request] = []

    # ------------------------------------------------------------------ #
    # Helpers for assertions
    # ------------------------------------------------------------------ #

    def count(self, path_suffix: str) -> int:
        return sum(1 for r in self.requests if r.url.path.endswith(path_suffix))

    def token_grants(self) -> list[str]:
        return [
            dict(parse_qsl(r.content.decode()))["grant_type"]
            for r in self.requests
            if r.url.path.endswith("/token")
        ]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, settings: Optional[Settings] = None) -> CloudClient:
        return CloudClient(settings or Settings(), transport=self.transport())

    def gated_client(
        self, gate: asyncio.Event, settings: Optional[Settings] = None
    ) -> CloudClient:
        """Client whose responses are held back until *gate* is set.

        Requests are still recorded as soon as they are sent.
        """

        async def handler(request: httpx.Request) -> httpx.Response:
            response = self.handler(request)
            await gate.wait()
            return response

        return CloudClient(settings or Settings(), transport=httpx.MockTransport(handler))

    async def wait_for_requests(self, count: int, timeout: float = 1.0) -> None:
        """Yield to the event loop until *count* requests have arrived."""

        async def _poll() -> None:
            while len(self.requests) < count:
                await asyncio.sleep(0)

        await asyncio.wait_for(_poll(), timeout)

    # ------------------------------------------------------------------ #
    # Routing
    # ------------------------------------------------------------------ #

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/config.json":
            if self.config_status >= 400:
                return httpx.Response(self.config_status, text="unavailable")
            if isinstance(self.config, str):
                return httpx.Response(200, text=self.config)
            return httpx.Response(200, json=self.config)

        if path.endswith("/token"):
            return self._token(request)

        if not request.headers.get("Authorization"):
            return httpx.Response(401, json={"message": "unauthorized"})

        if path == "/api/v1/namespaces":
            items = [{"metadata": {"name": ns}} for ns in self.namespaces]
            return httpx.Response(200, json={"items": items})

        match = _CLUSTERS_RE.match(path)
        if match:
            namespace = match.group(1)
            if namespace in self.failing_namespaces:
                return httpx.Response(500, json={"message": "boom"})
            return httpx.Response(200, json={"items": self.clusters.get(namespace, [])})

        return httpx.Response(404, json={"message": "not found"})

    def _token(self, request: httpx.Request) -> httpx.Response:
        if self.token_status is not None:
            return httpx.Response(self.token_status, json={"error": "server_error"})

        form = dict(parse_qsl(request.content.decode()))
        grant = form.get("grant_type")
        if grant == "password":
            if self.users.get(form.get("username", "")) != form.get("password"):
                return httpx.Response(
                    401,
                    json={"error": "invalid_grant", "error_description": "Invalid user credentials"},
                )
            return httpx.Response(200, json=self._tokens(form["username"]))

        if grant == "authorization_code":
            user = self.codes.get(form.get("code", ""))
            if user is None:
                return httpx.Response(
                    400, json={"error": "invalid_grant", "error_description": "Code not valid"}
                )
            return httpx.Response(200, json=self._tokens(user))

        if grant == "refresh_token":
            if form.get("refresh_token") != "refresh-token":
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(
                200, json={"access_token": "access-refreshed", "expires_in": 300}
            )

        return httpx.Response(400, json={"error": "unsupported_grant_type"})

    def _tokens(self, user: str) -> dict[str, Any]:
        claims = self.id_token_claims if self.id_token_claims is not None else {
            "preferred_username": user
        }
        return {
            "access_token": f"access-{user}",
            "refresh_token": "refresh-token",
            "id_token": make_jwt(claims),
            "expires_in": self.expires_in,
            "refresh_expires_in": 1800,
        }


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    The same applies to the logging handler installed by the CLI callback.
    """
    yield
    reset_output()
    ccauth_logger = logging.getLogger("ccauth")
    for handler in list(ccauth_logger.handlers):
        ccauth_logger.removeHandler(handler)
    ccauth_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Instance fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def instance() -> FakeInstance:
    """A basic-auth instance with two namespaces."""
    return FakeInstance()


@pytest.fixture
def sso_instance() -> FakeInstance:
    """An instance that requires single sign-on."""
    return FakeInstance(sso=True)


@pytest.fixture
def jwt():
    """Factory building unsigned JWTs: ``jwt({"preferred_username": "bob"})``."""
    return make_jwt


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME to a subdirectory of tmp_path so that tests never
    touch real user config, clears all CCAUTH_* environment variables and
    changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setattr("ccauth.config._is_xdg_platform", lambda: True)
    for var in [
        "CCAUTH_CLIENT_ID",
        "CCAUTH_REDIRECT_URI",
        "CCAUTH_TIMEOUT",
        "CCAUTH_PASSWORD",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
