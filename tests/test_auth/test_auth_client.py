"""Tests for the identity provider client."""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, parse_qsl, urlsplit

import httpx
import pytest

from ccauth.auth.client import AuthClient
from ccauth.client.async_client import CloudClient
from ccauth.exceptions import AuthCodeError, BasicOnlyError, CredentialError, NetworkError
from ccauth.models import CloudConfig, Settings

ISSUER = "https://kc.example.com/auth/realms/iam"


def _config(**kwargs: Any) -> CloudConfig:
    defaults: dict[str, Any] = {"keycloakLogin": True, "keycloakUrl": ISSUER}
    defaults.update(kwargs)
    return CloudConfig.model_validate(defaults)


def _transport_from_handler(handler):
    """Create an httpx.MockTransport from a handler function."""
    return httpx.MockTransport(handler)


class TestEndpoints:
    def test_client_id_prefers_instance_config(self) -> None:
        auth = AuthClient(CloudClient(), Settings(), _config(clientId="k8s"))
        assert auth.client_id == "k8s"

    def test_client_id_falls_back_to_settings(self) -> None:
        auth = AuthClient(CloudClient(), Settings(client_id="mine"), _config())
        assert auth.client_id == "mine"

    def test_token_url_from_issuer(self) -> None:
        auth = AuthClient(CloudClient(), Settings(), _config())
        assert auth.token_url == f"{ISSUER}/protocol/openid-connect/token"

    def test_token_url_falls_back_to_instance(self) -> None:
        config = CloudConfig()
        auth = AuthClient(CloudClient(), Settings(), config, cloud_url="https://cc.example.com/")
        assert auth.token_url == "https://cc.example.com/oauth/token"


class TestSsoAuthUrl:
    def test_builds_authorization_request(self) -> None:
        auth = AuthClient(CloudClient(), Settings(), _config(clientId="lens"))
        url = auth.get_sso_auth_url("st4te", code_challenge="chal")

        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
            f"{ISSUER}/protocol/openid-connect/auth"
        )
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        assert query == {
            "response_type": "code",
            "client_id": "lens",
            "redirect_uri": "lens://extensions/ccauth/oauth/code",
            "state": "st4te",
            "scope": "openid",
            "code_challenge": "chal",
            "code_challenge_method": "S256",
        }

    def test_explicit_authorization_endpoint(self) -> None:
        config = _config(authorizationEndpoint="https://idp.example.com/authorize")
        url = AuthClient(CloudClient(), Settings(), config).get_sso_auth_url("s")
        assert url.startswith("https://idp.example.com/authorize?")
        assert "code_challenge" not in url

    def test_no_endpoint_raises_basic_only(self) -> None:
        auth = AuthClient(CloudClient(), Settings(), CloudConfig(keycloakLogin=True))
        with pytest.raises(BasicOnlyError):
            auth.get_sso_auth_url("s")


class TestGrants:
    @pytest.mark.asyncio
    async def test_password_grant(self) -> None:
        seen: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(parse_qsl(request.content.decode()))
            return httpx.Response(200, json={"access_token": "at"})

        async with CloudClient(transport=_transport_from_handler(handler)) as client:
            auth = AuthClient(client, Settings(), _config())
            body = await auth.get_token(username="admin", password="secret")

        assert body["access_token"] == "at"
        assert seen["grant_type"] == "password"
        assert seen["username"] == "admin"
        assert seen["password"] == "secret"
        assert seen["scope"] == "openid"

    @pytest.mark.asyncio
    async def test_authorization_code_grant_sends_verifier(self) -> None:
        seen: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(parse_qsl(request.content.decode()))
            return httpx.Response(200, json={"access_token": "at", "id_token": "x.y.z"})

        async with CloudClient(transport=_transport_from_handler(handler)) as client:
            auth = AuthClient(client, Settings(), _config())
            await auth.get_token(auth_code="abc", code_verifier="ver")

        assert seen["grant_type"] == "authorization_code"
        assert seen["code"] == "abc"
        assert seen["code_verifier"] == "ver"
        assert seen["redirect_uri"] == "lens://extensions/ccauth/oauth/code"

    @pytest.mark.asyncio
    async def test_rejected_password_raises_credential_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error_description": "Invalid user credentials"})

        async with CloudClient(transport=_transport_from_handler(handler)) as client:
            auth = AuthClient(client, Settings(), _config())
            with pytest.raises(CredentialError, match="Invalid user credentials"):
                await auth.get_token(username="admin", password="wrong")

    @pytest.mark.asyncio
    async def test_rejected_code_raises_auth_code_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        async with CloudClient(transport=_transport_from_handler(handler)) as client:
            auth = AuthClient(client, Settings(), _config())
            with pytest.raises(AuthCodeError):
                await auth.get_token(auth_code="stale")

    @pytest.mark.asyncio
    async def test_server_error_raises_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        async with CloudClient(transport=_transport_from_handler(handler)) as client:
            auth = AuthClient(client, Settings(), _config())
            with pytest.raises(NetworkError, match="503"):
                await auth.get_token(username="a", password="b")

    @pytest.mark.asyncio
    async def test_missing_access_token_rejected(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "bearer"})

        async with CloudClient(transport=_transport_from_handler(handler)) as client:
            auth = AuthClient(client, Settings(), _config())
            with pytest.raises(CredentialError, match="access_token"):
                await auth.get_token(username="a", password="b")

    @pytest.mark.asyncio
    async def test_refresh_grant(self) -> None:
        seen: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(parse_qsl(request.content.decode()))
            return httpx.Response(200, json={"access_token": "new"})

        async with CloudClient(transport=_transport_from_handler(handler)) as client:
            auth = AuthClient(client, Settings(), _config())
            body = await auth.refresh_token("rt")

        assert body == {"access_token": "new"}
        assert seen["grant_type"] == "refresh_token"
        assert seen["refresh_token"] == "rt"
