"""Identity provider client: authorization URLs and token endpoint grants.

:class:`AuthClient` knows the identity provider endpoints of one instance
(from its :class:`~ccauth.models.CloudConfig`) and performs the three
token endpoint grants ccauth needs:

1. ``password`` -- basic login with a username and password.
2. ``authorization_code`` -- the second leg of the SSO flow, with PKCE.
3. ``refresh_token`` -- silent renewal of an expired access token.

Error detail returned by the provider is put in the exception message so
that callers can log it; callers that surface errors to the user replace
it with a generic message.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlencode

from ccauth.client.async_client import CloudClient, error_detail
from ccauth.exceptions import (
    AuthCodeError,
    BasicOnlyError,
    CcauthError,
    CredentialError,
    NetworkError,
)
from ccauth.models import CloudConfig, Settings


class AuthClient:
    """Token endpoint client for a single instance.

    Args:
        client: Open :class:`~ccauth.client.async_client.CloudClient`.
        settings: Settings supplying the client ID, redirect URI and scopes.
        config: The instance's capability descriptor.
        cloud_url: Canonical instance URL, used to derive the token
            endpoint when the descriptor does not name one.
    """

    def __init__(
        self,
        client: CloudClient,
        settings: Settings,
        config: CloudConfig,
        cloud_url: str = "",
    ) -> None:
        self._client = client
        self._settings = settings
        self._cloud_url = cloud_url
        self._config = config

    @property
    def client_id(self) -> str:
        return self._config.client_id or self._settings.client_id

    @property
    def token_url(self) -> str:
        return self._config.token_url(self._cloud_url)

    def get_sso_auth_url(self, state: str, code_challenge: Optional[str] = None) -> str:
        """Build the authorization request URL for the browser leg.

        Args:
            state: Anti-forgery token echoed back on the redirect.
            code_challenge: Optional PKCE S256 challenge.

        Raises:
            BasicOnlyError: If the descriptor has no authorization endpoint.
        """
        authorization_url = self._config.authorization_url()
        if not authorization_url:
            raise BasicOnlyError("Instance config has no authorization endpoint")

        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self._settings.redirect_uri,
            "state": state,
        }
        if self._settings.scopes:
            params["scope"] = " ".join(self._settings.scopes)
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"

        return f"{authorization_url}?{urlencode(params)}"

    async def get_token(
        self,
        *,
        auth_code: Optional[str] = None,
        code_verifier: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> dict[str, Any]:
        """Exchange an authorization code, or a username and password, for tokens.

        Returns:
            The parsed token response containing at least ``access_token``.

        Raises:
            AuthCodeError: If a code exchange is rejected or malformed.
            CredentialError: If the password grant is rejected (HTTP 400/401).
            NetworkError: On transport failures or unexpected statuses.
        """
        if auth_code is not None:
            data: dict[str, str] = {
                "grant_type": "authorization_code",
                "code": auth_code,
                "redirect_uri": self._settings.redirect_uri,
                "client_id": self.client_id,
            }
            if code_verifier:
                data["code_verifier"] = code_verifier
            return await self._post_token(data, rejected=AuthCodeError)

        data = {
            "grant_type": "password",
            "username": username or "",
            "password": password or "",
            "client_id": self.client_id,
        }
        if self._settings.scopes:
            data["scope"] = " ".join(self._settings.scopes)
        return await self._post_token(data, rejected=CredentialError)

    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        """Renew tokens with a refresh token.

        Raises:
            CredentialError: If the refresh token is rejected.
            NetworkError: On transport failures.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
        }
        return await self._post_token(data, rejected=CredentialError)

    async def _post_token(
        self, data: dict[str, str], rejected: type[CcauthError]
    ) -> dict[str, Any]:
        response = await self._client.post(self.token_url, data=data)
        grant = data["grant_type"]

        if response.status_code in (400, 401, 403):
            raise rejected(f"Token request ({grant}) rejected: {error_detail(response)}")
        if response.status_code >= 400:
            raise NetworkError(f"Token request ({grant}) failed: {error_detail(response)}")

        try:
            token_data = response.json()
        except ValueError as exc:
            raise rejected(f"Token response ({grant}) is not JSON") from exc

        if not isinstance(token_data, dict) or "access_token" not in token_data:
            raise rejected(f"Token response ({grant}) missing 'access_token' field")

        return token_data
