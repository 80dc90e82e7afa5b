"""Basic-auth store -- username/password login.

Exchanges a username and password for tokens with the ``password`` grant
and writes the result into the borrowed
:class:`~ccauth.auth.session.Session`. The session keeps the password
(so the login form can detect unchanged input) and ``uses_sso`` is false.
"""

from __future__ import annotations

import logging
from typing import Optional

from ccauth.auth.client import AuthClient
from ccauth.auth.session import Session
from ccauth.client.async_client import CloudClient
from ccauth.exceptions import CredentialError, NetworkError
from ccauth.models import CloudConfig, Settings, TokenSet
from ccauth.stores.base import AsyncStore, StoreState

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password."
UNREACHABLE_MESSAGE = "Unable to reach the instance to sign in. Check the URL and your connection."


class BasicAuthStore(AsyncStore):
    """Performs the password grant for one login attempt.

    On success :attr:`data` is the username that signed in.
    """

    name = "basic-auth"

    def __init__(self, client: CloudClient, settings: Settings) -> None:
        super().__init__()
        self._client = client
        self._settings = settings

    async def exchange(
        self,
        url: str,
        username: str,
        password: str,
        session: Session,
        config: Optional[CloudConfig] = None,
    ) -> StoreState:
        """Exchange *username* and *password* for tokens at *url*'s token endpoint.

        Errors are reported through the store state:
        :class:`~ccauth.exceptions.CredentialError` when the provider
        rejects the credentials, :class:`~ccauth.exceptions.NetworkError`
        when it cannot be reached.
        """
        return await self.load(
            lambda: self._exchange(url, username, password, session, config or CloudConfig())
        )

    async def _exchange(
        self,
        url: str,
        username: str,
        password: str,
        session: Session,
        config: CloudConfig,
    ) -> str:
        auth_client = AuthClient(self._client, self._settings, config, cloud_url=url)
        try:
            body = await auth_client.get_token(username=username, password=password)
        except CredentialError as exc:
            logger.error("Basic login for user %r at %s rejected: %s", username, url, exc)
            raise CredentialError(INVALID_CREDENTIALS_MESSAGE) from exc
        except NetworkError as exc:
            logger.error("Basic login for user %r at %s failed: %s", username, url, exc)
            raise NetworkError(UNREACHABLE_MESSAGE) from exc

        tokens = TokenSet.from_response(body)
        with session.lend(self.name) as borrowed:
            borrowed.cloud_url = url
            borrowed.username = username
            borrowed.password = password
            borrowed.tokens = tokens
            borrowed.uses_sso = False

        logger.info("Signed in to %s as %r", url, username)
        return username
