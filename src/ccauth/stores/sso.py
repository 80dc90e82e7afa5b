"""SSO store -- two-phase OAuth2 authorization-code flow.

The flow spans a process ccauth does not control (the user's browser), so
it is split in two calls with nothing but the store state in between:

1. :meth:`SsoStore.start_authorization` builds the authorization URL (with
   an anti-forgery ``state`` and a PKCE challenge) and hands it to the
   browser launcher. The store stays Loading: it is now waiting for the
   external redirect, with no timeout.
2. :meth:`SsoStore.complete_authorization` is fed the redirect parameters
   by the deep-link dispatcher. It exchanges the code for tokens, reads
   ``preferred_username`` from the identity token (payload only, the
   signature is not checked) and replaces the session credentials in one
   step.

States::

    Idle --start--> AwaitingExternalRedirect --complete--> Authorized
                                              \\--------> Error

A callback that arrives when no authorization is pending (a duplicate, or a
late one after the flow resolved) is ignored. Every failure ends in the same
generic :class:`~ccauth.exceptions.AuthCodeError`; the provider's own error
text only goes to the log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ccauth.auth.client import AuthClient
from ccauth.auth.session import Session
from ccauth.auth.tokens import decode_jwt_payload, generate_pkce_pair, generate_state
from ccauth.browser import BrowserLauncher, open_external
from ccauth.client.async_client import CloudClient
from ccauth.exceptions import AuthCodeError, BasicOnlyError, CcauthError
from ccauth.models import CloudConfig, OAuthCallback, Settings, TokenSet
from ccauth.stores.base import AsyncStore, StoreState

logger = logging.getLogger(__name__)

AUTH_CODE_MESSAGE = "Failed to sign in with single sign-on. Please try again."
BASIC_ONLY_MESSAGE = (
    "This instance does not use single sign-on. Sign in with a username and password."
)
BROWSER_MESSAGE = "Unable to open the browser to sign in."


@dataclass
class _PendingAuthorization:
    generation: int
    state: str
    code_verifier: str


class SsoStore(AsyncStore):
    """Drives the authorization-code flow for one login attempt.

    On success :attr:`data` is the username taken from the identity token.

    Args:
        client: Open HTTP client used for the code exchange.
        settings: Settings supplying client ID, redirect URI and scopes.
        launcher: Callable that opens a URL in the external browser.
    """

    name = "sso"

    def __init__(
        self,
        client: CloudClient,
        settings: Settings,
        launcher: BrowserLauncher = open_external,
    ) -> None:
        super().__init__()
        self._client = client
        self._settings = settings
        self._launcher = launcher
        self._pending: Optional[_PendingAuthorization] = None

    @property
    def awaiting_redirect(self) -> bool:
        """``True`` between a successful start and the matching callback."""
        return self.loading and self._pending is not None

    # ------------------------------------------------------------------ #
    # Phase 1
    # ------------------------------------------------------------------ #

    def start_authorization(self, config: CloudConfig) -> None:
        """Open the browser on the provider's authorization page.

        Does nothing while already loading. Against an instance that does
        not require SSO, completes immediately with
        :class:`~ccauth.exceptions.BasicOnlyError` and makes no request.
        """
        generation = self._begin()
        if generation is None:
            logger.debug("SSO authorization already in progress; ignoring start")
            return

        if not config.sso_required:
            self._commit(generation, error=BasicOnlyError(BASIC_ONLY_MESSAGE))
            return

        state = generate_state()
        code_verifier, code_challenge = generate_pkce_pair()
        auth_client = AuthClient(self._client, self._settings, config)
        try:
            auth_url = auth_client.get_sso_auth_url(state, code_challenge)
        except BasicOnlyError as exc:
            logger.error("Cannot start SSO authorization: %s", exc)
            self._commit(generation, error=BasicOnlyError(BASIC_ONLY_MESSAGE))
            return

        self._pending = _PendingAuthorization(generation, state, code_verifier)
        try:
            self._launcher(auth_url)
        except Exception:
            logger.exception("Failed to open browser for SSO authorization")
            self._pending = None
            self._commit(generation, error=CcauthError(BROWSER_MESSAGE))
            return

        logger.info("Waiting for SSO redirect")

    # ------------------------------------------------------------------ #
    # Phase 2
    # ------------------------------------------------------------------ #

    async def complete_authorization(
        self,
        callback: OAuthCallback,
        url: str,
        config: CloudConfig,
        session: Session,
    ) -> StoreState:
        """Exchange the redirect's authorization code and update *session*.

        Ignored unless an authorization is pending. On failure the session
        is left exactly as it was.

        Args:
            callback: Redirect parameters from the identity provider.
            url: Instance URL the session belongs to.
            config: The instance's capability descriptor.
            session: Session to update; borrowed only for the final write.
        """
        pending = self._pending
        if not self.loading or pending is None:
            logger.debug("Ignoring OAuth callback: no SSO authorization is pending")
            return self._state
        # consumed: a duplicate callback during the exchange is ignored
        self._pending = None

        try:
            username, tokens = await self._exchange(callback, pending, url, config)
            if pending.generation != self._generation or not self.loading:
                logger.debug("SSO authorization was abandoned; discarding tokens")
                return self._state
            with session.lend(self.name) as borrowed:
                borrowed.cloud_url = url
                borrowed.password = None
                borrowed.username = username
                borrowed.tokens = tokens
                borrowed.uses_sso = True
        except CcauthError as exc:
            logger.error("SSO authorization failed: %s", exc)
            self._commit(pending.generation, error=AuthCodeError(AUTH_CODE_MESSAGE))
            return self._state
        except Exception:
            logger.exception("SSO authorization failed unexpectedly")
            self._commit(pending.generation, error=AuthCodeError(AUTH_CODE_MESSAGE))
            return self._state

        logger.info("Signed in to %s as %r with SSO", url, username)
        self._commit(pending.generation, data=username)
        return self._state

    async def _exchange(
        self,
        callback: OAuthCallback,
        pending: _PendingAuthorization,
        url: str,
        config: CloudConfig,
    ) -> tuple[str, TokenSet]:
        # some providers do not echo state back; only a mismatch is fatal
        if callback.state is not None and callback.state != pending.state:
            raise AuthCodeError("OAuth callback state does not match the authorization request")

        if not callback.code:
            reason = callback.error or callback.error_description or "unknown"
            if callback.error and callback.error_description:
                reason = f"{callback.error} ({callback.error_description})"
            raise AuthCodeError(f"Authorization failed: {reason}")

        auth_client = AuthClient(self._client, self._settings, config, cloud_url=url)
        body = await auth_client.get_token(
            auth_code=callback.code, code_verifier=pending.code_verifier
        )

        id_token = body.get("id_token")
        if not id_token:
            raise AuthCodeError("Token response has no id_token")
        claims = decode_jwt_payload(id_token)
        username = claims.get("preferred_username")
        if not username:
            raise AuthCodeError("Failed to get username from token JWT")

        return username, TokenSet.from_response(body)

    # ------------------------------------------------------------------ #
    # Other transitions
    # ------------------------------------------------------------------ #

    def set_authorized(self) -> bool:
        """Mark the store Loaded without any network activity.

        Used to resume silently with a session that is already valid.

        Returns:
            ``False`` while loading.
        """
        if self.loading:
            return False
        self._set(loaded=True, error=None)
        return True

    def reset(self) -> bool:
        if not self.loading:
            self._pending = None
        return super().reset()

    def abandon(self) -> bool:
        self._pending = None
        return super().abandon()
