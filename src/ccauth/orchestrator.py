"""Login orchestrator -- ties the stores into one login flow.

:class:`LoginOrchestrator` owns the :class:`~ccauth.auth.session.Session`
and the four stores, and lends the session to one store at a time. It
exposes the two user intents of the login form:

* :meth:`~LoginOrchestrator.handle_access_endpoint_change` -- "access this
  instance": canonicalize and remember the URL, drop everything known about
  the previous instance, and load the new instance's config. When that
  config says SSO is required, the browser leg starts on its own.
* :meth:`~LoginOrchestrator.handle_login` -- "sign in": either refresh the
  cluster data of an unchanged session (fast path) or reset and start a
  fresh basic or SSO login (slow path).

SSO redirects come back through :attr:`~LoginOrchestrator.dispatcher`;
:meth:`~LoginOrchestrator.handle_oauth_callback` completes the exchange
and loads the cluster data.

Stores are chained by observers and an intent flag rather than by direct
calls, so reloading the config (e.g. on startup) never opens a browser by
itself: only an explicit access request does.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from ccauth.auth.session import Session
from ccauth.browser import BrowserLauncher, open_external
from ccauth.client.async_client import CloudClient
from ccauth.deeplink import DeepLinkDispatcher, DeepLinkEvent
from ccauth.models import CloudConfig, OAuthCallback, OAuthCodeEvent, Preferences, Settings
from ccauth.netutil import normalize_url
from ccauth.stores import (
    BasicAuthStore,
    ClusterDataStore,
    ConfigStore,
    SsoStore,
    StoreState,
)

logger = logging.getLogger(__name__)


class LoginOrchestrator:
    """Decision logic for accessing an instance and signing in to it.

    Args:
        client: Open HTTP client shared by all stores.
        settings: Client ID, redirect URI and request settings.
        preferences: Remembered preferences; ``cloud_url`` is the last
            accessed instance.
        persist_preferences: Called with *preferences* whenever they change.
        launcher: Opens the SSO authorization URL in the external browser.
        session: Existing session to resume; a blank one by default.

    Attributes:
        url: Instance URL currently entered in the form.
        username: Username currently entered in the form.
        password: Password currently entered in the form.
        access_requested: Set by an explicit access request, consumed by the
            next completed config load.
    """

    def __init__(
        self,
        client: CloudClient,
        settings: Optional[Settings] = None,
        preferences: Optional[Preferences] = None,
        persist_preferences: Optional[Callable[[Preferences], None]] = None,
        launcher: BrowserLauncher = open_external,
        session: Optional[Session] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.preferences = preferences or Preferences()
        self._persist_preferences = persist_preferences
        self.session = session or Session()

        self.config_store = ConfigStore(client, self.settings)
        self.basic_auth_store = BasicAuthStore(client, self.settings)
        self.sso_store = SsoStore(client, self.settings, launcher)
        self.cluster_data_store = ClusterDataStore(client, self.settings)
        self.dispatcher = DeepLinkDispatcher()

        self.url = self.preferences.cloud_url or ""
        self.username = self.session.username or ""
        self.password = self.session.password or ""
        self.access_requested = False
        self._tasks: set[asyncio.Task] = set()

        self.config_store.subscribe(self._on_config_change)
        self.dispatcher.subscribe(self._on_deep_link)

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> Optional[CloudConfig]:
        return self.config_store.config

    @property
    def cloud_url(self) -> Optional[str]:
        """The remembered (last accessed) instance URL."""
        return self.preferences.cloud_url

    @property
    def loading(self) -> bool:
        """``True`` while any store is loading, including an SSO redirect wait."""
        return any(
            store.loading
            for store in (
                self.config_store,
                self.basic_auth_store,
                self.sso_store,
                self.cluster_data_store,
            )
        )

    # ------------------------------------------------------------------ #
    # User intents
    # ------------------------------------------------------------------ #

    async def handle_access_endpoint_change(self, url: str) -> bool:
        """Access the instance at *url*, forgetting the previous one.

        Returns:
            ``False`` if the request was refused (something is loading or
            the URL is empty).
        """
        if self.loading:
            logger.warning("Ignoring access request for %s while loading", url)
            return False
        norm_url = normalize_url(url)
        if not norm_url:
            logger.warning("Ignoring access request with an empty URL")
            return False

        self.url = norm_url
        self.access_requested = True

        self.basic_auth_store.reset()
        self.sso_store.reset()
        self.cluster_data_store.reset()

        # credentials for another instance are useless here
        self.username = ""
        self.password = ""
        self.session.reset_credentials()
        self.session.reset_tokens()
        self.session.cloud_url = norm_url

        self.preferences.cloud_url = norm_url
        self._save_preferences()

        # an SSO instance starts its login from _on_config_change
        await self.config_store.load(norm_url)
        return True

    async def handle_login(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> bool:
        """Sign in, or only refresh cluster data if nothing relevant changed.

        Args:
            username: New form username, if it changed.
            password: New form password, if it changed.

        Returns:
            ``False`` if the request was refused: something is loading, the
            instance config is not loaded, or a basic-auth instance is
            missing the username or password.
        """
        if username is not None:
            self.username = username
        if password is not None:
            self.password = password

        if self.loading:
            logger.warning("Ignoring login request while loading")
            return False
        config = self.config
        if config is None or self.config_store.error is not None:
            logger.warning("Ignoring login request: instance config is not loaded")
            return False
        if not config.sso_required and not (self.url and self.username and self.password):
            logger.warning("Ignoring login request: URL, username and password are required")
            return False

        if self._session_unchanged():
            logger.info("Session unchanged; refreshing cluster data only")
            await self._load_clusters()
            return True

        self.basic_auth_store.reset()
        self.sso_store.reset()
        self.cluster_data_store.reset()
        await self._start_login(config)
        return True

    async def handle_oauth_callback(self, callback: OAuthCallback) -> StoreState:
        """Complete a pending SSO authorization and load cluster data.

        Callbacks that arrive with no authorization pending are ignored.
        """
        config = self.config
        if not self.sso_store.awaiting_redirect or config is None:
            logger.debug("Ignoring OAuth callback: no SSO authorization pending")
            return self.sso_store.state

        state = await self.sso_store.complete_authorization(
            callback, self.url, config, self.session
        )
        if state.succeeded:
            self.username = self.session.username or ""
            self.password = ""
            await self._load_clusters()
        return state

    async def resume(self) -> bool:
        """Resume an existing valid session without signing in again.

        Returns:
            ``True`` if cluster data was loaded with the existing session.
        """
        if self.loading or not self.session.is_valid() or self.session.cloud_url != self.url:
            return False
        if self.config is None:
            await self.load_config_if_needed()
            if self.config is None:
                return False
        if self.session.uses_sso:
            self.sso_store.set_authorized()
        await self._load_clusters()
        return self.cluster_data_store.state.succeeded

    async def load_config_if_needed(self) -> None:
        """Load the remembered instance's config if it is not loaded yet.

        Unlike an access request this never starts an SSO login.
        """
        cloud_url = self.cloud_url
        if cloud_url and not self.config_store.loading and not self.config_store.loaded:
            await self.config_store.load(cloud_url)

    def abandon_sso(self) -> bool:
        """Give up waiting for the SSO redirect.

        The store returns to Idle; a redirect that arrives later is ignored.
        """
        return self.sso_store.abandon()

    def dispatch(self, uri: str) -> Optional[DeepLinkEvent]:
        """Feed an inbound protocol URI to the dispatcher."""
        return self.dispatcher.dispatch(uri)

    async def wait_for_callbacks(self) -> None:
        """Wait until callbacks scheduled by :meth:`dispatch` have been handled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _session_unchanged(self) -> bool:
        # Every Session field that affects validity must be compared here,
        # or the fast path may refresh with stale credentials.
        session = self.session
        return (
            self.cluster_data_store.state.succeeded
            and self.url == self.cloud_url
            and session.cloud_url == self.url
            and session.is_valid()
            and self.username == session.username
            and (session.uses_sso or self.password == session.password)
        )

    def _prepare_session(self, config: CloudConfig) -> None:
        session = self.session
        session.reset_credentials()
        session.reset_tokens()
        session.cloud_url = self.url
        session.uses_sso = config.sso_required
        if not config.sso_required:
            session.username = self.username
            session.password = self.password

    async def _start_login(self, config: CloudConfig) -> None:
        self._prepare_session(config)
        if config.sso_required:
            self.sso_store.start_authorization(config)
            return

        state = await self.basic_auth_store.exchange(
            self.url, self.username, self.password, self.session, config
        )
        if state.succeeded:
            await self._load_clusters()

    async def _load_clusters(self) -> None:
        config = self.config
        if config is None:
            return
        await self.cluster_data_store.load(self.url, config, self.session)

    def _on_config_change(self, state: StoreState) -> None:
        if not state.loaded or not self.access_requested:
            return
        # the intent is consumed by the load it triggered, whatever its outcome
        self.access_requested = False
        config = state.data
        if state.error is None and config is not None and config.sso_required:
            self._prepare_session(config)
            self.sso_store.start_authorization(config)

    def _on_deep_link(self, event: DeepLinkEvent) -> None:
        if not isinstance(event, OAuthCodeEvent):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Dropping OAuth callback: no running event loop")
            return
        task = loop.create_task(self.handle_oauth_callback(event.callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _save_preferences(self) -> None:
        if self._persist_preferences is None:
            return
        try:
            self._persist_preferences(self.preferences)
        except OSError as exc:
            logger.warning("Failed to save preferences: %s", exc)
