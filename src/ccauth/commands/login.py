"""Login command -- access an instance and sign in to it.

``ccauth login`` runs the whole login flow of
:class:`~ccauth.orchestrator.LoginOrchestrator` from the terminal:

1. Access the instance: its URL is canonicalized and remembered, and its
   config descriptor loaded.
2. Sign in: with a username and password on basic-auth instances, or in
   the browser on SSO instances. For SSO the browser ends on the redirect
   URI, which the user pastes back at the prompt.
3. Print the cluster inventory of the signed-in session.

Typical workflow::

    ccauth login https://cc.example.com -u admin
    ccauth login                          # remembered instance
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

import typer

from ccauth.browser import open_external
from ccauth.client.async_client import CloudClient
from ccauth.exit_codes import EXIT_INVALID_USAGE
from ccauth.models import ClusterDataset, Preferences, Settings
from ccauth.output import error, info, print_table, success, suggest, warning
from ccauth.stores.base import AsyncStore

if TYPE_CHECKING:
    from ccauth.orchestrator import LoginOrchestrator


def _make_client(settings: Settings) -> CloudClient:
    return CloudClient(settings)


def login_command(
    url: Optional[str] = typer.Argument(
        None, help="Instance URL. Defaults to the last accessed instance."
    ),
    username: Optional[str] = typer.Option(
        None, "--username", "-u", help="Username for basic-auth instances."
    ),
    password: Optional[str] = typer.Option(
        None,
        "--password",
        envvar="CCAUTH_PASSWORD",
        help="Password for basic-auth instances. Prompted when omitted.",
    ),
) -> None:
    """Sign in to an instance and list its clusters.

    Raises:
        typer.Exit: With the exit code of the failing step (2 usage,
            3 authentication, 6 connection, 7 instance config).

    Example::

        ccauth login https://cc.example.com -u admin
        CCAUTH_PASSWORD=secret ccauth login cc.example.com -u admin
    """
    from ccauth.config import load_preferences, load_settings

    settings = load_settings()
    preferences = load_preferences()
    target = url or preferences.cloud_url
    if not target:
        error("No instance URL given and none remembered.")
        suggest("Run: ccauth login https://<instance>")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    asyncio.run(_login(settings, preferences, target, username, password))


async def _login(
    settings: Settings,
    preferences: Preferences,
    url: str,
    username: Optional[str],
    password: Optional[str],
) -> None:
    from ccauth.config import save_preferences
    from ccauth.orchestrator import LoginOrchestrator

    async with _make_client(settings) as client:
        orchestrator = LoginOrchestrator(
            client,
            settings,
            preferences,
            persist_preferences=save_preferences,
            launcher=open_external,
        )

        await orchestrator.handle_access_endpoint_change(url)
        _exit_on_error(orchestrator.config_store)
        info(f"Accessing {orchestrator.url}")

        config = orchestrator.config
        if config is not None and config.sso_required:
            if orchestrator.sso_store.awaiting_redirect:
                await _complete_sso(orchestrator)
            _exit_on_error(orchestrator.sso_store)
        else:
            if not username:
                username = typer.prompt("Username")
            if password is None:
                password = typer.prompt("Password", hide_input=True)
            if not await orchestrator.handle_login(username, password):
                error("A username and password are required.")
                raise typer.Exit(code=EXIT_INVALID_USAGE)
            _exit_on_error(orchestrator.basic_auth_store)

        _exit_on_error(orchestrator.cluster_data_store)
        dataset = orchestrator.cluster_data_store.dataset
        if dataset is not None:
            _print_clusters(dataset)
        success(f"Signed in to {orchestrator.url} as {orchestrator.session.username}")


async def _complete_sso(orchestrator: LoginOrchestrator) -> None:
    info("Sign in with your browser, then paste the address it was redirected to.")
    try:
        redirect = typer.prompt("Redirect URI")
    except typer.Abort:
        orchestrator.abandon_sso()
        raise

    event = orchestrator.dispatch(redirect.strip())
    await orchestrator.wait_for_callbacks()
    if event is None or orchestrator.sso_store.awaiting_redirect:
        orchestrator.abandon_sso()
        error("That is not an SSO redirect URI.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)


def _exit_on_error(store: AsyncStore) -> None:
    exc = store.error
    if exc is not None:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)


def _print_clusters(dataset: ClusterDataset) -> None:
    rows = [
        [c.namespace, c.name, "yes" if c.ready else "no", c.id]
        for c in dataset.clusters
    ]
    print_table(["Namespace", "Name", "Ready", "ID"], rows, title="Clusters")
    for failure in dataset.failures:
        warning(f"Namespace {failure.namespace}: {failure.error}")
