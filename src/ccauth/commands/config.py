"""Config commands -- view settings and the remembered instance.

Provides the ``ccauth config`` sub-command group. Settings
(:class:`~ccauth.models.Settings`) and preferences
(:class:`~ccauth.models.Preferences`) are persisted in the ccauth config
directory.
"""

from __future__ import annotations

import typer

from ccauth.exit_codes import EXIT_INVALID_USAGE
from ccauth.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show current settings and preferences.

    Environment overrides (``CCAUTH_CLIENT_ID``, ``CCAUTH_REDIRECT_URI``,
    ``CCAUTH_TIMEOUT``) are already applied.

    Example::

        ccauth config show
        ccauth --json config show
    """
    from ccauth.config import get_config_dir, load_preferences, load_settings

    settings = load_settings()
    preferences = load_preferences()
    info(f"Config directory: {get_config_dir()}")
    format_response(
        {
            "settings": settings.model_dump(mode="json"),
            "preferences": preferences.model_dump(mode="json"),
        }
    )


@config_app.command("set-url")
def config_set_url(
    url: str = typer.Argument(help="Instance URL to remember."),
) -> None:
    """Remember an instance URL without accessing it.

    The URL is canonicalized the same way ``ccauth login`` does.

    Example::

        ccauth config set-url cc.example.com
    """
    from ccauth.config import load_preferences, save_preferences
    from ccauth.netutil import normalize_url

    norm_url = normalize_url(url)
    if not norm_url:
        error("URL must not be empty.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    preferences = load_preferences()
    preferences.cloud_url = norm_url
    save_preferences(preferences)
    success(f"Remembered {norm_url}")
