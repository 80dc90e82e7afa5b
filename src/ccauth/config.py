"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for ccauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.ccauth/`` on macOS and Windows. See :func:`get_config_dir`.
* **Settings** -- A single :class:`~ccauth.models.Settings` JSON file
  (client ID, redirect URI, request options). :func:`load_settings`
  layers environment variables over it.
* **Preferences** -- :class:`~ccauth.models.Preferences`, currently the
  remembered instance URL. Written by the orchestrator through
  :func:`save_preferences` whenever the user accesses a new instance.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from ccauth.exceptions import ConfigError
from ccauth.models import Preferences, Settings

_APP_NAME = "ccauth"
_SETTINGS_FILENAME = "settings.json"
_PREFERENCES_FILENAME = "preferences.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/ccauth/`` (default ``~/.config/ccauth/``).
    On macOS/Windows: ``~/.ccauth/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _read_model(path: Path, model: type[BaseModel], what: str) -> Optional[BaseModel]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return model.model_validate(data)
    except (json.JSONDecodeError, ValidationError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _write_model(path: Path, model: BaseModel) -> None:
    data = model.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")


# --- Settings ---


def _settings_path() -> Path:
    return get_config_dir() / _SETTINGS_FILENAME


def load_settings() -> Settings:
    """Load settings with full precedence chain.

    Precedence (high to low):
        1. Environment variables (``CCAUTH_CLIENT_ID``,
           ``CCAUTH_REDIRECT_URI``, ``CCAUTH_TIMEOUT``)
        2. ``settings.json`` in the config directory
        3. Defaults

    Raises:
        ConfigError: If the file is invalid or an environment value cannot
            be coerced.
    """
    settings = _read_model(_settings_path(), Settings, "settings") or Settings()
    assert isinstance(settings, Settings)

    env_client_id = os.environ.get("CCAUTH_CLIENT_ID")
    if env_client_id:
        settings.client_id = env_client_id
    env_redirect = os.environ.get("CCAUTH_REDIRECT_URI")
    if env_redirect:
        settings.redirect_uri = env_redirect
    env_timeout = os.environ.get("CCAUTH_TIMEOUT")
    if env_timeout:
        try:
            settings.request.timeout = int(env_timeout)
        except ValueError as exc:
            raise ConfigError(
                f"CCAUTH_TIMEOUT must be an integer number of seconds, got {env_timeout!r}"
            ) from exc

    return settings


def save_settings(settings: Settings) -> None:
    """Persist settings atomically to disk."""
    _write_model(_settings_path(), settings)


# --- Preferences ---


def _preferences_path() -> Path:
    return get_config_dir() / _PREFERENCES_FILENAME


def load_preferences() -> Preferences:
    """Load remembered preferences, or defaults when none are saved.

    Raises:
        ConfigError: If the file exists but is invalid.
    """
    prefs = _read_model(_preferences_path(), Preferences, "preferences") or Preferences()
    assert isinstance(prefs, Preferences)
    return prefs


def save_preferences(prefs: Preferences) -> None:
    """Persist preferences atomically to disk."""
    _write_model(_preferences_path(), prefs)
