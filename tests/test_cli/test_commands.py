"""Tests for the ccauth CLI commands.

Commands are invoked through the real root app so that the global flags
(``--json``, ``--quiet``) are applied by the root callback. HTTP traffic
goes to a fake instance injected through ``_make_client``.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest
import typer
from typer.testing import CliRunner

from ccauth import __version__
from ccauth.app import register_commands
from ccauth.config import load_preferences, save_preferences
from ccauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_INVALID_USAGE,
)
from ccauth.models import Preferences

OAUTH_LINK = "lens://extensions/ccauth/oauth/code"


@pytest.fixture
def app() -> typer.Typer:
    return register_commands()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def use_instance(monkeypatch: pytest.MonkeyPatch):
    """Route the login command's HTTP client to the given fake instance."""

    def _use(fake) -> None:
        monkeypatch.setattr("ccauth.commands.login._make_client", fake.client)

    return _use


class TestRoot:
    def test_version(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"ccauth {__version__}" in result.stdout


class TestLink:
    def test_prints_event_as_json(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(
            app, ["--json", "link", f"{OAUTH_LINK}?code=abc&state=xyz"]
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["type"] == "oauth/code"
        assert data["callback"]["code"] == "abc"

    def test_decodes_payload(self, runner: CliRunner, app: typer.Typer) -> None:
        tokens = base64.b64encode(json.dumps({"uid-1": "t"}).encode()).decode()
        result = runner.invoke(
            app,
            ["--json", "link", f"lens://extensions/ccauth/addClusters?username=admin&tokens={tokens}"],
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout)["tokens"] == {"uid-1": "t"}

    def test_malformed_link(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(
            app,
            ["--json", "link", "lens://extensions/ccauth/kubeConfig?kubeConfig=!!notbase64!!"],
        )
        assert result.exit_code == EXIT_DECODE_ERROR


class TestConfigCommands:
    def test_show(self, runner: CliRunner, app: typer.Typer, isolated_config: Path) -> None:
        save_preferences(Preferences(cloud_url="https://cc.example.com"))
        result = runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["settings"]["client_id"] == "lens"
        assert data["preferences"]["cloud_url"] == "https://cc.example.com"

    def test_set_url_normalizes(
        self, runner: CliRunner, app: typer.Typer, isolated_config: Path
    ) -> None:
        result = runner.invoke(app, ["config", "set-url", "CC.Example.com:443/"])
        assert result.exit_code == 0
        assert load_preferences().cloud_url == "https://cc.example.com"

    def test_set_url_rejects_empty(
        self, runner: CliRunner, app: typer.Typer, isolated_config: Path
    ) -> None:
        result = runner.invoke(app, ["config", "set-url", "  "])
        assert result.exit_code == EXIT_INVALID_USAGE


class TestLogin:
    def test_basic_login_prints_clusters(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        instance,
        use_instance,
    ) -> None:
        use_instance(instance)
        result = runner.invoke(
            app,
            ["--json", "--quiet", "login", "cc.example.com", "-u", "admin", "--password", "secret"],
        )

        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert rows == [
            {"Namespace": "default", "Name": "mgmt", "Ready": "yes", "ID": "uid-mgmt"},
            {"Namespace": "team-a", "Name": "child", "Ready": "no", "ID": "uid-child"},
        ]
        assert load_preferences().cloud_url == "https://cc.example.com"

    def test_prompts_for_password(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        instance,
        use_instance,
    ) -> None:
        use_instance(instance)
        result = runner.invoke(
            app, ["--json", "--quiet", "login", "cc.example.com", "-u", "admin"], input="secret\n"
        )
        assert result.exit_code == 0, result.output
        assert instance.token_grants() == ["password"]

    def test_remembered_instance(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        instance,
        use_instance,
    ) -> None:
        save_preferences(Preferences(cloud_url="https://cc.example.com"))
        use_instance(instance)
        result = runner.invoke(
            app, ["--quiet", "login", "-u", "admin", "--password", "secret"]
        )
        assert result.exit_code == 0, result.output
        assert str(instance.requests[0].url) == "https://cc.example.com/config.json"

    def test_rejected_password(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        instance,
        use_instance,
    ) -> None:
        use_instance(instance)
        result = runner.invoke(
            app, ["login", "cc.example.com", "-u", "admin", "--password", "wrong"]
        )
        assert result.exit_code == EXIT_AUTH_FAILURE

    def test_unreachable_config(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        instance,
        use_instance,
    ) -> None:
        instance.config_status = 404
        use_instance(instance)
        result = runner.invoke(
            app, ["login", "cc.example.com", "-u", "admin", "--password", "secret"]
        )
        assert result.exit_code == EXIT_CONFIG_ERROR

    def test_no_url(
        self, runner: CliRunner, app: typer.Typer, isolated_config: Path
    ) -> None:
        result = runner.invoke(app, ["login"])
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_sso_login_with_pasted_redirect(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        sso_instance,
        use_instance,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        opened: list[str] = []
        monkeypatch.setattr("ccauth.commands.login.open_external", opened.append)

        def fake_prompt(text: str, **kwargs: object) -> str:
            state = parse_qs(urlsplit(opened[-1]).query)["state"][0]
            return f"{OAUTH_LINK}?code=good-code&state={state}"

        monkeypatch.setattr(typer, "prompt", fake_prompt)
        use_instance(sso_instance)

        result = runner.invoke(app, ["--json", "--quiet", "login", "cc.example.com"])

        assert result.exit_code == 0, result.output
        assert len(opened) == 1
        assert sso_instance.token_grants() == ["authorization_code"]
        assert len(json.loads(result.stdout)) == 2

    def test_sso_login_with_garbage_redirect(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        sso_instance,
        use_instance,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr("ccauth.commands.login.open_external", lambda url: None)
        monkeypatch.setattr(typer, "prompt", lambda text, **kwargs: "https://example.com/")
        use_instance(sso_instance)

        result = runner.invoke(app, ["login", "cc.example.com"])

        assert result.exit_code == EXIT_INVALID_USAGE
        assert sso_instance.token_grants() == []

    def test_empty_password_is_usage_error(
        self,
        runner: CliRunner,
        app: typer.Typer,
        isolated_config: Path,
        instance,
        use_instance,
    ) -> None:
        use_instance(instance)
        result = runner.invoke(
            app, ["login", "cc.example.com", "-u", "admin", "--password", ""]
        )
        assert result.exit_code == EXIT_INVALID_USAGE
        assert instance.token_grants() == []
