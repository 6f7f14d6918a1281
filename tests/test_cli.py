"""
Tests for CLI commands.
"""
from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from fastmemos.cli import app
from fastmemos.client import AUTH_STATUS_PATH, MEMOS_PATH
from fastmemos.secret_store import ACCESS_TOKEN_KEY
from fastmemos.session import SessionController


runner = CliRunner()


@pytest.fixture
def cli_session(secrets, settings, make_server):
    """Point the CLI at a fake server; yields the server."""
    def install(routes=None, logged_in=False):
        if logged_in:
            secrets.set(ACCESS_TOKEN_KEY, "tok")
            settings.update(server_url="https://memos.example.com")
        server = make_server(routes)
        patcher = patch(
            "fastmemos.cli.get_controller",
            side_effect=lambda: SessionController(secrets=secrets, settings=settings, client=server.client()),
        )
        patcher.start()
        return server

    yield install
    patch.stopall()


class TestCLIHelp:
    """Tests for CLI help and basic structure."""

    def test_help_shows_all_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("login", "logout", "status", "post", "capture", "config"):
            assert command in result.output


class TestLoginCommand:
    """Tests for the login command."""

    def test_login_with_options(self, cli_session, secrets):
        cli_session({AUTH_STATUS_PATH: (200, {"username": "alice"})})

        result = runner.invoke(app, ["login", "--server", "memos.example.com", "--token", "tok"])

        assert result.exit_code == 0
        assert "https://memos.example.com" in result.output
        assert "alice" in result.output
        assert secrets.get(ACCESS_TOKEN_KEY) == "tok"

    def test_login_prompts(self, cli_session, secrets):
        cli_session({AUTH_STATUS_PATH: (200, {})})

        result = runner.invoke(app, ["login"], input="memos.example.com\nsecret\n")

        assert result.exit_code == 0
        assert secrets.get(ACCESS_TOKEN_KEY) == "secret"
        assert "secret" not in result.output

    def test_login_failure(self, cli_session, secrets):
        cli_session({AUTH_STATUS_PATH: (401, "nope")})

        result = runner.invoke(app, ["login", "-s", "memos.example.com", "-t", "bad"])

        assert result.exit_code == 1
        assert "Login failed" in result.output
        assert secrets.get(ACCESS_TOKEN_KEY) is None

    def test_login_invalid_url(self, cli_session):
        server = cli_session()

        result = runner.invoke(app, ["login", "-s", "  ", "-t", "tok"])

        assert result.exit_code == 1
        assert "Invalid server URL" in result.output
        assert server.requests == []


class TestPostCommand:
    """Tests for the post command."""

    def test_post_arguments(self, cli_session):
        server = cli_session({MEMOS_PATH: (200, {})}, logged_in=True)

        result = runner.invoke(app, ["post", "Hello", "world"])

        assert result.exit_code == 0
        assert "Memo sent" in result.output
        assert server.body() == {"content": "Hello world", "visibility": "PRIVATE"}

    def test_post_from_stdin_with_visibility(self, cli_session):
        server = cli_session({MEMOS_PATH: (200, {})}, logged_in=True)

        result = runner.invoke(app, ["post", "--visibility", "public"], input="line one\nline two\n")

        assert result.exit_code == 0
        assert server.body() == {"content": "line one\nline two\n", "visibility": "PUBLIC"}

    def test_post_bad_visibility(self, cli_session):
        cli_session(logged_in=True)

        result = runner.invoke(app, ["post", "-V", "secret", "hi"])

        assert result.exit_code != 0

    def test_post_not_logged_in(self, cli_session):
        server = cli_session({MEMOS_PATH: (200, {})})

        result = runner.invoke(app, ["post", "hi"])

        assert result.exit_code == 1
        assert "Please log in first" in result.output
        assert "fastmemos login" in result.output
        assert server.requests == []

    def test_post_failure_echoes_draft(self, cli_session):
        cli_session({MEMOS_PATH: (500, "database locked")}, logged_in=True)

        result = runner.invoke(app, ["post", "Keep", "this", "thought"])

        assert result.exit_code == 1
        assert "Status 500" in result.output
        assert "Keep this thought" in result.output
        assert "try sending it again" in result.output

    def test_post_auth_failed_suggests_login(self, cli_session):
        cli_session({MEMOS_PATH: (401, "expired")}, logged_in=True)

        result = runner.invoke(app, ["post", "hi"])

        assert result.exit_code == 1
        assert "fastmemos login" in result.output
        assert "try sending it again" not in result.output


class TestCaptureCommand:
    """Tests for the interactive composer."""

    def test_capture_until_dot(self, cli_session):
        server = cli_session({MEMOS_PATH: (200, {})}, logged_in=True)

        result = runner.invoke(app, ["capture"], input="first line\nsecond line\n.\n")

        assert result.exit_code == 0
        assert "4 words" in result.output
        assert server.body()["content"] == "first line\nsecond line"

    def test_capture_until_eof(self, cli_session):
        server = cli_session({MEMOS_PATH: (200, {})}, logged_in=True)

        result = runner.invoke(app, ["capture", "-V", "protected"], input="just this")

        assert result.exit_code == 0
        assert server.body() == {"content": "just this", "visibility": "PROTECTED"}

    def test_capture_nothing_to_send(self, cli_session):
        server = cli_session({MEMOS_PATH: (200, {})}, logged_in=True)

        result = runner.invoke(app, ["capture"], input="\n.\n")

        assert result.exit_code == 0
        assert "Nothing to send" in result.output
        assert server.requests == []

    def test_capture_requires_login(self, cli_session):
        cli_session()

        result = runner.invoke(app, ["capture"], input="hi\n")

        assert result.exit_code == 1
        assert "Please log in first" in result.output


class TestStatusAndLogout:
    """Tests for status, config and logout."""

    def test_status_logged_out(self, cli_session):
        cli_session()

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Not connected" in result.output

    def test_status_json(self, cli_session):
        cli_session(logged_in=True)

        result = runner.invoke(app, ["status", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["state"] == "logged_in"
        assert data["is_authenticated"] is True
        assert data["server_url"] == "https://memos.example.com"
        assert "tok" not in result.output

    def test_logout(self, cli_session, secrets, settings):
        cli_session(logged_in=True)

        result = runner.invoke(app, ["logout"])

        assert result.exit_code == 0
        assert secrets.get(ACCESS_TOKEN_KEY) is None
        assert settings.load().server_url == ""

    def test_config_sets_default_visibility(self, cli_session, settings):
        cli_session()

        result = runner.invoke(app, ["config", "--default-visibility", "public"])

        assert result.exit_code == 0
        assert "PUBLIC" in result.output
        assert settings.load().default_visibility == "PUBLIC"
