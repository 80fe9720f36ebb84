"""Unit tests for the Typer CLI commands that only touch the local cache."""

from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from critique.cli import app as cli_module

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from pointing structlog at the runner's captured stderr."""
    monkeypatch.setattr(cli_module, "configure_logging", MagicMock())


def test_version():
    result = runner.invoke(cli_module.app, ["--version"])

    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_session_new_and_use():
    created = runner.invoke(cli_module.app, ["session", "new"])
    assert created.exit_code == 0
    assert "Started job-" in created.output

    used = runner.invoke(cli_module.app, ["session", "use", "job-cli-use"])
    assert used.exit_code == 0
    assert "Now reviewing job-cli-use" in used.output


def test_session_incomplete_action():
    result = runner.invoke(cli_module.app, ["session", "use"])

    assert result.exit_code == 1
    assert "Unknown or incomplete action" in result.output


def test_unknown_user_token():
    result = runner.invoke(cli_module.app, ["tags", "--user", "nobody"])

    assert result.exit_code == 1
    assert "Unknown user token" in result.output


def test_tag_create_and_list():
    created = runner.invoke(
        cli_module.app, ["tag-create", "CliTag", "#123456", "--job", "job-cli-tags"]
    )
    assert created.exit_code == 0
    assert "'CliTag' created" in created.output

    listed = runner.invoke(cli_module.app, ["tags", "--job", "job-cli-tags"])
    assert listed.exit_code == 0
    assert "CliTag" in listed.output


def test_client_cannot_create_tag():
    result = runner.invoke(
        cli_module.app,
        ["tag-create", "Nope", "#123456", "--user", "dev-client", "--job", "job-cli-tags"],
    )

    assert result.exit_code == 1
    assert "permission to manage tags" in result.output


def test_empty_gallery():
    result = runner.invoke(cli_module.app, ["list", "--job", "job-cli-empty"])

    assert result.exit_code == 0
    assert "No screenshots yet" in result.output
