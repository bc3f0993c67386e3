from unittest.mock import patch

import pytest
from click.testing import CliRunner

from gatehouse.cli import cli
from gatehouse.core.config import Settings
from gatehouse.infrastructure.auth import IdentityTokenService


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep CLI commands from reconfiguring global logging onto the runner's stream."""
    with patch("gatehouse.cli.configure_logging"):
        yield


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "testing",
        "storage_backend": "memory",
        "secret_key": "cli-test-secret",
        "log_format": "json",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_serve_uses_app_factory():
    """Verify serve hands the application factory to uvicorn."""
    runner = CliRunner()

    with patch("gatehouse.cli.get_settings", return_value=make_settings()), patch(
        "uvicorn.run"
    ) as mock_run:
        result = runner.invoke(cli, ["serve", "--port", "9001"])

    assert result.exit_code == 0
    mock_run.assert_called_once()
    args, kwargs = mock_run.call_args
    assert args[0] == "gatehouse.infrastructure.api.app:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == 9001


def test_issue_token_decodes():
    runner = CliRunner()

    with patch("gatehouse.cli.get_settings", return_value=make_settings()):
        result = runner.invoke(cli, ["issue-token", "idp-1", "jane@example.com", "--minutes", "5"])

    assert result.exit_code == 0
    payload = IdentityTokenService("cli-test-secret").decode(result.output.strip())
    assert payload["sub"] == "idp-1"
    assert payload["email"] == "jane@example.com"


def test_issue_token_refused_in_production():
    runner = CliRunner()
    settings = make_settings(environment="production", secret_key="a-real-secret")

    with patch("gatehouse.cli.get_settings", return_value=settings):
        result = runner.invoke(cli, ["issue-token", "idp-1", "jane@example.com"])

    assert result.exit_code == 1
    assert "cannot be issued in production" in result.output


def test_seed_creates_default_modules():
    runner = CliRunner()

    with patch("gatehouse.cli.get_settings", return_value=make_settings()):
        result = runner.invoke(cli, ["seed"])

    assert result.exit_code == 0
    assert "Modules created: 7" in result.output


def test_create_admin():
    runner = CliRunner()

    with patch("gatehouse.cli.get_settings", return_value=make_settings()):
        result = runner.invoke(cli, ["create-admin", "Boss@Example.com", "the boss"])

    assert result.exit_code == 0
    assert "Administrator provisioned!" in result.output
    assert "boss@example.com" in result.output


def test_create_admin_invalid_email():
    runner = CliRunner()

    with patch("gatehouse.cli.get_settings", return_value=make_settings()):
        result = runner.invoke(cli, ["create-admin", "not-an-email", "Someone"])

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_info():
    runner = CliRunner()

    with patch("gatehouse.cli.get_settings", return_value=make_settings()):
        result = runner.invoke(cli, ["info"])

    assert result.exit_code == 0
    assert "Storage backend:    memory" in result.output
