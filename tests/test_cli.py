"""Tests for the administration CLI."""

import pytest
from click.testing import CliRunner

from formdesk import cli as cli_module
from formdesk.core.config import Settings
from formdesk.core.context import AppContext
from formdesk.services import user_service


@pytest.fixture
def cli_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        ENV="test",
        DATABASE_URL=f"sqlite+pysqlite:///{tmp_path / 'cli.db'}",
        LOCAL_STORAGE_PATH=str(tmp_path / "uploads"),
        JWT_SECRET="test-secret",
    )
    monkeypatch.setattr(cli_module, "settings", settings)
    return settings


def _lookup(settings: Settings, email: str):
    ctx = AppContext.from_settings(settings)
    db = ctx.session_factory()
    try:
        return user_service.get_user_by_email(db, email)
    finally:
        db.close()
        ctx.dispose()


def test_create_user_and_revoke_sessions(cli_settings):
    runner = CliRunner()

    result = runner.invoke(cli_module.cli, ["init-db"])
    assert result.exit_code == 0
    assert "Database tables created" in result.output

    result = runner.invoke(
        cli_module.cli,
        [
            "create-user",
            "--email", "Admin@Example.com",
            "--first-name", "Ada",
            "--last-name", "Admin",
            "--role", "admin",
        ],
    )
    assert result.exit_code == 0
    assert "Created admin: admin@example.com" in result.output
    assert "Token: " in result.output

    user = _lookup(cli_settings, "admin@example.com")
    assert user.role == "admin"
    assert user.token_version == 1

    result = runner.invoke(cli_module.cli, ["revoke-sessions", "--email", "admin@example.com"])
    assert result.exit_code == 0
    assert "Token version: 1 → 2" in result.output
    assert _lookup(cli_settings, "admin@example.com").token_version == 2


def test_create_user_twice_reports_error(cli_settings):
    runner = CliRunner()
    runner.invoke(cli_module.cli, ["init-db"])
    args = ["create-user", "--email", "a@example.com", "--first-name", "A", "--last-name", "B"]

    assert runner.invoke(cli_module.cli, args).exit_code == 0
    result = runner.invoke(cli_module.cli, args)
    assert "User already exists: a@example.com" in result.output


def test_revoke_sessions_for_unknown_user(cli_settings):
    runner = CliRunner()
    runner.invoke(cli_module.cli, ["init-db"])
    result = runner.invoke(cli_module.cli, ["revoke-sessions", "--email", "nobody@example.com"])
    assert "User not found: nobody@example.com" in result.output
