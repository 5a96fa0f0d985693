"""Unit tests for the CLI."""

from typer.testing import CliRunner

from authhub.cli.main import app
from authhub.settings import settings
from authhub.version import __version__

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert f"authhub v{__version__}" in result.stdout


def test_providers():
    result = runner.invoke(app, ["providers"])

    assert result.exit_code == 0
    for kind in ("github", "google", "facebook", "yandex", "dev"):
        assert kind in result.stdout


def test_serve_requires_secret(monkeypatch):
    monkeypatch.setattr(settings, "secret", None)

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 1
