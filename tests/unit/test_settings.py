"""Unit tests for environment settings and service building."""

from datetime import timedelta

import pytest

from authhub.api.main import build_service
from authhub.errors import ConfigError
from authhub.settings import AuthSettings


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("AUTHHUB_SECRET", "env-secret")
    monkeypatch.setenv("AUTHHUB_URL", "https://auth.example.com")
    monkeypatch.setenv("AUTHHUB_PROVIDERS", "GitHub, dev,,unknown")
    monkeypatch.setenv("AUTHHUB_CLIENT_IDS", '{"github": "cid"}')
    monkeypatch.setenv("AUTHHUB_CLIENT_SECRETS", '{"github": "csecret"}')
    monkeypatch.setenv("AUTHHUB_TOKEN_DURATION", "PT5M")
    monkeypatch.setenv("AUTHHUB_ISSUER", "my-app")
    return monkeypatch


def test_defaults(monkeypatch):
    for name in ("AUTHHUB_SECRET", "AUTHHUB_PROVIDERS", "AUTHHUB_ISSUER"):
        monkeypatch.delenv(name, raising=False)

    cfg = AuthSettings(_env_file=None)

    assert cfg.secret is None
    assert cfg.secret_reader() is None
    assert cfg.provider_list == []
    assert cfg.issuer == "go-pkgz/auth"
    assert cfg.port == 8080


def test_from_env(env):
    cfg = AuthSettings(_env_file=None)

    assert cfg.url == "https://auth.example.com"
    assert cfg.provider_list == ["github", "dev", "unknown"]
    assert cfg.client_ids == {"github": "cid"}
    assert cfg.token_duration == timedelta(minutes=5)


def test_to_opts(env):
    opts = AuthSettings(_env_file=None).to_opts(dev_passwd="override")

    assert opts.secret_reader("any-site") == "env-secret"
    assert opts.issuer == "my-app"
    assert opts.url == "https://auth.example.com"
    assert opts.dev_passwd == "override"
    assert opts.avatar_store is None


def test_build_service(env):
    service = build_service(AuthSettings(_env_file=None))

    assert [p.name for p in service.providers()] == ["github", "dev"]
    github = service.get_provider("github")
    assert github.client_id == "cid"
    assert github.client_secret == "csecret"
    assert github.issuer == "my-app"
    assert service.get_provider("dev").client_id == ""


def test_build_service_without_secret(monkeypatch):
    monkeypatch.delenv("AUTHHUB_SECRET", raising=False)

    with pytest.raises(ConfigError, match="missing secret source"):
        build_service(AuthSettings(_env_file=None))
