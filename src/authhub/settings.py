"""Application settings using Pydantic Settings.

Environment variables use the AUTHHUB_ prefix, e.g.:
    AUTHHUB_SECRET=change-me
    AUTHHUB_URL=https://example.com
    AUTHHUB_PROVIDERS=github,dev
    AUTHHUB_CLIENT_IDS='{"github": "cid"}'
    AUTHHUB_CLIENT_SECRETS='{"github": "csecret"}'
"""

from datetime import timedelta
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from authhub.service import Opts
from authhub.token import (
    DEFAULT_COOKIE_DURATION,
    DEFAULT_ISSUER,
    DEFAULT_JWT_COOKIE_NAME,
    DEFAULT_JWT_HEADER_KEY,
    DEFAULT_TOKEN_DURATION,
    DEFAULT_XSRF_COOKIE_NAME,
    DEFAULT_XSRF_HEADER_KEY,
    SecretReader,
)


class AuthSettings(BaseSettings):
    """Authentication service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTHHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    secret: str | None = Field(
        default=None,
        description="JWT signing secret, same for every site - REQUIRED",
    )
    secure_cookies: bool = Field(default=False, description="Mark cookies secure (HTTPS only)")
    token_duration: timedelta = Field(
        default=DEFAULT_TOKEN_DURATION, description="Token TTL, refreshed automatically"
    )
    cookie_duration: timedelta = Field(
        default=DEFAULT_COOKIE_DURATION, description="Cookie TTL"
    )
    disable_xsrf: bool = Field(default=False, description="Disable XSRF protection")

    jwt_cookie_name: str = Field(default=DEFAULT_JWT_COOKIE_NAME)
    jwt_header_key: str = Field(default=DEFAULT_JWT_HEADER_KEY)
    xsrf_cookie_name: str = Field(default=DEFAULT_XSRF_COOKIE_NAME)
    xsrf_header_key: str = Field(default=DEFAULT_XSRF_HEADER_KEY)

    issuer: str = Field(default=DEFAULT_ISSUER, description="Value of the iss claim")
    url: str = Field(
        default="http://127.0.0.1:8080",
        description="Root URL of the service, used for OAuth2 redirects and avatar links",
    )
    dev_passwd: str = Field(
        default="",
        description="Password for basic auth as user 'dev' (empty disables it)",
    )

    providers: str = Field(
        default="",
        description="Comma-separated provider kinds to register (github, google, facebook, yandex, dev)",
    )
    client_ids: dict[str, str] = Field(default_factory=dict, description="OAuth2 client ID per provider")
    client_secrets: dict[str, str] = Field(
        default_factory=dict, description="OAuth2 client secret per provider"
    )

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=8080, description="API server port")

    @property
    def provider_list(self) -> list[str]:
        """Configured provider kinds, in order, lower-cased."""
        return [p.strip().lower() for p in self.providers.split(",") if p.strip()]

    def secret_reader(self) -> SecretReader | None:
        """Reader returning the static secret for any site, or None if unset."""
        if not self.secret:
            return None
        secret = self.secret
        return lambda aud: secret

    def to_opts(self, **overrides: Any) -> Opts:
        """Build service options; keyword overrides win (validator, avatar_store, ...)."""
        values: dict[str, Any] = {
            "secret_reader": self.secret_reader(),
            "secure_cookies": self.secure_cookies,
            "token_duration": self.token_duration,
            "cookie_duration": self.cookie_duration,
            "disable_xsrf": self.disable_xsrf,
            "jwt_cookie_name": self.jwt_cookie_name,
            "jwt_header_key": self.jwt_header_key,
            "xsrf_cookie_name": self.xsrf_cookie_name,
            "xsrf_header_key": self.xsrf_header_key,
            "issuer": self.issuer,
            "url": self.url,
            "dev_passwd": self.dev_passwd,
        }
        values.update(overrides)
        return Opts(**values)


settings = AuthSettings()
