"""Pluggable cookie/JWT authentication for FastAPI/Starlette services.

This package provides:
- Service: builds token service, middleware and avatar proxy from Opts
- Provider registry with OAuth2 (GitHub, Google, Facebook) and dev providers
- One request handler routing login/callback/logout across providers
- Authenticator middleware (FastAPI dependencies) gating arbitrary routes
"""

from authhub.errors import AuthError, ConfigError, ProviderNotFoundError, TokenError
from authhub.middleware import Authenticator
from authhub.providers import ProviderDescriptor
from authhub.service import Opts, Service
from authhub.token import Claims, User
from authhub.version import __version__

__all__ = [
    "AuthError",
    "Authenticator",
    "Claims",
    "ConfigError",
    "Opts",
    "ProviderDescriptor",
    "ProviderNotFoundError",
    "Service",
    "TokenError",
    "User",
    "__version__",
]
