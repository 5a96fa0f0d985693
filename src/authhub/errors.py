"""Exception types raised by authhub."""


class AuthError(Exception):
    """Base exception for authhub errors."""

    pass


class ConfigError(AuthError):
    """Service configuration is invalid (fatal at startup)."""

    pass


class ProviderNotFoundError(AuthError, LookupError):
    """No registered provider matches the requested name."""

    pass


class TokenError(AuthError):
    """Token could not be issued, read or verified."""

    pass
