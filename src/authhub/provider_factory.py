"""Provider kind registry.

Maps a provider kind name to the constructor building it. The Service looks
kinds up here, so supporting a new kind only needs a register_provider_kind
call, not changes to the Service or its dispatcher.
"""

from collections.abc import Callable

from loguru import logger

from authhub.provider_dev import new_dev
from authhub.provider_oauth2 import new_facebook, new_github, new_google
from authhub.providers import LoginProvider, Params

ProviderFactory = Callable[[Params], LoginProvider]

_factories: dict[str, ProviderFactory] = {
    "github": new_github,
    "google": new_google,
    "facebook": new_facebook,
    # TODO: yandex has no endpoint table of its own and builds a facebook provider
    "yandex": new_facebook,
    "dev": new_dev,
}


def get_provider_factory(kind: str) -> ProviderFactory | None:
    """Get constructor for provider kind (case-insensitive).

    Returns:
        Factory, or None for unsupported kinds
    """
    return _factories.get(kind.lower())


def register_provider_kind(kind: str, factory: ProviderFactory) -> None:
    """Add or replace a provider kind."""
    _factories[kind.lower()] = factory
    logger.debug(f"Registered provider kind {kind.lower()}")


def supported_kinds() -> list[str]:
    return list(_factories)
