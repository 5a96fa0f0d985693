"""authhub API module."""


def __getattr__(name: str):
    """Lazy load the app factory so importing authhub.api stays cheap."""
    if name == "create_app":
        from authhub.api.main import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["create_app"]
