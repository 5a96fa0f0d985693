"""authhub API server - FastAPI application hosting the auth service.

Running the Server
------------------

Development:
    AUTHHUB_SECRET=change-me AUTHHUB_PROVIDERS=dev uv run authhub serve

Endpoints
---------
- /health                   : Health check with version
- /auth/list                : Registered providers
- /auth/{provider}/login    : Start login (?site=, ?from=)
- /auth/{provider}/callback : OAuth2 callback
- /auth/{provider}/logout   : Clear session cookies
- /avatar/{id}              : Proxied avatars
- /user                     : Current user (token required)
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from loguru import logger
from pydantic import BaseModel, Field

from authhub.service import Service
from authhub.settings import AuthSettings, settings
from authhub.token import User
from authhub.version import __version__

AUTH_METHODS = ["GET", "POST"]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Health status")
    version: str = Field(description="Application version")
    providers: list[str] = Field(description="Registered provider names")


def build_service(cfg: AuthSettings) -> Service:
    """Create Service from settings and register configured providers.

    Raises:
        ConfigError: secret not configured
    """
    service = Service(cfg.to_opts())
    for kind in cfg.provider_list:
        service.add_provider(
            kind,
            cfg.client_ids.get(kind, ""),
            cfg.client_secrets.get(kind, ""),
        )
    return service


def create_app(service: Service | None = None) -> FastAPI:
    """Create FastAPI application around an auth service.

    Args:
        service: Ready service; built from environment settings if omitted
    """
    if service is None:
        service = build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        names = [p.name for p in service.providers()]
        logger.info(f"Starting authhub API, providers: {names}")
        yield
        logger.info("Shutting down authhub API")

    app = FastAPI(
        title="authhub",
        description="Cookie/JWT authentication with pluggable providers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.auth_service = service

    auth_handler, avatar_handler = service.handlers()
    app.add_route("/auth/{path:path}", auth_handler, methods=AUTH_METHODS, include_in_schema=False)
    app.add_route("/avatar/{path:path}", avatar_handler, methods=["GET"], include_in_schema=False)

    m = service.middleware()

    @app.get("/health")
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            version=__version__,
            providers=[p.name for p in service.providers()],
        )

    @app.get("/user")
    async def current_user(user: User = Depends(m.auth)) -> User:
        return user

    return app
