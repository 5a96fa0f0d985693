"""Service: composition root of authhub.

Builds the token service, the authenticator middleware and the optional
avatar proxy from Opts, keeps the ordered provider registry, and serves the
auth mount by fanning requests out to registered providers:

- {prefix}/list                  JSON list of provider names, registration order
- {prefix}/{anything}/logout     first registered provider's logout
- {prefix}/{provider}/...        the provider's own handler

Lifecycle: construct and register providers during startup, then serve.
Registration swaps in a new tuple instead of mutating the old one, so a
request always sees a consistent provider set.

Example:
    >>> service = Service(Opts(secret_reader=lambda aud: "secret", url="http://localhost:8080"))
    >>> service.add_provider("dev", "", "")
    >>> auth_handler, avatar_handler = service.handlers()
"""

from dataclasses import dataclass
from datetime import timedelta

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger

from authhub.avatar import DEFAULT_ROUTE_PATH, AvatarProxy, AvatarStore
from authhub.errors import ConfigError, ProviderNotFoundError
from authhub.middleware import Authenticator, Validator
from authhub.provider_factory import get_provider_factory
from authhub.providers import Params, ProviderDescriptor, RequestHandler
from authhub.token import (
    DEFAULT_COOKIE_DURATION,
    DEFAULT_ISSUER,
    DEFAULT_JWT_COOKIE_NAME,
    DEFAULT_JWT_HEADER_KEY,
    DEFAULT_TOKEN_DURATION,
    DEFAULT_XSRF_COOKIE_NAME,
    DEFAULT_XSRF_HEADER_KEY,
    ClaimsUpdater,
    SecretReader,
    TokenOpts,
    TokenService,
)


@dataclass(frozen=True)
class Opts:
    """Full set of parameters to initialize Service.

    Only secret_reader is mandatory; empty/zero values get defaults.
    """

    secret_reader: SecretReader | None = None  # returns secret for given site id (aud)
    claims_upd: ClaimsUpdater | None = None  # adds/modifies values stored in the token
    secure_cookies: bool = False
    token_duration: timedelta = timedelta(0)  # default 15 minutes, refreshed automatically
    cookie_duration: timedelta = timedelta(0)  # default 31 days
    disable_xsrf: bool = False  # useful for testing/debugging

    jwt_cookie_name: str = ""  # default "JWT"
    jwt_header_key: str = ""  # default "X-JWT"
    xsrf_cookie_name: str = ""  # default "XSRF-TOKEN"
    xsrf_header_key: str = ""  # default "X-XSRF-TOKEN"

    issuer: str = ""  # iss claim, usually the application name, default "go-pkgz/auth"

    url: str = ""  # root url of the service, i.e. http://blah.example.com
    validator: Validator | None = None  # rejects some valid tokens with user-defined logic
    dev_passwd: str = ""  # enables basic auth for user "dev" with this password

    avatar_store: AvatarStore | None = None


async def _avatars_disabled(request: Request) -> Response:
    return JSONResponse(
        {"error": "avatar proxy is not configured"},
        status_code=status.HTTP_404_NOT_FOUND,
    )


class Service:
    """Provider registry, middleware and request dispatcher.

    Raises:
        ConfigError: secret_reader not defined
    """

    def __init__(self, opts: Opts):
        if opts.secret_reader is None:
            raise ConfigError("missing secret source")

        self.opts = opts
        self.issuer = opts.issuer or DEFAULT_ISSUER

        self.token_service = TokenService(
            TokenOpts(
                secret_reader=opts.secret_reader,
                claims_upd=opts.claims_upd,
                secure_cookies=opts.secure_cookies,
                token_duration=opts.token_duration or DEFAULT_TOKEN_DURATION,
                cookie_duration=opts.cookie_duration or DEFAULT_COOKIE_DURATION,
                disable_xsrf=opts.disable_xsrf,
                jwt_cookie_name=opts.jwt_cookie_name or DEFAULT_JWT_COOKIE_NAME,
                jwt_header_key=opts.jwt_header_key or DEFAULT_JWT_HEADER_KEY,
                xsrf_cookie_name=opts.xsrf_cookie_name or DEFAULT_XSRF_COOKIE_NAME,
                xsrf_header_key=opts.xsrf_header_key or DEFAULT_XSRF_HEADER_KEY,
                issuer=self.issuer,
            )
        )

        self._providers: tuple[ProviderDescriptor, ...] = ()

        self._authenticator = Authenticator(
            token_service=self.token_service,
            validator=opts.validator,
            dev_passwd=opts.dev_passwd,
            providers=self.providers,
        )

        self.avatar_proxy: AvatarProxy | None = None
        if opts.avatar_store is not None:
            self.avatar_proxy = AvatarProxy(
                store=opts.avatar_store,
                url=opts.url,
                route_path=DEFAULT_ROUTE_PATH,
            )

        logger.info(
            f"Auth service initialized (issuer: {self.issuer}, "
            f"avatars: {'on' if self.avatar_proxy else 'off'})"
        )

    def providers(self) -> tuple[ProviderDescriptor, ...]:
        """Registered providers in registration order."""
        return self._providers

    def add_provider(self, name: str, client_id: str, client_secret: str) -> None:
        """Register provider of the given kind.

        Unsupported kinds are ignored; use get_provider to confirm a
        registration. Registering the same kind twice adds a second entry.
        """
        factory = get_provider_factory(name)
        if factory is None:
            logger.warning(f"Unsupported provider {name!r} ignored")
            return

        params = Params(
            url=self.opts.url,
            token_service=self.token_service,
            issuer=self.issuer,
            avatar_proxy=self.avatar_proxy,
            client_id=client_id,
            client_secret=client_secret,
        )
        descriptor = factory(params).descriptor()
        self._providers = (*self._providers, descriptor)
        logger.info(f"Added provider {descriptor.name} (requested as {name!r})")

    def get_provider(self, name: str) -> ProviderDescriptor:
        """Get first registered provider with the given name.

        Raises:
            ProviderNotFoundError: No such provider
        """
        for p in self._providers:
            if p.name == name:
                return p
        raise ProviderNotFoundError(f"provider {name} not found")

    def middleware(self) -> Authenticator:
        return self._authenticator

    def handlers(self) -> tuple[RequestHandler, RequestHandler]:
        """Get request handlers for the auth mount and the avatar mount.

        The avatar handler answers 404 when no avatar store is configured.
        """
        avatar_handler = _avatars_disabled
        if self.avatar_proxy is not None:
            avatar_handler = self.avatar_proxy.handler
        return self._dispatch, avatar_handler

    async def _dispatch(self, request: Request) -> Response:
        elems = [e for e in request.url.path.split("/") if e]
        if len(elems) < 2:
            return Response(status_code=status.HTTP_400_BAD_REQUEST)

        providers = self._providers

        if elems[-1] == "list":
            return JSONResponse([p.name for p in providers])

        # logout only clears the shared token cookies, any provider can do it
        if elems[-1] == "logout":
            if not providers:
                return JSONResponse(
                    {"error": "no providers registered"},
                    status_code=status.HTTP_404_NOT_FOUND,
                )
            return await providers[0].handler(request)

        name = elems[-2]
        try:
            provider = self.get_provider(name)
        except ProviderNotFoundError:
            logger.debug(f"Request for unsupported provider {name}")
            return JSONResponse(
                {"error": f"provider {name} not supported"},
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        return await provider.handler(request)
