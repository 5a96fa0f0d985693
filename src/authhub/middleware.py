"""Authentication middleware as FastAPI dependencies.

Usage:
    >>> m = service.middleware()
    >>> @app.get("/private")
    >>> async def private(user: User = Depends(m.auth)):
    ...     return {"user": user.name}

- auth: rejects with 401 unless the request carries a valid token
- trace: resolves the user if present, never rejects
- admin_only: like auth, plus 403 for non-admin users
"""

import secrets
import time
from collections.abc import Callable, Sequence

from fastapi import HTTPException, Request, Response, status
from fastapi.security import HTTPBasic
from loguru import logger

from authhub.errors import TokenError
from authhub.providers import ProviderDescriptor
from authhub.token import Claims, TokenService, User

Validator = Callable[[str, Claims], bool]
ProvidersView = Callable[[], Sequence[ProviderDescriptor]]

DEV_USER_NAME = "dev"

basic_scheme = HTTPBasic(auto_error=False)


class Authenticator:
    """Token-checking middleware bound to a token service and provider set.

    The provider set is read through a callable on every request, so providers
    registered after the authenticator was handed out are visible to it.
    """

    def __init__(
        self,
        token_service: TokenService,
        validator: Validator | None = None,
        dev_passwd: str = "",
        providers: ProvidersView | None = None,
    ):
        self.token_service = token_service
        self.validator = validator
        self.dev_passwd = dev_passwd
        self._providers: ProvidersView = providers or tuple

    @property
    def providers(self) -> Sequence[ProviderDescriptor]:
        return self._providers()

    async def auth(self, request: Request, response: Response) -> User:
        """Require authenticated user.

        Raises:
            HTTPException: 401 if not authenticated
        """
        user = await self._authenticate(request, response)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )
        return user

    async def trace(self, request: Request, response: Response) -> User | None:
        """Resolve user if the request is authenticated; never rejects."""
        return await self._authenticate(request, response)

    async def admin_only(self, request: Request, response: Response) -> User:
        """Require authenticated admin user.

        Raises:
            HTTPException: 401 if not authenticated, 403 if not admin
        """
        user = await self.auth(request, response)
        if not user.is_admin():
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return user

    async def _authenticate(self, request: Request, response: Response) -> User | None:
        if await self._is_dev_user(request):
            user = User(name=DEV_USER_NAME, id=DEV_USER_NAME, attrs={"admin": True})
            request.state.user = user
            return user

        try:
            claims, token = self.token_service.get(request)
        except TokenError as e:
            logger.debug(f"Request not authenticated: {e}")
            return None

        if claims.user is None:
            return None

        if not self._from_registered_provider(claims.user):
            logger.warning(f"Token for {claims.user.id} issued by unknown provider")
            return None

        if self.validator is not None and not self.validator(token, claims):
            logger.warning(f"Token for {claims.user.id} rejected by validator")
            return None

        if claims.is_expired():
            # only cookie tokens can be refreshed, header tokens belong to the client
            if request.cookies.get(self.token_service.opts.jwt_cookie_name) != token:
                logger.debug(f"Expired header token for {claims.user.id}")
                return None
            if not self._cookie_alive(claims):
                logger.debug(f"Cookie lifetime exceeded for {claims.user.id}")
                return None
            claims = self.token_service.set(
                response,
                claims.model_copy(update={"exp": 0, "iat": 0, "jti": None}),
            )
            logger.debug(f"Refreshed token for {claims.user.id}")

        request.state.user = claims.user
        return claims.user

    async def _is_dev_user(self, request: Request) -> bool:
        if not self.dev_passwd:
            return False
        credentials = await basic_scheme(request)
        if credentials is None or credentials.username != DEV_USER_NAME:
            return False
        return secrets.compare_digest(credentials.password, self.dev_passwd)

    def _cookie_alive(self, claims: Claims) -> bool:
        issued_at = claims.iat or claims.exp
        lifetime = self.token_service.opts.cookie_duration.total_seconds()
        return issued_at + lifetime > time.time()

    def _from_registered_provider(self, user: User) -> bool:
        return any(user.id.startswith(f"{p.name}_") for p in self.providers)
