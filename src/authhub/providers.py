"""Provider interface and registry records.

A provider is a named identity backend serving one login flow:
- {prefix}/{name}/login     starts the flow
- {prefix}/{name}/callback  finishes it and issues the session token
- {prefix}/{name}/logout    clears the session token

Providers are wrapped into ProviderDescriptor records kept by the Service.
"""

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from authhub.avatar import AvatarProxy
from authhub.errors import TokenError
from authhub.token import Claims, TokenService, User

RequestHandler = Callable[[Request], Awaitable[Response]]


@dataclass(frozen=True)
class Params:
    """Shared construction parameters for all provider kinds."""

    url: str
    token_service: TokenService
    issuer: str
    avatar_proxy: AvatarProxy | None = None
    client_id: str = ""
    client_secret: str = ""


@dataclass(frozen=True)
class ProviderDescriptor:
    """Registered provider: identity plus its request handler."""

    name: str
    client_id: str
    client_secret: str
    issuer: str
    handler: RequestHandler


def hash_id(value: str) -> str:
    """Stable opaque ID derived from a provider's own user ID."""
    return hashlib.sha1(value.encode()).hexdigest()


class LoginProvider(ABC):
    """Abstract login provider.

    Subclasses implement login and callback; logout is shared since it only
    clears the provider-agnostic token cookies.
    """

    def __init__(self, name: str, params: Params):
        self.name = name
        self.params = params

    @property
    def token_service(self) -> TokenService:
        return self.params.token_service

    @property
    def redirect_url(self) -> str:
        return f"{self.params.url.rstrip('/')}/auth/{self.name}/callback"

    def user_id(self, raw_id: str) -> str:
        return f"{self.name}_{hash_id(raw_id)}"

    async def handle(self, request: Request) -> Response:
        """Route request to login, callback or logout by path suffix."""
        path = request.url.path.rstrip("/")
        if path.endswith("/login"):
            return await self.login(request)
        if path.endswith("/callback"):
            return await self.callback(request)
        if path.endswith("/logout"):
            return await self.logout(request)
        return self.error(status.HTTP_404_NOT_FOUND, f"unknown path {request.url.path}")

    @abstractmethod
    async def login(self, request: Request) -> Response:
        pass

    @abstractmethod
    async def callback(self, request: Request) -> Response:
        pass

    async def logout(self, request: Request) -> Response:
        response = Response(status_code=status.HTTP_200_OK)
        self.token_service.reset(response)
        return response

    def handshake(self, request: Request) -> Claims:
        """Load the handshake saved by login and check the returned state.

        Raises:
            TokenError: No handshake, expired handshake, or state mismatch
        """
        claims, _ = self.token_service.get(request)
        if claims.handshake is None or claims.is_expired():
            raise TokenError("invalid handshake token")
        if request.query_params.get("state") != claims.handshake.state:
            raise TokenError("unexpected state")
        return claims

    async def issue(self, handshake: Claims, user: User) -> Response:
        """Finish login: proxy avatar, set user token, redirect or render user.

        Args:
            handshake: Claims saved by login (aud and from redirect)
            user: Mapped user with provider-prefixed ID
        """
        avatar_proxy = self.params.avatar_proxy
        if avatar_proxy is not None and user.picture:
            try:
                user = user.model_copy(update={"picture": await avatar_proxy.put(user)})
            except httpx.HTTPError as e:
                logger.warning(f"Failed to proxy avatar for {user.id}: {e}")

        from_url = handshake.handshake.from_url if handshake.handshake else None
        if from_url:
            response: Response = RedirectResponse(from_url, status_code=status.HTTP_302_FOUND)
        else:
            response = JSONResponse(user.model_dump(exclude_none=True))

        self.token_service.set(
            response,
            Claims(aud=handshake.aud, iss=self.params.issuer, user=user),
        )
        logger.info(f"User {user.name} ({user.id}) logged in with {self.name}")
        return response

    @staticmethod
    def error(status_code: int, message: str) -> JSONResponse:
        return JSONResponse({"error": message}, status_code=status_code)

    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            name=self.name,
            client_id=self.params.client_id,
            client_secret=self.params.client_secret,
            issuer=self.params.issuer,
            handler=self.handle,
        )
