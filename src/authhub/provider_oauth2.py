"""OAuth2 authorization-code providers (GitHub, Google, Facebook).

Flow:
1. /login stores a handshake (random state, optional `from` redirect and
   `site` audience) in a short-lived session token, then redirects the user
   to the provider's authorization page
2. /callback checks the returned state against the handshake, exchanges the
   code for an access token, fetches user info and issues the user token

Each provider kind differs only by its Endpoint: URLs, scopes and the
mapping from the provider's user-info JSON to User.
"""

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx
from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from loguru import logger

from authhub.errors import TokenError
from authhub.providers import LoginProvider, Params
from authhub.token import Claims, Handshake, User

HANDSHAKE_DURATION = timedelta(minutes=15)

UserMapper = Callable[[dict[str, Any]], User]


@dataclass(frozen=True)
class Endpoint:
    """Provider-specific OAuth2 endpoints and user mapping."""

    auth_url: str
    token_url: str
    info_url: str
    map_user: UserMapper
    scopes: tuple[str, ...] = ()


def _default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=30.0)


class OAuth2Provider(LoginProvider):
    """Generic OAuth2 provider driven by an Endpoint."""

    def __init__(
        self,
        name: str,
        params: Params,
        endpoint: Endpoint,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ):
        super().__init__(name, params)
        self.endpoint = endpoint
        self.client_factory = client_factory or _default_client

    async def login(self, request: Request) -> Response:
        state = secrets.token_urlsafe(32)
        claims = Claims(
            aud=request.query_params.get("site"),
            exp=int((datetime.now(timezone.utc) + HANDSHAKE_DURATION).timestamp()),
            handshake=Handshake(state=state, from_url=request.query_params.get("from")),
            session_only=True,
        )

        query = {
            "client_id": self.params.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "state": state,
        }
        if self.endpoint.scopes:
            query["scope"] = " ".join(self.endpoint.scopes)

        response = RedirectResponse(
            f"{self.endpoint.auth_url}?{urlencode(query)}",
            status_code=status.HTTP_302_FOUND,
        )
        self.token_service.set(response, claims)
        logger.debug(f"Started {self.name} login, aud={claims.aud}")
        return response

    async def callback(self, request: Request) -> Response:
        try:
            handshake = self.handshake(request)
        except TokenError as e:
            return self.error(status.HTTP_403_FORBIDDEN, f"failed to check handshake: {e}")

        code = request.query_params.get("code")
        if not code:
            return self.error(status.HTTP_400_BAD_REQUEST, "missing authorization code")

        try:
            user = await self.fetch_user(code)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to get {self.name} user: {e}")
            return self.error(status.HTTP_502_BAD_GATEWAY, f"failed to get user info from {self.name}")

        return await self.issue(handshake, user)

    async def fetch_user(self, code: str) -> User:
        """Exchange authorization code and load the user.

        Raises:
            httpx.HTTPError: Provider request failed
            ValueError: Provider response is missing token or user id
        """
        async with self.client_factory() as client:
            token_response = await client.post(
                self.endpoint.token_url,
                data={
                    "client_id": self.params.client_id,
                    "client_secret": self.params.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_url,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise ValueError("no access_token in token response")

            info_response = await client.get(
                self.endpoint.info_url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
            info_response.raise_for_status()
            data = info_response.json()

        user = self.endpoint.map_user(data)
        if not user.id:
            raise ValueError("no user id in user info")
        return user.model_copy(update={"id": self.user_id(user.id)})


def _map_github(data: dict[str, Any]) -> User:
    login = str(data.get("login") or "")
    return User(
        name=data.get("name") or login,
        id=login,
        picture=data.get("avatar_url"),
        email=data.get("email"),
    )


def _map_google(data: dict[str, Any]) -> User:
    user_id = str(data.get("sub") or "")
    return User(
        name=data.get("name") or f"noname_{user_id[:5]}",
        id=user_id,
        picture=data.get("picture"),
        email=data.get("email"),
    )


def _map_facebook(data: dict[str, Any]) -> User:
    picture = (data.get("picture") or {}).get("data") or {}
    return User(
        name=data.get("name") or "",
        id=str(data.get("id") or ""),
        picture=picture.get("url"),
        email=data.get("email"),
    )


GITHUB = Endpoint(
    auth_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
    info_url="https://api.github.com/user",
    map_user=_map_github,
)

GOOGLE = Endpoint(
    auth_url="https://accounts.google.com/o/oauth2/auth",
    token_url="https://oauth2.googleapis.com/token",
    info_url="https://www.googleapis.com/oauth2/v3/userinfo",
    map_user=_map_google,
    scopes=("https://www.googleapis.com/auth/userinfo.profile",),
)

FACEBOOK = Endpoint(
    auth_url="https://www.facebook.com/dialog/oauth",
    token_url="https://graph.facebook.com/oauth/access_token",
    info_url="https://graph.facebook.com/me?fields=id,name,picture",
    map_user=_map_facebook,
    scopes=("public_profile",),
)


def new_github(params: Params) -> OAuth2Provider:
    return OAuth2Provider("github", params, GITHUB)


def new_google(params: Params) -> OAuth2Provider:
    return OAuth2Provider("google", params, GOOGLE)


def new_facebook(params: Params) -> OAuth2Provider:
    return OAuth2Provider("facebook", params, FACEBOOK)
