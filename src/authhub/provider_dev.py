"""Dev/dummy login provider for local development and testing.

Runs the same login → callback handshake as real OAuth2 providers, but
approves every login automatically without leaving the service.
NOT FOR PRODUCTION - no credential verification at all.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from loguru import logger

from authhub.errors import TokenError
from authhub.provider_oauth2 import HANDSHAKE_DURATION
from authhub.providers import LoginProvider, Params
from authhub.token import Claims, Handshake, User

DEFAULT_DEV_USER = "dev_user"
CODE_TTL = timedelta(minutes=10)


class DevProvider(LoginProvider):
    """Auto-approving provider.

    1. /login issues a one-shot code and redirects to our own /callback
    2. /callback exchanges the code and logs the user in

    The user name comes from `?user=` on login (default "dev_user").
    Pending codes live in memory and are lost on restart.
    """

    def __init__(self, params: Params):
        super().__init__("dev", params)
        self._pending: dict[str, dict[str, Any]] = {}
        logger.warning("Dev provider initialized - NOT FOR PRODUCTION USE")

    async def login(self, request: Request) -> Response:
        now = datetime.now(timezone.utc)
        state = secrets.token_urlsafe(32)
        code = secrets.token_urlsafe(32)
        self._prune(now)
        self._pending[code] = {
            "user": request.query_params.get("user") or DEFAULT_DEV_USER,
            "expires_at": now + CODE_TTL,
        }

        claims = Claims(
            aud=request.query_params.get("site"),
            exp=int((now + HANDSHAKE_DURATION).timestamp()),
            handshake=Handshake(state=state, from_url=request.query_params.get("from")),
            session_only=True,
        )
        response = RedirectResponse(
            f"{self.redirect_url}?{urlencode({'code': code, 'state': state})}",
            status_code=status.HTTP_302_FOUND,
        )
        self.token_service.set(response, claims)
        logger.info(f"Created dev authorization: code={code[:8]}...")
        return response

    async def callback(self, request: Request) -> Response:
        try:
            handshake = self.handshake(request)
        except TokenError as e:
            return self.error(status.HTTP_403_FORBIDDEN, f"failed to check handshake: {e}")

        auth = self._pending.pop(request.query_params.get("code") or "", None)
        if auth is None or datetime.now(timezone.utc) > auth["expires_at"]:
            return self.error(status.HTTP_403_FORBIDDEN, "unknown or expired code")

        name = auth["user"]
        return await self.issue(handshake, User(name=name, id=self.user_id(name)))

    def _prune(self, now: datetime) -> None:
        expired = [code for code, auth in self._pending.items() if now > auth["expires_at"]]
        for code in expired:
            del self._pending[code]
        if expired:
            logger.debug(f"Pruned {len(expired)} expired dev codes")


def new_dev(params: Params) -> DevProvider:
    return DevProvider(params)
