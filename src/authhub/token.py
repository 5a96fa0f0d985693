"""JWT token service.

Issues and verifies HS256 session tokens using PyJWT. Tokens travel in an
http-only cookie (or a header for non-browser clients); a second,
script-readable cookie carries the token id for XSRF protection.

Secrets are looked up per audience (site id), so one service can sign tokens
for several tenants with different keys.
"""

import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt as pyjwt
from fastapi import Request, Response
from pydantic import BaseModel, ConfigDict, Field

from authhub.errors import TokenError

ALGORITHM = "HS256"

DEFAULT_TOKEN_DURATION = timedelta(minutes=15)
DEFAULT_COOKIE_DURATION = timedelta(days=31)
DEFAULT_JWT_COOKIE_NAME = "JWT"
DEFAULT_JWT_HEADER_KEY = "X-JWT"
DEFAULT_XSRF_COOKIE_NAME = "XSRF-TOKEN"
DEFAULT_XSRF_HEADER_KEY = "X-XSRF-TOKEN"
DEFAULT_ISSUER = "go-pkgz/auth"


class User(BaseModel):
    """Authenticated user stored in token claims."""

    name: str = Field(description="Display name")
    id: str = Field(description="User ID, prefixed by provider name")
    picture: str | None = Field(default=None, description="Avatar URL")
    email: str | None = Field(default=None, description="User email")
    attrs: dict[str, Any] = Field(
        default_factory=dict,
        description="Custom attributes (admin flag, roles, ...)",
    )

    def is_admin(self) -> bool:
        return bool(self.attrs.get("admin", False))


class Handshake(BaseModel):
    """OAuth2 handshake state kept between login and callback."""

    model_config = ConfigDict(populate_by_name=True)

    state: str | None = None
    from_url: str | None = Field(default=None, alias="from")
    id: str | None = None


class Claims(BaseModel):
    """Token payload."""

    model_config = ConfigDict(populate_by_name=True)

    aud: str | None = None
    iss: str | None = None
    exp: int = 0
    iat: int = 0
    jti: str | None = None
    user: User | None = None
    handshake: Handshake | None = None
    session_only: bool = Field(default=False, alias="sess_only")

    def is_expired(self) -> bool:
        return self.exp <= int(datetime.now(timezone.utc).timestamp())


SecretReader = Callable[[str], str]
ClaimsUpdater = Callable[[Claims], Claims]


@dataclass(frozen=True)
class TokenOpts:
    """Token service options. Names and durations are already resolved."""

    secret_reader: SecretReader
    claims_upd: ClaimsUpdater | None = None
    secure_cookies: bool = False
    token_duration: timedelta = field(default=DEFAULT_TOKEN_DURATION)
    cookie_duration: timedelta = field(default=DEFAULT_COOKIE_DURATION)
    disable_xsrf: bool = False
    jwt_cookie_name: str = DEFAULT_JWT_COOKIE_NAME
    jwt_header_key: str = DEFAULT_JWT_HEADER_KEY
    xsrf_cookie_name: str = DEFAULT_XSRF_COOKIE_NAME
    xsrf_header_key: str = DEFAULT_XSRF_HEADER_KEY
    issuer: str = DEFAULT_ISSUER


class TokenService:
    """Issues, reads and resets session tokens.

    Example:
        >>> svc = TokenService(TokenOpts(secret_reader=lambda aud: "secret"))
        >>> claims = Claims(aud="site", user=User(name="dev", id="dev_1"))
        >>> token = svc.token(claims)
        >>> svc.parse(token).user.name
        'dev'
    """

    def __init__(self, opts: TokenOpts):
        self.opts = opts

    def token(self, claims: Claims) -> str:
        """Encode claims into a signed JWT.

        Missing iss, iat, jti and exp are filled in.

        Raises:
            TokenError: secret lookup failed
        """
        claims = self._complete(claims)
        payload = claims.model_dump(by_alias=True, exclude_none=True)
        return pyjwt.encode(payload, self._secret(claims.aud), algorithm=ALGORITHM)

    def parse(self, token: str, allow_expired: bool = False) -> Claims:
        """Verify a JWT and return its claims.

        The signing secret is selected by the (unverified) aud claim, then the
        signature is checked with it.

        Args:
            token: JWT string
            allow_expired: Skip the expiration check

        Returns:
            Decoded claims

        Raises:
            TokenError: Token malformed, expired or signed with another secret
        """
        try:
            unverified = pyjwt.decode(token, options={"verify_signature": False})
        except pyjwt.InvalidTokenError as e:
            raise TokenError(f"can't parse token: {e}") from e

        aud = unverified.get("aud")
        if isinstance(aud, list):
            aud = aud[0] if aud else None

        try:
            payload = pyjwt.decode(
                token,
                self._secret(aud),
                algorithms=[ALGORITHM],
                options={"verify_aud": False, "verify_exp": not allow_expired},
            )
        except pyjwt.ExpiredSignatureError as e:
            raise TokenError("token expired") from e
        except pyjwt.InvalidTokenError as e:
            raise TokenError(f"invalid token: {e}") from e

        return Claims.model_validate(payload)

    def set(self, response: Response, claims: Claims) -> Claims:
        """Issue token and XSRF cookies on the response.

        Returns:
            Claims as they were encoded (after the claims updater)
        """
        if claims.user is not None and self.opts.claims_upd is not None:
            claims = self.opts.claims_upd(claims)
        claims = self._complete(claims)
        token = self.token(claims)

        max_age = None
        if not claims.session_only:
            max_age = int(self.opts.cookie_duration.total_seconds())

        response.set_cookie(
            self.opts.jwt_cookie_name,
            token,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=self.opts.secure_cookies,
            samesite="lax",
        )
        response.set_cookie(
            self.opts.xsrf_cookie_name,
            claims.jti or "",
            max_age=max_age,
            path="/",
            httponly=False,
            secure=self.opts.secure_cookies,
            samesite="lax",
        )
        return claims

    def get(self, request: Request) -> tuple[Claims, str]:
        """Read and verify the token from header or cookie.

        Expired tokens are returned as is; callers decide whether to refresh
        or reject them. Cookie tokens must be accompanied by a matching XSRF
        header unless XSRF is disabled or the token is a handshake.

        Returns:
            Tuple of (claims, raw token)

        Raises:
            TokenError: No token, invalid token, or XSRF mismatch
        """
        from_cookie = False
        token = request.headers.get(self.opts.jwt_header_key)
        if not token:
            token = request.cookies.get(self.opts.jwt_cookie_name)
            from_cookie = True
        if not token:
            raise TokenError("token cookie was not presented")

        claims = self.parse(token, allow_expired=True)

        if from_cookie and not self.opts.disable_xsrf and claims.handshake is None:
            if request.headers.get(self.opts.xsrf_header_key) != claims.jti:
                raise TokenError("xsrf mismatch")

        return claims, token

    def reset(self, response: Response) -> None:
        """Clear token and XSRF cookies."""
        response.delete_cookie(self.opts.jwt_cookie_name, path="/")
        response.delete_cookie(self.opts.xsrf_cookie_name, path="/")

    def _complete(self, claims: Claims) -> Claims:
        now = datetime.now(timezone.utc)
        update: dict[str, Any] = {}
        if not claims.iss:
            update["iss"] = self.opts.issuer
        if not claims.iat:
            update["iat"] = int(now.timestamp())
        if not claims.jti:
            update["jti"] = secrets.token_hex(16)
        if not claims.exp:
            update["exp"] = int((now + self.opts.token_duration).timestamp())
        return claims.model_copy(update=update) if update else claims

    def _secret(self, aud: str | None) -> str:
        try:
            return self.opts.secret_reader(aud or "")
        except Exception as e:
            raise TokenError(f"can't get secret for {aud!r}: {e}") from e
