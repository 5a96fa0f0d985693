"""Avatar proxy.

Downloads user pictures from identity providers once, keeps them in an
AvatarStore, and serves them back from our own URL space so pages never hot
link provider CDNs.
"""

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger

from authhub.token import User

DEFAULT_ROUTE_PATH = "/avatar"
DEFAULT_MEDIA_TYPE = "application/octet-stream"

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


class AvatarStore(ABC):
    """Abstract avatar storage.

    Implementations decide persistence (filesystem, object storage, database).
    """

    @abstractmethod
    def put(self, user_id: str, data: bytes) -> str:
        """Store avatar image for user.

        Args:
            user_id: User ID (provider-prefixed)
            data: Raw image bytes

        Returns:
            Avatar ID used to fetch the image later
        """
        pass

    @abstractmethod
    def get(self, avatar_id: str) -> bytes | None:
        """Load avatar image.

        Args:
            avatar_id: ID returned by put

        Returns:
            Image bytes, or None if unknown
        """
        pass


def detect_media_type(data: bytes) -> str:
    """Content type from image magic bytes, octet-stream if unknown."""
    for signature, media_type in _SIGNATURES:
        if data.startswith(signature):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_MEDIA_TYPE


def _default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=10.0, follow_redirects=True)


@dataclass
class AvatarProxy:
    """Avatar store bound to a public route."""

    store: AvatarStore
    url: str
    route_path: str = DEFAULT_ROUTE_PATH
    client_factory: Callable[[], httpx.AsyncClient] = field(default=_default_client)

    async def put(self, user: User) -> str:
        """Fetch user's picture into the store.

        Returns:
            Proxied avatar URL, or empty string if the user has no picture
        """
        if not user.picture:
            return ""

        async with self.client_factory() as client:
            response = await client.get(user.picture)
            response.raise_for_status()

        avatar_id = self.store.put(user.id, response.content)
        logger.debug(f"Stored avatar {avatar_id} for {user.id}")
        return f"{self.url.rstrip('/')}{self.route_path}/{avatar_id}"

    async def handler(self, request: Request) -> Response:
        """Serve avatar by the last path segment."""
        avatar_id = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        data = self.store.get(avatar_id) if avatar_id else None
        if data is None:
            return JSONResponse(
                {"error": f"avatar {avatar_id} not found"},
                status_code=status.HTTP_404_NOT_FOUND,
            )

        etag = f'"{hashlib.sha1(data).hexdigest()}"'
        headers = {"ETag": etag, "Cache-Control": "max-age=604800"}
        if request.headers.get("if-none-match") == etag:
            return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

        return Response(content=data, media_type=detect_media_type(data), headers=headers)
