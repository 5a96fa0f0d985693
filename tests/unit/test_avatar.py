"""Unit tests for the avatar proxy."""

import hashlib

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authhub.avatar import AvatarProxy
from authhub.token import User

PICTURE = "https://cdn.example.com/pic.png"


def picture_api(request: httpx.Request) -> httpx.Response:
    if str(request.url) == PICTURE:
        return httpx.Response(200, content=b"\x89PNG-data")
    return httpx.Response(404)


@pytest.fixture
def proxy(avatar_store):
    transport = httpx.MockTransport(picture_api)
    return AvatarProxy(
        store=avatar_store,
        url="http://testserver/",
        client_factory=lambda: httpx.AsyncClient(transport=transport),
    )


def make_client(proxy: AvatarProxy) -> TestClient:
    app = FastAPI()
    app.add_route("/avatar/{path:path}", proxy.handler, methods=["GET"])
    return TestClient(app)


class TestPut:
    """Tests for AvatarProxy.put."""

    @pytest.mark.asyncio
    async def test_put(self, proxy, avatar_store):
        url = await proxy.put(User(name="alice", id="github_abc", picture=PICTURE))

        assert url == "http://testserver/avatar/github_abc.image"
        assert avatar_store.images["github_abc.image"] == b"\x89PNG-data"

    @pytest.mark.asyncio
    async def test_put_without_picture(self, proxy, avatar_store):
        url = await proxy.put(User(name="alice", id="github_abc"))

        assert url == ""
        assert avatar_store.images == {}

    @pytest.mark.asyncio
    async def test_put_fetch_failure(self, proxy, avatar_store):
        user = User(name="alice", id="github_abc", picture="https://cdn.example.com/missing.png")

        with pytest.raises(httpx.HTTPStatusError):
            await proxy.put(user)

        assert avatar_store.images == {}


class TestHandler:
    """Tests for AvatarProxy.handler."""

    def test_serve(self, proxy, avatar_store):
        avatar_store.put("dev_1", b"bytes")

        resp = make_client(proxy).get("/avatar/dev_1.image")

        assert resp.status_code == 200
        assert resp.content == b"bytes"
        assert resp.headers["content-type"] == "application/octet-stream"
        assert resp.headers["etag"] == f'"{hashlib.sha1(b"bytes").hexdigest()}"'
        assert "max-age" in resp.headers["cache-control"]

    def test_not_modified(self, proxy, avatar_store):
        avatar_store.put("dev_1", b"bytes")
        client = make_client(proxy)
        etag = client.get("/avatar/dev_1.image").headers["etag"]

        resp = client.get("/avatar/dev_1.image", headers={"If-None-Match": etag})

        assert resp.status_code == 304
        assert resp.content == b""

    def test_replaced_image_served_again(self, proxy, avatar_store):
        avatar_store.put("dev_1", b"old")
        client = make_client(proxy)
        etag = client.get("/avatar/dev_1.image").headers["etag"]

        avatar_store.put("dev_1", b"new-picture")
        resp = client.get("/avatar/dev_1.image", headers={"If-None-Match": etag})

        assert resp.status_code == 200
        assert resp.content == b"new-picture"
        assert resp.headers["etag"] != etag

    @pytest.mark.parametrize(
        "data,media_type",
        [
            (b"\x89PNG\r\n\x1a\n....", "image/png"),
            (b"\xff\xd8\xff\xe0....", "image/jpeg"),
            (b"GIF89a....", "image/gif"),
            (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        ],
    )
    def test_content_type_detected(self, proxy, avatar_store, data, media_type):
        avatar_store.put("dev_1", data)

        resp = make_client(proxy).get("/avatar/dev_1.image")

        assert resp.headers["content-type"] == media_type

    def test_unknown_avatar(self, proxy):
        resp = make_client(proxy).get("/avatar/nobody.image")

        assert resp.status_code == 404
        assert resp.json() == {"error": "avatar nobody.image not found"}
