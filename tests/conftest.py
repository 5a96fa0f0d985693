"""Shared fixtures for authhub tests."""

from datetime import timedelta

import pytest

from authhub.avatar import AvatarStore
from authhub.service import Opts, Service

SECRET = "test-secret-0123456789-abcdefghijklmnop"
BASE_URL = "http://testserver"


class MemoryAvatarStore(AvatarStore):
    """In-memory avatar store for tests."""

    def __init__(self):
        self.images: dict[str, bytes] = {}

    def put(self, user_id: str, data: bytes) -> str:
        avatar_id = f"{user_id}.image"
        self.images[avatar_id] = data
        return avatar_id

    def get(self, avatar_id: str) -> bytes | None:
        return self.images.get(avatar_id)


def secret_reader(aud: str) -> str:
    return SECRET


@pytest.fixture
def avatar_store():
    return MemoryAvatarStore()


@pytest.fixture
def opts():
    return Opts(
        secret_reader=secret_reader,
        token_duration=timedelta(hours=1),
        cookie_duration=timedelta(hours=24),
        url=BASE_URL,
    )


@pytest.fixture
def service(opts):
    return Service(opts)
