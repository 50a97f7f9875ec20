"""Pytest configuration and fixtures for Pinboard vault sync tests."""

import json
from typing import Callable
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from pinboard_vault_sync.client import PinboardClient
from pinboard_vault_sync.models import Post, PostCollection
from pinboard_vault_sync.request import HttpClient
from pinboard_vault_sync.settings import Settings, SettingsStore
from pinboard_vault_sync.sync import PinboardSync
from pinboard_vault_sync.vault import Vault


class RecordingTransport(httpx.AsyncBaseTransport):
    """httpx transport that records requests and answers from a handler."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def json_response(data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, content=json.dumps(data))


@pytest.fixture
def mock_posts_data() -> list[dict]:
    """Sample posts as returned by the Pinboard API."""
    return [
        {
            "href": "https://example.com/python-testing",
            "description": "Python Testing Best Practices",
            "extended": "Comprehensive guide to testing in Python with pytest",
            "meta": "4e0b0c9f6fe0d5cb3bfd4b8ba7d8e5a0",
            "hash": "1d8f2e3c1d4e",
            "time": "2024-01-15T10:30:00Z",
            "shared": "yes",
            "toread": "no",
            "tags": "python testing pytest",
        },
        {
            "href": "https://example.com/fastapi-tutorial",
            "description": "FastAPI Tutorial",
            "extended": "Learn how to build APIs with FastAPI",
            "meta": "9a1b",
            "hash": "7c2d",
            "time": "2024-01-15T15:45:00Z",
            "shared": "no",
            "toread": "yes",
            "tags": "python fastapi web",
        },
        {
            "href": "https://example.com/async-programming",
            "description": "Async Programming in Python",
            "extended": "",
            "meta": "",
            "hash": "",
            "time": "2024-01-10T09:20:00Z",
            "shared": "yes",
            "toread": "no",
            "tags": "",
        },
    ]


@pytest.fixture
def mock_recent_response(mock_posts_data) -> dict:
    """Sample posts/recent response."""
    return {
        "date": "2024-01-15T16:00:00Z",
        "user": "testuser",
        "posts": mock_posts_data,
    }


@pytest.fixture
def mock_tags_data() -> dict:
    """Sample tags/get response."""
    return {"python": 3, "testing": 1, "pytest": 1, "fastapi": 1, "web": 1}


@pytest.fixture
def sample_posts(mock_posts_data) -> list[Post]:
    return [Post.from_response(post) for post in mock_posts_data]


@pytest.fixture
def valid_token() -> str:
    """Valid Pinboard API token for testing."""
    return "testuser:1234567890ABCDEF"


@pytest.fixture
def settings(valid_token) -> Settings:
    return Settings(api_token=valid_token, has_accepted_disclaimer=True)


@pytest.fixture
def settings_store(tmp_path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
async def vault(tmp_path):
    vault = Vault(tmp_path / "vault", tz="UTC")
    yield vault
    await vault.close()


@pytest.fixture
def make_client(valid_token) -> Callable:
    """Build a PinboardClient whose requests are answered by ``handler``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]):
        transport = RecordingTransport(handler)
        return PinboardClient(valid_token, http=HttpClient(transport=transport)), transport

    return _make


@pytest.fixture
def mock_client(sample_posts) -> Mock:
    """A mocked PinboardClient returning sample data."""
    client = Mock(spec=PinboardClient)
    client.posts = Mock()
    client.posts.recent = AsyncMock(
        return_value=PostCollection(user="testuser", posts=sample_posts)
    )
    client.tags = Mock()
    client.tags.get = AsyncMock(return_value=[])
    client.tags.rename = AsyncMock(return_value={"result": "done"})
    client.note_posts = Mock()
    client.note_posts.list = AsyncMock(return_value=[])
    client.note_posts.get = AsyncMock()
    return client


@pytest.fixture
def notices() -> list[str]:
    return []


@pytest.fixture
async def service(vault, settings_store, settings, mock_client, notices) -> PinboardSync:
    """A PinboardSync wired to a temporary vault and a mocked client."""
    return PinboardSync(
        vault,
        settings_store,
        settings,
        client_factory=lambda token: mock_client,
        notify=notices.append,
        clock=lambda: 1_700_000_000.0,
    )
