"""Fixtures for API tests: stubbed metadata fetch and authenticated users."""
from collections.abc import Awaitable, Callable, Generator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from services.url_scraper import UrlMetadata

RegisterUser = Callable[..., Awaitable[dict[str, str]]]


@pytest.fixture(autouse=True)
def mock_fetch_metadata() -> Generator[AsyncMock]:
    """Bookmark creation never scrapes a real page in API tests."""
    mock = AsyncMock(
        return_value=UrlMetadata(title="Example Page", favicon="https://example.com/favicon.ico"),
    )
    with patch("services.bookmark_service.fetch_url_metadata", mock):
        yield mock


@pytest.fixture
def register_user(client: AsyncClient) -> RegisterUser:
    """
    Return a helper that registers a user and yields Authorization headers.

    The helper clears the client's cookie jar so later requests are only
    authenticated when the returned headers are passed explicitly.
    """
    async def _register(email: str, password: str = "secret123") -> dict[str, str]:
        response = await client.post(
            "/auth/register", json={"email": email, "password": password},
        )
        assert response.status_code == 200, response.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register


@pytest.fixture
async def auth_headers(register_user: RegisterUser) -> dict[str, str]:
    """Headers for a freshly registered user."""
    return await register_user("owner@example.com")


@pytest.fixture
async def other_auth_headers(register_user: RegisterUser) -> dict[str, str]:
    """Headers for a second, unrelated user."""
    return await register_user("other@example.com")
