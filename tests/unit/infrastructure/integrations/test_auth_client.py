"""Tests for the auth provider client."""

import httpx
import pytest
from pytest_httpx import HTTPXMock

from studiosync.config import AuthSettings
from studiosync.domain.exceptions import AuthenticationError, ExternalServiceError
from studiosync.infrastructure.integrations import AuthProviderClient

USER_URL = "https://auth.test/auth/v1/user"


@pytest.fixture
def auth_client() -> AuthProviderClient:
    return AuthProviderClient(AuthSettings(url="https://auth.test/", api_key="anon-key"))


class TestAuthProviderClient:
    async def test_resolves_user(
        self, auth_client: AuthProviderClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=USER_URL,
            json={"id": "user-1", "email": "dj@example.com"},
            match_headers={"Authorization": "Bearer token-abc", "apikey": "anon-key"},
        )

        user = await auth_client.get_user("token-abc")

        assert user.id == "user-1"
        assert user.email == "dj@example.com"

    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_rejected_token(
        self, auth_client: AuthProviderClient, httpx_mock: HTTPXMock, status_code: int
    ) -> None:
        httpx_mock.add_response(url=USER_URL, status_code=status_code)

        with pytest.raises(AuthenticationError):
            await auth_client.get_user("expired")

    async def test_provider_outage_is_external_error(
        self, auth_client: AuthProviderClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=USER_URL, status_code=503)

        with pytest.raises(ExternalServiceError) as exc_info:
            await auth_client.get_user("token")

        assert exc_info.value.status_code == 503

    async def test_unreachable_provider(
        self, auth_client: AuthProviderClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=USER_URL)

        with pytest.raises(ExternalServiceError):
            await auth_client.get_user("token")

    async def test_empty_token_never_calls_provider(
        self, auth_client: AuthProviderClient
    ) -> None:
        with pytest.raises(AuthenticationError):
            await auth_client.get_user("")
