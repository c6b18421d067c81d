"""HTTP client for the external auth provider."""

import logging
from typing import Any

import httpx

from studiosync.config import AuthSettings
from studiosync.domain.exceptions import AuthenticationError, ExternalServiceError
from studiosync.domain.ports import AuthenticatedUser, IAuthProvider
from studiosync.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)


class AuthProviderClient(IAuthProvider):
    """Resolves bearer tokens through GET {auth.url}/auth/v1/user.

    The provider wants the user's token as Bearer AND the project api key in the
    "apikey" header; without the key every call is a 401 no matter the token.
    """

    USER_ENDPOINT = "/auth/v1/user"

    def __init__(self, settings: AuthSettings) -> None:
        self.settings = settings

    # Hey future me - the split between 401 and 502 matters to the frontend! 401/403 from
    # the provider means "this token is bad, log in again". Anything else (5xx, timeouts,
    # connection refused) means the provider is down and the token may be fine - the client
    # should retry later, NOT throw the user back to the login screen.
    async def get_user(self, access_token: str) -> AuthenticatedUser:
        if not access_token:
            raise AuthenticationError("Missing access token")

        client = await HttpClientPool.get_client()
        try:
            response = await client.get(
                f"{self.settings.url}{self.USER_ENDPOINT}",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "apikey": self.settings.api_key,
                },
                timeout=self.settings.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("Auth provider unreachable: %s", e)
            raise ExternalServiceError(
                f"Auth provider unreachable: {e}", service="auth"
            ) from e

        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired access token")
        if response.status_code != 200:
            raise ExternalServiceError(
                f"Auth provider returned {response.status_code}",
                service="auth",
                status_code=response.status_code,
            )

        try:
            payload: dict[str, Any] = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                "Auth provider returned invalid JSON", service="auth"
            ) from e

        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            raise AuthenticationError("Auth provider returned no user")
        return AuthenticatedUser(id=str(user_id), email=payload.get("email"), raw=payload)
