"""
OAuth access token management.

The grant type is resolved from the supplied credentials when the manager is
built; tokens are fetched lazily before the first authenticated request and
refreshed once they expire.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import httpx
from pydantic import ValidationError

from snoopager.config import ClientConfig
from snoopager.models.responses import TokenResponse
from snoopager.reddit.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    NoCredentialsError,
    RequestTimeoutError,
    TransportError,
)
from snoopager.utils.logger import get_logger

logger = get_logger(__name__)


class GrantType(str, Enum):
    """How the token manager obtains access tokens."""

    REFRESH_TOKEN = "refresh_token"
    PASSWORD = "password"
    CLIENT_CREDENTIALS = "client_credentials"
    INSTALLED_CLIENT = "https://oauth.reddit.com/grants/installed_client"
    # A caller-supplied access token that cannot be refreshed
    STATIC = "static"


def resolve_grant_type(config: ClientConfig) -> GrantType:
    """
    Pick the grant type implied by the credentials in `config`.

    Raises:
        NoCredentialsError: If no combination is complete, or if both a
            refresh token and a username/password pair were supplied
    """
    has_client = config.client_id is not None
    has_secret = config.client_secret is not None
    has_login = config.username is not None and config.password is not None

    if config.refresh_token and has_login:
        raise NoCredentialsError(
            "Ambiguous credentials: supply either refresh_token or username/password, not both"
        )
    if has_client and has_secret and config.refresh_token:
        return GrantType.REFRESH_TOKEN
    if has_client and has_secret and has_login:
        return GrantType.PASSWORD
    if has_client and config.device_id:
        return GrantType.INSTALLED_CLIENT
    if has_client and has_secret:
        return GrantType.CLIENT_CREDENTIALS
    if config.access_token:
        return GrantType.STATIC
    raise NoCredentialsError()


@dataclass
class AuthState:
    """Access token currently held by a client."""

    access_token: Optional[str] = None
    expires_at: Optional[float] = None
    scope: List[str] = field(default_factory=list)


class TokenManager:
    """
    Lazily obtains and refreshes the bearer token for a client.

    Concurrent callers that find the token expired share one refresh: the
    refresh runs under a lock and re-checks expiry once the lock is held.

    Example:
        >>> manager = TokenManager(config, http_client)
        >>> token = await manager.ensure_token()
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the token manager.

        Args:
            config: Client configuration carrying the credentials
            http_client: Transport used for token endpoint requests
            clock: Clock used to compute token expiry

        Raises:
            NoCredentialsError: If the credentials do not form a valid set
        """
        self.config = config
        self.grant_type = resolve_grant_type(config)
        self.state = AuthState(access_token=config.access_token)
        self._http = http_client
        self._clock = clock
        self._refresh_lock = asyncio.Lock()

        logger.info(
            "token_manager_initialized",
            grant_type=self.grant_type.value,
            client_id=f"{config.client_id[:8]}..." if config.client_id else None,
        )

    @property
    def can_refresh(self) -> bool:
        return self.grant_type is not GrantType.STATIC

    def is_expired(self) -> bool:
        """True if no token is cached or the cached token is past its expiry."""
        if self.state.access_token is None:
            return True
        if self.state.expires_at is None:
            return False
        return self._clock() > self.state.expires_at

    def remaining_lifetime(self) -> Optional[float]:
        """Seconds until the cached token expires, or None if unknown."""
        if self.state.access_token is None or self.state.expires_at is None:
            return None
        return self.state.expires_at - self._clock()

    def invalidate(self) -> None:
        """Drop the cached token so the next ensure_token() refreshes it."""
        self.state.access_token = None
        self.state.expires_at = None

    async def ensure_token(self) -> str:
        """
        Return a valid bearer token, refreshing it if needed.

        Raises:
            AuthenticationError: If the token endpoint rejects the credentials,
                or if a static token was invalidated
        """
        if not self.is_expired():
            return self.state.access_token

        if not self.can_refresh:
            raise AuthenticationError(
                "Access token is no longer valid and no refresh credentials were supplied"
            )

        async with self._refresh_lock:
            # Another task may have refreshed while we waited for the lock
            if not self.is_expired():
                return self.state.access_token
            return await self.refresh()

    def _grant_form(self) -> dict:
        if self.grant_type is GrantType.REFRESH_TOKEN:
            return {"grant_type": "refresh_token", "refresh_token": self.config.refresh_token}
        if self.grant_type is GrantType.PASSWORD:
            return {
                "grant_type": "password",
                "username": self.config.username,
                "password": self.config.password,
            }
        if self.grant_type is GrantType.INSTALLED_CLIENT:
            return {"grant_type": GrantType.INSTALLED_CLIENT.value, "device_id": self.config.device_id}
        return {"grant_type": "client_credentials"}

    async def refresh(self) -> str:
        """
        Request a new access token from the token endpoint.

        Returns:
            The new access token

        Raises:
            AuthenticationError: On `invalid_grant` or any other OAuth error
            MalformedResponseError: If the response is not a token payload
        """
        endpoint = self.config.token_url
        try:
            response = await self._http.post(
                endpoint,
                data=self._grant_form(),
                auth=(self.config.client_id or "", self.config.client_secret or ""),
                headers={"user-agent": self.config.user_agent},
                timeout=self.config.request_timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                timeout_seconds=self.config.request_timeout, endpoint=endpoint, attempts=1
            ) from e
        except httpx.TransportError as e:
            raise TransportError(f"Token request failed: {e}", endpoint=endpoint, attempts=1) from e

        token = _parse_token(response)
        # OAuth errors come back as 400 with the error code in the body
        if token is not None and isinstance(token.error, str):
            raise _oauth_error(token, endpoint)

        if response.status_code in (400, 401, 403):
            logger.error("access_token_rejected", status_code=response.status_code)
            raise AuthenticationError(
                f"Token endpoint rejected the client credentials ({response.status_code})",
                endpoint=endpoint,
            )

        if token is None:
            raise MalformedResponseError(
                "Token endpoint returned an unexpected body",
                status_code=response.status_code,
                endpoint=endpoint,
            )
        if token.is_error:
            raise _oauth_error(token, endpoint)
        if not token.access_token:
            raise MalformedResponseError(
                "Token endpoint response has no access_token",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        self.state.access_token = token.access_token
        self.state.expires_at = (
            self._clock() + token.expires_in if token.expires_in is not None else None
        )
        self.state.scope = token.scopes

        logger.info(
            "access_token_refreshed",
            grant_type=self.grant_type.value,
            expires_in=token.expires_in,
            scope=token.scope,
        )
        return token.access_token


def _parse_token(response: httpx.Response) -> Optional[TokenResponse]:
    try:
        return TokenResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return None


def _oauth_error(token: TokenResponse, endpoint: str) -> AuthenticationError:
    logger.error("access_token_error", error=token.error)
    if token.error == "invalid_grant":
        return AuthenticationError(
            '"Invalid grant" error returned from reddit. (You might have incorrect credentials.)',
            error=token.error,
            endpoint=endpoint,
        )
    detail = f"{token.error}: {token.error_description}" if token.error_description else f"{token.error}"
    return AuthenticationError(
        f"Reddit returned an error: {detail}",
        error=str(token.error) if token.error is not None else None,
        error_description=token.error_description,
        endpoint=endpoint,
    )
