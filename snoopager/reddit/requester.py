"""
Request pipeline for OAuth-authenticated Reddit API calls.

Each request passes through the rate gate, picks up a bearer token, is
dispatched over httpx, updates the rate window from the response headers and
is materialized into domain objects. Transient server errors on idempotent
requests are retried with exponential backoff; a 401 on a token that was about
to expire is retried once with a fresh token.
"""

import time
from typing import Any, Callable, Mapping, Optional

import httpx

from snoopager.config import ClientConfig
from snoopager.constants import IDEMPOTENT_HTTP_VERBS
from snoopager.reddit.auth import TokenManager
from snoopager.reddit.exceptions import (
    AuthenticationError,
    ForbiddenError,
    MalformedResponseError,
    NotFoundError,
    RateLimitExceeded,
    RequestTimeoutError,
    ResponseError,
    StaleTokenRace,
    TransientServerError,
    TransportError,
)
from snoopager.reddit.rate_limiter import RateLimitGate
from snoopager.utils.logger import get_logger, log_request_outcome

logger = get_logger(__name__)


class RequestPipeline:
    """
    Executes one API request through its full lifecycle.

    Attributes:
        config: Client configuration (retry codes, attempt cap, domain)
        gate: Rate limit gate shared by every request of the client
        tokens: Token manager shared by every request of the client
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient,
        gate: RateLimitGate,
        tokens: TokenManager,
        populate: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """
        Initialize the request pipeline.

        Args:
            config: Client configuration
            http_client: Transport used to send requests
            gate: Rate limit gate
            tokens: Token manager
            populate: Callable turning a decoded body into domain objects.
                Bodies are returned as decoded JSON when omitted.
        """
        self.config = config
        self.gate = gate
        self.tokens = tokens
        self._http = http_client
        self._populate = populate

    def build_url(self, uri: str) -> str:
        if uri.startswith("http://") or uri.startswith("https://"):
            return uri
        return f"{self.config.oauth_base_url}/{uri.lstrip('/')}"

    async def execute(
        self,
        method: str,
        uri: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        attempt: int = 1,
    ) -> Any:
        """
        Send a request and return the materialized response body.

        Args:
            method: HTTP method
            uri: Path relative to the OAuth domain, or an absolute URL
            params: Query string parameters
            data: Form body
            json: JSON body
            headers: Extra request headers
            attempt: Attempt number, 1 for a fresh request

        Returns:
            The response body run through the materializer. A Listing result
            has its source URI attached for further pagination.

        Raises:
            RateLimitExceeded: If the rate window is exhausted
            TransientServerError: If retries are exhausted or not allowed
            AuthenticationError: If the request is rejected with 401
            ResponseError: For any other non-success status
            MalformedResponseError: If the body is not valid JSON

        Example:
            >>> await pipeline.execute("GET", "r/python/about")
            Subreddit(name='t5_2qh0y', fetched=True)
        """
        method = method.upper()
        stale_retried = False

        while True:
            try:
                return await self._dispatch(
                    method,
                    uri,
                    params=params,
                    data=data,
                    json=json,
                    headers=headers,
                    attempt=attempt,
                    stale_retried=stale_retried,
                )
            except StaleTokenRace:
                # Not counted against the retry budget
                logger.info("stale_token_retry", method=method, uri=uri, attempt=attempt)
                self.tokens.invalidate()
                stale_retried = True
            except TransientServerError as e:
                if method not in IDEMPOTENT_HTTP_VERBS or attempt >= self.config.max_retry_attempts:
                    raise
                logger.warning(
                    "request_retry_scheduled",
                    method=method,
                    uri=uri,
                    status_code=e.status_code,
                    next_attempt=attempt + 1,
                    max_attempts=self.config.max_retry_attempts,
                )
                attempt += 1

    async def _dispatch(
        self,
        method: str,
        uri: str,
        *,
        params: Optional[Mapping[str, Any]],
        data: Optional[Mapping[str, Any]],
        json: Any,
        headers: Optional[Mapping[str, str]],
        attempt: int,
        stale_retried: bool,
    ) -> Any:
        url = self.build_url(uri)

        await self.gate.backoff(attempt)
        await self.gate.acquire(endpoint=url)
        token = await self.tokens.ensure_token()
        lifetime_at_dispatch = self.tokens.remaining_lifetime()

        request_headers = {
            "user-agent": self.config.user_agent,
            "authorization": f"bearer {token}",
        }
        if headers:
            request_headers.update(headers)

        query = {"raw_json": 1}
        if params:
            query.update({k: v for k, v in params.items() if v is not None})

        start_time = time.monotonic()
        try:
            response = await self._http.request(
                method,
                url,
                params=query,
                data=data,
                json=json,
                headers=request_headers,
                timeout=self.config.request_timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                timeout_seconds=self.config.request_timeout, endpoint=url, attempts=attempt
            ) from e
        except httpx.TransportError as e:
            raise TransportError(f"Request to {url} failed: {e}", endpoint=url, attempts=attempt) from e

        self.gate.update_from_headers(response.headers)

        log_request_outcome(
            method=method,
            uri=url,
            status_code=response.status_code,
            attempt=attempt,
            duration_ms=(time.monotonic() - start_time) * 1000,
            ratelimit_remaining=self.gate.window.remaining,
        )

        status = response.status_code
        if status in self.config.retry_error_codes:
            raise TransientServerError(
                f"Received status code {status} from reddit",
                status_code=status,
                endpoint=url,
                attempts=attempt,
            )

        if status == 401:
            if (
                not stale_retried
                and self.tokens.can_refresh
                and lifetime_at_dispatch is not None
                and lifetime_at_dispatch < self.config.max_token_latency
            ):
                raise StaleTokenRace(endpoint=url)
            raise AuthenticationError(
                f"Request to {url} was rejected as unauthorized",
                endpoint=url,
            )

        if status >= 400:
            raise self._status_error(response, url, attempt)

        body = self._decode(response, url)
        if self._populate is None:
            return body

        populated = self._populate(body)
        set_uri = getattr(populated, "set_uri", None)
        if callable(set_uri):
            set_uri(str(response.request.url))
        return populated

    def _decode(self, response: httpx.Response, url: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                "Response body is not valid JSON",
                status_code=response.status_code,
                endpoint=url,
            ) from e

    def _status_error(self, response: httpx.Response, url: str, attempt: int) -> Exception:
        status = response.status_code
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text

        if status == 429:
            try:
                retry_after = float(response.headers.get("x-ratelimit-reset", 0))
            except ValueError:
                retry_after = 0.0
            return RateLimitExceeded(retry_after=retry_after, endpoint=url)
        if status == 403:
            return ForbiddenError("Access forbidden", status_code=status, endpoint=url, attempts=attempt, body=body)
        if status == 404:
            return NotFoundError("Resource not found", status_code=status, endpoint=url, attempts=attempt, body=body)
        return ResponseError(
            f"Received status code {status} from reddit",
            status_code=status,
            endpoint=url,
            attempts=attempt,
            body=body,
        )
