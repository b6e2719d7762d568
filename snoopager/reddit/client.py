"""
Async Reddit API client.

RedditClient wires one configuration into the rate gate, the token manager,
the request pipeline and the response materializer, and exposes the entry
points for requests, listings and content handles.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

import httpx

from snoopager.config import ClientConfig
from snoopager.constants import (
    FULLNAME_PREFIXES,
    HTTP_VERBS,
    LISTING_COUNT,
    MAX_API_INFO_AMOUNT,
    MAX_LISTING_ITEMS,
)
from snoopager.models.content import Comment, PrivateMessage, RedditUser, Submission, Subreddit
from snoopager.models.listing import Listing
from snoopager.reddit.auth import TokenManager, resolve_grant_type
from snoopager.reddit.exceptions import InvalidMethodCallError
from snoopager.reddit.materializer import ResponseMaterializer
from snoopager.reddit.rate_limiter import RateLimitGate
from snoopager.reddit.requester import RequestPipeline
from snoopager.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def _fullname(value: str, prefix: str) -> str:
    if value.startswith(FULLNAME_PREFIXES):
        return value
    return f"{prefix}{value}"


class RedditClient:
    """
    Entry point for talking to the Reddit API.

    Every component shares the configuration passed here; nothing is read
    from module-level state. Construction fails fast if the configuration
    carries no usable credential set.

    Attributes:
        config: Client configuration
        gate: Rate limit gate shared by all requests
        tokens: Access token manager
        materializer: Converts response bodies to domain objects
        pipeline: Executes requests

    Example:
        >>> config = ClientConfig(user_agent="my-bot/0.1", client_id="abc", client_secret="xyz")
        >>> async with RedditClient(config) as reddit:
        ...     hot = await reddit.get_hot("python", limit=10)
        ...     everything = await hot.fetch_all()
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration
            http_client: Transport to use. When omitted the client creates one
                and closes it in aclose().
            clock: Monotonic clock for rate and token bookkeeping
            sleep: Coroutine function used for every wait

        Raises:
            NoCredentialsError: If no valid credential combination was given
        """
        # Fail before creating a transport that would need closing
        resolve_grant_type(config)

        self.config = config
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout)

        clock = clock or time.monotonic
        self.gate = RateLimitGate(
            request_delay=config.request_delay,
            continue_after_ratelimit_error=config.continue_after_ratelimit_error,
            clock=clock,
            sleep=sleep or asyncio.sleep,
        )
        self.tokens = TokenManager(config, self._http, clock=clock)
        self.materializer = ResponseMaterializer(self)
        self.pipeline = RequestPipeline(
            config,
            self._http,
            self.gate,
            self.tokens,
            populate=self.materializer.populate,
        )

        logger.info(
            "reddit_client_initialized",
            endpoint_domain=config.endpoint_domain,
            grant_type=self.tokens.grant_type.value,
            request_delay=config.request_delay,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> "RedditClient":
        """
        Build a client from REDDIT_* environment variables.

        Also configures structured logging at the configured level.
        """
        config = ClientConfig.from_env(**overrides)
        setup_logging(config.log_level)
        return cls(config)

    async def __aenter__(self) -> "RedditClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP transport if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    @property
    def ratelimit_remaining(self) -> Optional[float]:
        """Requests left in the current rate window, None before the first response."""
        return self.gate.window.remaining

    @property
    def ratelimit_expiration(self) -> Optional[float]:
        """Clock reading at which the current rate window resets."""
        return self.gate.window.reset_at

    async def request(
        self,
        method: str,
        uri: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        Send an authenticated request and return the materialized body.

        Raises:
            InvalidMethodCallError: If `method` is not an HTTP verb
        """
        if method.upper() not in HTTP_VERBS:
            raise InvalidMethodCallError(f"Unsupported HTTP method: {method}")
        return await self.pipeline.execute(
            method, uri, params=params, data=data, json=json, headers=headers
        )

    async def get(self, uri: str, **kwargs: Any) -> Any:
        return await self.request("GET", uri, **kwargs)

    async def post(self, uri: str, **kwargs: Any) -> Any:
        return await self.request("POST", uri, **kwargs)

    async def put(self, uri: str, **kwargs: Any) -> Any:
        return await self.request("PUT", uri, **kwargs)

    async def patch(self, uri: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", uri, **kwargs)

    async def delete(self, uri: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", uri, **kwargs)

    async def get_listing(
        self,
        uri: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        transform: Optional[Callable[[Any], Any]] = None,
        method: str = "GET",
    ) -> Listing:
        """
        Fetch the first page of a Listing endpoint.

        A large `count` is sent so that reddit reports a `before` cursor as
        well, which backward pagination needs.

        Args:
            uri: Listing endpoint, e.g. "r/python/hot"
            params: Query parameters; `limit` sets the size of the first fetch
                (100 when omitted)
            transform: Extracts the Listing from a materialized response
            method: HTTP method of the page requests

        Returns:
            A Listing holding the first page
        """
        query: Dict[str, Any] = {"count": LISTING_COUNT}
        query.update(params or {})
        limit = query.pop("limit", None)

        listing: Listing = Listing(self, uri=uri, query=query, method=method, transform=transform)
        return await listing.fetch_more(limit or MAX_LISTING_ITEMS)

    def get_submission(self, submission_id: str) -> Submission:
        """Return an unfetched handle for a submission (`abc123` or `t3_abc123`)."""
        return Submission(self, {"name": _fullname(submission_id, "t3_")})

    def get_comment(self, comment_id: str) -> Comment:
        return Comment(self, {"name": _fullname(comment_id, "t1_")})

    def get_message(self, message_id: str) -> PrivateMessage:
        return PrivateMessage(self, {"name": _fullname(message_id, "t4_")})

    def get_user(self, name: str) -> RedditUser:
        return RedditUser(self, {"name": name})

    def get_subreddit(self, display_name: str) -> Subreddit:
        return Subreddit(self, {"display_name": display_name})

    async def get_content_by_ids(
        self, ids: Iterable[Union[str, Submission, Comment]]
    ) -> Listing:
        """
        Fetch submissions and comments by fullname.

        Ids are looked up through api/info, 100 per request, with all
        requests in flight at once.

        Args:
            ids: Fullnames (`t3_...`, `t1_...`) or Submission/Comment handles

        Returns:
            A finished Listing of the fetched items, in the order requested

        Raises:
            InvalidMethodCallError: If an id is neither a comment nor a
                submission fullname
        """
        fullnames: List[str] = []
        for item in ids:
            if isinstance(item, (Submission, Comment)):
                fullnames.append(item.name)
            elif isinstance(item, str) and item.startswith(("t1_", "t3_")):
                fullnames.append(item)
            else:
                raise InvalidMethodCallError(
                    f"Expected a comment or submission fullname, got {item!r}"
                )

        chunks = [
            fullnames[i:i + MAX_API_INFO_AMOUNT]
            for i in range(0, len(fullnames), MAX_API_INFO_AMOUNT)
        ]
        pages = await asyncio.gather(
            *(self.get("api/info", params={"id": ",".join(chunk)}) for chunk in chunks)
        )
        return Listing(self, [item for page in pages for item in page])

    def _subreddit_uri(self, subreddit: Optional[str], sort: str) -> str:
        return f"r/{subreddit}/{sort}" if subreddit else sort

    async def get_hot(self, subreddit: Optional[str] = None, **params: Any) -> Listing:
        """Hot submissions of a subreddit, or of the front page."""
        return await self.get_listing(self._subreddit_uri(subreddit, "hot"), params)

    async def get_new(self, subreddit: Optional[str] = None, **params: Any) -> Listing:
        return await self.get_listing(self._subreddit_uri(subreddit, "new"), params)

    async def get_top(
        self,
        subreddit: Optional[str] = None,
        time_filter: Optional[str] = None,
        **params: Any,
    ) -> Listing:
        """
        Top submissions.

        Args:
            subreddit: Subreddit name, or None for the front page
            time_filter: One of hour, day, week, month, year, all
        """
        if time_filter:
            params["t"] = time_filter
        return await self.get_listing(self._subreddit_uri(subreddit, "top"), params)
