"""
Reddit API integration layer.

This module provides:
- RedditClient: client facade over the request pipeline
- RequestPipeline: gate, auth, dispatch, retry and materialization per request
- RateLimitGate / TokenManager: rate window and access token bookkeeping
- Custom exception hierarchy for error handling

Example:
    >>> from snoopager.reddit import RedditClient
    >>> reddit = RedditClient(config)
    >>> new = await reddit.get_new("python", limit=5)
"""

from snoopager.reddit.auth import GrantType, TokenManager
from snoopager.reddit.client import RedditClient
from snoopager.reddit.exceptions import (
    AuthenticationError,
    ForbiddenError,
    InvalidMethodCallError,
    MalformedResponseError,
    NoCredentialsError,
    NotFoundError,
    RateLimitExceeded,
    RedditAPIError,
    RedditJSONError,
    RequestTimeoutError,
    ResponseError,
    TransientServerError,
    TransportError,
)
from snoopager.reddit.materializer import ResponseMaterializer
from snoopager.reddit.rate_limiter import RateLimitGate
from snoopager.reddit.requester import RequestPipeline

__all__ = [
    # Client
    "RedditClient",
    "RequestPipeline",
    "ResponseMaterializer",
    "RateLimitGate",
    "TokenManager",
    "GrantType",
    # Exceptions
    "RedditAPIError",
    "AuthenticationError",
    "ForbiddenError",
    "InvalidMethodCallError",
    "MalformedResponseError",
    "NoCredentialsError",
    "NotFoundError",
    "RateLimitExceeded",
    "RedditJSONError",
    "RequestTimeoutError",
    "ResponseError",
    "TransientServerError",
    "TransportError",
]
