"""
Custom exceptions for the Reddit request pipeline and pagination engine.

Every error raised while talking to the API derives from RedditAPIError and
carries enough context (status code, endpoint, attempt count) for callers
to decide whether to retry, log or abort.
"""

from typing import Any, Optional


class RedditAPIError(Exception):
    """
    Base exception for all Reddit API related errors.

    Use this for catching any error raised by snoopager.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> None:
        """
        Initialize RedditAPIError.

        Args:
            message: Error description
            status_code: Optional HTTP status code from the API
            endpoint: Optional URI of the request that failed
            attempts: Optional number of attempts made before giving up
        """
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.attempts = attempts
        super().__init__(self.message)


class NoCredentialsError(RedditAPIError):
    """
    Raised at client construction when no usable credential set was given.

    Example:
        >>> raise NoCredentialsError()
    """

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = (
                "Missing credentials passed to RedditClient. Supply one of: "
                "(a) client_id, client_secret and refresh_token; "
                "(b) client_id, client_secret, username and password; "
                "(c) client_id and device_id; "
                "(d) client_id and client_secret; "
                "(e) access_token"
            )
        super().__init__(message)


class InvalidMethodCallError(RedditAPIError):
    """Raised when a method is called with invalid arguments."""


class AuthenticationError(RedditAPIError):
    """
    Raised when authentication fails.

    This occurs when:
    - The token endpoint returns `invalid_grant` (bad credentials)
    - The token endpoint returns any other OAuth error
    - A request is rejected with 401 and the token cannot be refreshed

    Never retried automatically.

    Example:
        >>> raise AuthenticationError("Invalid grant", error="invalid_grant")
    """

    def __init__(
        self,
        message: str = "Reddit authentication failed",
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        self.error = error
        self.error_description = error_description
        super().__init__(message, status_code=401, endpoint=endpoint)


class RateLimitExceeded(RedditAPIError):
    """
    Raised when the rate limit window is exhausted and queueing is disabled.

    Attributes:
        retry_after: Number of seconds until the current window resets

    Example:
        >>> raise RateLimitExceeded(retry_after=42.5)
    """

    def __init__(
        self,
        retry_after: float,
        message: str = "Reddit API rate limit exceeded",
        endpoint: Optional[str] = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code=429, endpoint=endpoint)

    def __str__(self) -> str:
        """Return formatted error message with retry information."""
        return f"{self.message} (retry after {self.retry_after:.1f}s)"


class StaleTokenRace(RedditAPIError):
    """
    A 401 received for a token that was about to expire when it was sent.

    Raised and caught inside the request pipeline only; callers never see it.
    """

    def __init__(self, endpoint: Optional[str] = None) -> None:
        super().__init__("Access token expired in flight", status_code=401, endpoint=endpoint)


class ResponseError(RedditAPIError):
    """
    Raised when the API answers with a non-success status code.

    Attributes:
        body: Decoded response body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        endpoint: Optional[str] = None,
        attempts: Optional[int] = None,
        body: Any = None,
    ) -> None:
        self.body = body
        super().__init__(message, status_code=status_code, endpoint=endpoint, attempts=attempts)


class NotFoundError(ResponseError):
    """Raised when the requested resource does not exist (404)."""


class ForbiddenError(ResponseError):
    """Raised when access to the requested resource is forbidden (403)."""


class TransientServerError(ResponseError):
    """
    Raised when the API returns a retryable server error.

    These errors are retried for idempotent requests until the attempt cap is
    reached; after that, or for non-idempotent requests, they propagate.

    Example:
        >>> raise TransientServerError("Service unavailable", status_code=503, attempts=3)
    """


class MalformedResponseError(RedditAPIError):
    """Raised when a response body does not have the expected shape."""


class RedditJSONError(RedditAPIError):
    """
    Raised when an `api_type=json` response reports errors.

    Attributes:
        errors: The raw `json.errors` list from the response
    """

    def __init__(self, errors: list, endpoint: Optional[str] = None) -> None:
        self.errors = errors
        super().__init__(f"Reddit returned an error: {errors[0]}", endpoint=endpoint)


class RequestTimeoutError(RedditAPIError):
    """
    Raised when a request times out.

    Example:
        >>> raise RequestTimeoutError(timeout_seconds=30, attempts=2)
    """

    def __init__(
        self,
        message: str = "Reddit API request timed out",
        timeout_seconds: Optional[float] = None,
        endpoint: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        if timeout_seconds is not None:
            message = f"{message} ({timeout_seconds}s)"
        super().__init__(message, status_code=408, endpoint=endpoint, attempts=attempts)


class TransportError(RedditAPIError):
    """Raised when the HTTP transport fails before a response is received."""


def raise_for_json_errors(response: Any, endpoint: Optional[str] = None) -> Any:
    """
    Raise RedditJSONError if an `api_type=json` response carries errors.

    Args:
        response: Decoded response body
        endpoint: URI the response came from, for error context

    Returns:
        The response unchanged when it carries no errors
    """
    if not response or not isinstance(response, dict):
        return response
    errors = (response.get("json") or {}).get("errors")
    if errors:
        raise RedditJSONError(errors, endpoint=endpoint)
    return response
