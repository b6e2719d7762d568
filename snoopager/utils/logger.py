"""
structlog setup for snoopager.

Every component logs snake_case events with keyword context: the request
pipeline emits `request_completed` and `request_failed`, the rate gate
`rate_limit_hit` and `request_delayed`, the token manager
`access_token_refreshed`, and Listings `listing_page_fetched` as they page.
"""
import logging
import os
import sys
from typing import Any, Optional

import structlog


def setup_logging(level: str = "INFO") -> None:
    """
    Route snoopager's events through structlog at the given level.

    Called by RedditClient with `ClientConfig.log_level`. Pagination and
    backoff events are DEBUG, so the default INFO level only shows token
    refreshes, rate limit waits and failed requests. Output is one JSON
    object per line unless ENVIRONMENT=development selects the console
    renderer.

    Args:
        level: Level name such as "DEBUG" or "WARNING"; unknown names fall
            back to INFO
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    is_dev = os.getenv("ENVIRONMENT", "production") == "development"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Logger for a snoopager module.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.debug("listing_page_fetched", uri="r/python/hot", items=25)
    """
    return structlog.get_logger(name)


def log_request_outcome(
    method: str,
    uri: str,
    status_code: int,
    attempt: int,
    duration_ms: float,
    ratelimit_remaining: Optional[float] = None,
    **extra: Any,
) -> None:
    """
    Log the outcome of a single OAuth request in structured format.

    Args:
        method: HTTP method of the request
        uri: Request URI (without query string)
        status_code: HTTP status code received
        attempt: Attempt number (1 for the first try)
        duration_ms: Round-trip time in milliseconds
        ratelimit_remaining: Remaining requests in the current rate window
        **extra: Additional context to log

    Example:
        >>> log_request_outcome(
        ...     method="GET",
        ...     uri="https://oauth.reddit.com/r/python/hot",
        ...     status_code=200,
        ...     attempt=1,
        ...     duration_ms=182.4,
        ...     ratelimit_remaining=598.0,
        ... )
    """
    logger = get_logger("snoopager.request")

    log_data = {
        "method": method,
        "uri": uri,
        "status_code": status_code,
        "attempt": attempt,
        "duration_ms": round(duration_ms, 2),
        "ratelimit_remaining": ratelimit_remaining,
        **extra,
    }

    if status_code >= 400:
        logger.warning("request_failed", **log_data)
    else:
        logger.debug("request_completed", **log_data)
