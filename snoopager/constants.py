"""
Protocol constants shared across the request pipeline and pagination engine.
"""

VERSION = "0.1.0"

# Keys whose bare string values are replaced by placeholder objects when a
# response is materialized. `author`, `approved_by`, `banned_by` and
# `subreddit` appear on submissions and comments; `user` comes from
# api/flairlist and `sr` from api/v1/me/karma.
USER_KEYS = frozenset({"author", "approved_by", "banned_by", "user"})
SUBREDDIT_KEYS = frozenset({"subreddit", "sr"})

HTTP_VERBS = frozenset({"DELETE", "GET", "HEAD", "PATCH", "POST", "PUT"})
IDEMPOTENT_HTTP_VERBS = frozenset({"DELETE", "GET", "HEAD", "PUT"})

DEFAULT_RETRY_ERROR_CODES = frozenset({502, 503, 504, 522})

# Per-request maxima enforced by the remote API
MAX_LISTING_ITEMS = 100
MAX_API_INFO_AMOUNT = 100
MAX_API_MORECHILDREN_AMOUNT = 20

# `limit` is clamped to this before it goes into a query string. The API
# ignores limits it cannot parse and falls back to 25 items per page.
MAX_SAFE_LIMIT = 2**53 - 1

# Sent with listing requests so the API returns a `before` cursor
LISTING_COUNT = 9999

FULLNAME_PREFIXES = ("t1_", "t2_", "t3_", "t4_", "t5_", "t6_", "t8_", "LiveUpdateEvent_")
