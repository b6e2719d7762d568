"""
snoopager: async Reddit API client with lazy pagination.

Provides:
- RedditClient: OAuth client with rate limiting, retries and token refresh
- Listing / MoreStub: cursor pagination and comment-tree expansion
- Domain objects for comments, submissions, messages, users and subreddits

Example:
    >>> from snoopager import ClientConfig, RedditClient
    >>> async with RedditClient(ClientConfig.from_env()) as reddit:
    ...     thread = await reddit.get_submission("4fuq26").expand_replies(depth=2)
"""

from snoopager.config import ClientConfig
from snoopager.constants import VERSION

# snoopager.reddit must load before snoopager.models: the models import its
# exceptions, and its client imports the models.
from snoopager.reddit import RedditClient  # isort: skip
from snoopager.models import (
    Comment,
    Listing,
    MoreStub,
    PrivateMessage,
    RedditContent,
    RedditUser,
    ReplyState,
    Submission,
    Subreddit,
)

__version__ = VERSION

__all__ = [
    "ClientConfig",
    "RedditClient",
    # Pagination
    "Listing",
    "MoreStub",
    # Content
    "RedditContent",
    "Comment",
    "Submission",
    "PrivateMessage",
    "RedditUser",
    "Subreddit",
    "ReplyState",
]
