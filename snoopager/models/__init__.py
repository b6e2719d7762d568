"""
Domain models: pagination containers, content objects and API schemas.
"""

from snoopager.models.content import (
    Comment,
    Fetched,
    PrivateMessage,
    RedditContent,
    RedditUser,
    ReplyState,
    Submission,
    Subreddit,
    Unfetched,
)
from snoopager.models.listing import UNSET, Listing
from snoopager.models.more import MoreStub
from snoopager.models.responses import TokenResponse

__all__ = [
    # Pagination
    "Listing",
    "MoreStub",
    "UNSET",
    # Content
    "RedditContent",
    "Comment",
    "Submission",
    "PrivateMessage",
    "RedditUser",
    "Subreddit",
    "ReplyState",
    "Fetched",
    "Unfetched",
    # Schemas
    "TokenResponse",
]
