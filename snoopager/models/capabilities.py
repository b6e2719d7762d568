"""
Actions shared by several content types.

Each capability is a small mixin that only relies on the `_client` and `name`
attributes of RedditContent. Content classes list the capabilities they
support; e.g. a PrivateMessage can be replied to but not voted on.
"""

import math
from typing import Any, Optional

from snoopager.reddit.exceptions import MalformedResponseError, raise_for_json_errors


class Votable:
    """Voting and saving, for comments and submissions."""

    async def _vote(self, direction: int) -> Any:
        await self._client.post("api/vote", data={"dir": direction, "id": self.name})
        return self

    async def upvote(self) -> Any:
        """
        Upvote this item.

        Votes must be cast by a human; bots should not upvote on a user's
        behalf.
        """
        return await self._vote(1)

    async def downvote(self) -> Any:
        return await self._vote(-1)

    async def unvote(self) -> Any:
        """Remove any vote on this item."""
        return await self._vote(0)

    async def save(self, category: Optional[str] = None) -> Any:
        data = {"id": self.name}
        if category:
            data["category"] = category
        await self._client.post("api/save", data=data)
        return self

    async def unsave(self) -> Any:
        await self._client.post("api/unsave", data={"id": self.name})
        return self


class Replyable:
    """Replying, for comments, submissions and private messages."""

    async def reply(self, text: str) -> Any:
        """
        Submit a reply to this item.

        Args:
            text: Markdown body of the reply

        Returns:
            The newly created Comment or PrivateMessage

        Raises:
            RedditJSONError: If reddit rejects the reply (e.g. RATELIMIT)
        """
        response = await self._client.post(
            "api/comment",
            data={"api_type": "json", "text": text, "thing_id": self.name},
        )
        raise_for_json_errors(response, endpoint="api/comment")
        try:
            return response["json"]["data"]["things"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(
                "api/comment response has no json.data.things", endpoint="api/comment"
            ) from e


class Removable:
    """Moderator removal and approval."""

    async def remove(self, spam: bool = False) -> Any:
        await self._client.post("api/remove", data={"spam": spam, "id": self.name})
        return self

    async def approve(self) -> Any:
        await self._client.post("api/approve", data={"id": self.name})
        return self


class Expandable:
    """
    Reply tree expansion, for comments and submissions.

    Subclasses set `_replies_key` to the field holding their reply Listing.
    """

    _replies_key = "replies"

    async def expand_replies(self, limit: float = math.inf, depth: float = math.inf) -> Any:
        """
        Fetch this item and expand its reply tree.

        Every reply already present is kept; `limit` and `depth` only bound how
        much is fetched. Expansion runs one request at a time because
        api/morechildren refuses overlapping requests.

        Args:
            limit: Maximum number of replies fetched under any one item
            depth: Maximum depth of the tree (0 fetches no replies at all)

        Returns:
            A new item with an expanded reply tree; this one is not modified

        Example:
            >>> thread = await client.get_submission("4fuq26").expand_replies(limit=10, depth=3)
        """
        fetched = await self.fetch()
        expanded = fetched.clone(deep=True)
        await expanded._expand_in_place(limit, depth)
        return expanded

    async def _expand_in_place(self, limit: float, depth: float) -> None:
        if depth <= 0:
            return
        replies = self._data.get(self._replies_key)
        if replies is None or not hasattr(replies, "fetch_more"):
            return

        replies = await replies.fetch_more(limit - len(replies))
        self._data[self._replies_key] = replies

        children = list(replies) if limit >= len(replies) else list(replies)[:int(limit)]
        for child in children:
            if isinstance(child, Expandable):
                await child._expand_in_place(limit, depth - 1)
