"""
Domain objects for reddit content.

Objects are either unfetched handles carrying only an identifier, or fetched
snapshots carrying every field the API returned. fetch() never changes an
object in place; it returns a new, fetched one.

Fields are read as attributes (`comment.body`). Reading a field that an
unfetched object does not have raises AttributeError pointing at fetch().
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from snoopager.constants import SUBREDDIT_KEYS, USER_KEYS
from snoopager.models.capabilities import Expandable, Removable, Replyable, Votable
from snoopager.models.listing import Listing
from snoopager.models.more import MoreStub
from snoopager.reddit.exceptions import InvalidMethodCallError, NotFoundError

if TYPE_CHECKING:
    from snoopager.reddit.client import RedditClient


@dataclass(frozen=True)
class Unfetched:
    """State of a handle that only knows its identifier."""

    name: str


@dataclass(frozen=True)
class Fetched:
    """State of an object holding the fields returned by the API."""

    fields: Mapping[str, Any]


class ReplyState(str, Enum):
    UNEXPANDED = "unexpanded"
    PARTIALLY_EXPANDED = "partially_expanded"
    FULLY_EXPANDED = "fully_expanded"


def _to_plain(value: Any, key: Optional[str] = None) -> Any:
    if isinstance(value, RedditContent) and not value.is_fetched:
        if isinstance(value, RedditUser) and key in USER_KEYS:
            return value.name
        if isinstance(value, Subreddit) and key in SUBREDDIT_KEYS:
            return value.display_name
    if isinstance(value, (RedditContent, Listing)):
        return value.to_plain()
    if isinstance(value, dict):
        return {k: _to_plain(v, k) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    return value


def _clone_value(value: Any) -> Any:
    if isinstance(value, (RedditContent, Listing)):
        return value.clone(deep=True)
    if isinstance(value, dict):
        return {k: _clone_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_clone_value(v) for v in value]
    return value


class RedditContent:
    """
    Base class for every object materialized from a `{kind, data}` envelope.

    Envelopes of a kind without a dedicated class become plain RedditContent.
    """

    def __init__(
        self,
        client: Optional["RedditClient"],
        data: Optional[Dict[str, Any]] = None,
        fetched: bool = False,
    ) -> None:
        self._client = client
        self._data: Dict[str, Any] = dict(data or {})
        self._fetched = fetched

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        try:
            return self._data[key]
        except KeyError:
            hint = "" if self._fetched else " (object is unfetched; call fetch() first)"
            raise AttributeError(f"{type(self).__name__} has no field {key!r}{hint}") from None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RedditContent):
            return NotImplemented
        return type(self) is type(other) and self._fetched == other._fetched and self._data == other._data

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.identifier))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.identifier!r}, fetched={self._fetched})"

    @property
    def name(self) -> Optional[str]:
        return self._data.get("name")

    @property
    def identifier(self) -> Optional[str]:
        """What identifies this object while it is unfetched."""
        return self.name

    @property
    def is_fetched(self) -> bool:
        return self._fetched

    @property
    def state(self) -> Union[Unfetched, Fetched]:
        if self._fetched:
            return Fetched(fields=MappingProxyType(self._data))
        return Unfetched(name=self.identifier)

    @property
    def uri(self) -> str:
        raise InvalidMethodCallError(f"{type(self).__name__} objects cannot be fetched")

    def _fetch_params(self) -> Optional[Dict[str, Any]]:
        return None

    def _transform_response(self, response: Any) -> Any:
        return response

    async def fetch(self) -> Any:
        """
        Return a fetched version of this object.

        An object that is already fetched is returned as is; use refresh()
        to request it again.
        """
        if self._fetched:
            return self
        return await self.refresh()

    async def refresh(self) -> Any:
        """Request this object from the API and return the new, fetched version."""
        response = await self._client.get(self.uri, params=self._fetch_params())
        return self._transform_response(response)

    def clone(self, deep: bool = False) -> Any:
        data = _clone_value(self._data) if deep else dict(self._data)
        return type(self)(self._client, data, self._fetched)

    def to_plain(self) -> Dict[str, Any]:
        """
        Convert this object to plain dicts, lists and scalars.

        Unfetched users and subreddits under reference keys (`author`,
        `subreddit`, ...) collapse back to their names.
        """
        return {key: _to_plain(value, key) for key, value in self._data.items()}


class RedditUser(RedditContent):
    @property
    def uri(self) -> str:
        if not self.name:
            raise InvalidMethodCallError("Cannot fetch a user without a name")
        return f"user/{self.name}/about"


class Subreddit(RedditContent):
    @property
    def identifier(self) -> Optional[str]:
        return self._data.get("display_name")

    @property
    def uri(self) -> str:
        return f"r/{self.display_name}/about"

    def _transform_response(self, response: Any) -> Any:
        if not isinstance(response, Subreddit):
            raise NotFoundError(
                f"The subreddit /r/{self.display_name} does not exist.",
                status_code=404,
                endpoint=self.uri,
            )
        return response


class Comment(Votable, Replyable, Removable, Expandable, RedditContent):
    """
    A comment.

    Fetched comments always hold a Listing under `replies`. reddit's ways of
    saying "no replies" and "replies continue elsewhere" are normalised when
    the comment is built:

    - an empty string becomes an empty, finished Listing
    - a Listing holding only the continue-thread stub becomes an unfetched
      Listing sourced from the comment's own permalink
    - a replies stub without a submission id is given the comment's link_id
    """

    def __init__(
        self,
        client: Optional["RedditClient"],
        data: Optional[Dict[str, Any]] = None,
        fetched: bool = False,
    ) -> None:
        super().__init__(client, data, fetched)
        if fetched:
            self._normalise_replies()

    def _normalise_replies(self) -> None:
        replies = self._data.get("replies")
        if replies == "":
            self._data["replies"] = Listing(
                self._client,
                is_comment_list=True,
                stub=MoreStub.empty(self._client, link_id=self._data.get("link_id")),
            )
        elif isinstance(replies, Listing) and replies.stub is not None:
            if not replies and replies.stub.is_continue_thread(self._continue_thread_name):
                self._data["replies"] = empty_replies_listing(self)
            elif not replies.stub.link_id:
                replies.stub.link_id = self._data.get("link_id")

    @property
    def _continue_thread_name(self) -> str:
        if self._client is None:
            return "t1__"
        return self._client.config.continue_thread_stub_name

    @property
    def uri(self) -> str:
        return "api/info"

    def _fetch_params(self) -> Dict[str, Any]:
        return {"id": self.name}

    def _transform_response(self, response: Any) -> Any:
        if not response:
            raise NotFoundError(f"Comment {self.name} was not found", status_code=404, endpoint=self.uri)
        comment = response[0]
        comment._data["replies"] = empty_replies_listing(comment)
        return comment

    @property
    def reply_state(self) -> ReplyState:
        return _reply_state(self._data.get("replies"))


class Submission(Votable, Replyable, Removable, Expandable, RedditContent):
    """A link or self post. Its comment tree is held under `comments`."""

    _replies_key = "comments"

    @property
    def uri(self) -> str:
        return f"comments/{self.name[3:]}"

    def _transform_response(self, response: Any) -> Any:
        if not isinstance(response, Submission):
            raise NotFoundError(f"Submission {self.name} was not found", status_code=404, endpoint=self.uri)
        return response

    @property
    def reply_state(self) -> ReplyState:
        return _reply_state(self._data.get("comments"))


class PrivateMessage(Replyable, RedditContent):
    @property
    def uri(self) -> str:
        return f"message/messages/{self.name[3:]}"

    def _transform_response(self, response: Any) -> Any:
        if not response:
            raise NotFoundError(f"Message {self.name} was not found", status_code=404, endpoint=self.uri)
        root = response[0]
        replies = root._data.get("replies")
        tree = self._client.materializer.build_replies_tree(list(replies) if replies else [])
        root._data["replies"] = Listing(self._client, tree)
        found = _find_in_tree(self.name, root)
        if found is None:
            raise NotFoundError(f"Message {self.name} was not found", status_code=404, endpoint=self.uri)
        return found


def _find_in_tree(name: str, node: RedditContent) -> Optional[RedditContent]:
    if node.name == name:
        return node
    for child in node._data.get("replies") or ():
        if isinstance(child, RedditContent):
            found = _find_in_tree(name, child)
            if found is not None:
                return found
    return None


def _reply_state(replies: Any) -> ReplyState:
    if not isinstance(replies, Listing):
        return ReplyState.UNEXPANDED
    if replies.is_finished:
        return ReplyState.FULLY_EXPANDED
    if not replies:
        return ReplyState.UNEXPANDED
    return ReplyState.PARTIALLY_EXPANDED


def _comment_replies(response: Any) -> Any:
    return response.comments[0].replies


def _submission_comments(response: Any) -> Any:
    return response.comments


def empty_replies_listing(item: RedditContent) -> Listing:
    """
    Build an unfetched Listing for the replies of `item`.

    Comment and submission replies can be fetched later from the thread's
    permalink; message replies cannot be fetched separately.
    """
    client = item._client
    if isinstance(item, Comment):
        link_id = item._data.get("link_id") or item._data.get("parent_id") or ""
        return Listing(
            client,
            uri=f"comments/{link_id[3:]}",
            query={"comment": item.name[3:]},
            transform=_comment_replies,
            is_comment_list=True,
        )
    if isinstance(item, Submission):
        return Listing(
            client,
            uri=f"comments/{item._data.get('id') or item.name[3:]}",
            transform=_submission_comments,
            is_comment_list=True,
        )
    return Listing(client)


KINDS: Dict[str, type] = {
    "t1": Comment,
    "t2": RedditUser,
    "t3": Submission,
    "t4": PrivateMessage,
    "t5": Subreddit,
}

