"""
Conversion of decoded API responses into domain objects.

reddit wraps every object in a `{"kind": ..., "data": {...}}` envelope. The
materializer walks a decoded response, replaces each envelope with the
matching domain object and turns bare user/subreddit references into
unfetched handles.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from snoopager.constants import SUBREDDIT_KEYS, USER_KEYS
from snoopager.models.content import (
    KINDS,
    Comment,
    PrivateMessage,
    RedditContent,
    RedditUser,
    Submission,
    Subreddit,
    empty_replies_listing,
)
from snoopager.models.listing import UNSET, Listing
from snoopager.models.more import MoreStub

if TYPE_CHECKING:
    from snoopager.reddit.client import RedditClient


class ResponseMaterializer:
    """
    Turns decoded JSON into Listings, MoreStubs and content objects.

    Example:
        >>> materializer = ResponseMaterializer(client)
        >>> materializer.populate({"kind": "t2", "data": {"name": "spez"}})
        RedditUser(name='spez', fetched=True)
    """

    def __init__(self, client: Optional["RedditClient"] = None) -> None:
        self.client = client

    @property
    def _continue_thread_name(self) -> str:
        if self.client is None:
            return "t1__"
        return self.client.config.continue_thread_stub_name

    def populate(self, value: Any) -> Any:
        """
        Materialize a decoded response tree.

        Scalars and None are returned unchanged. A thread response (a listing
        holding one submission followed by the comment listing) is merged
        into the submission, which is returned in its place.
        """
        if isinstance(value, dict):
            if len(value) == 2 and value.get("kind") and "data" in value:
                return self._from_envelope(value["kind"], self.populate(value["data"]))
            return {key: self._populate_field(key, item) for key, item in value.items()}

        if isinstance(value, list):
            result = [self.populate(item) for item in value]
            return self._merge_thread(result)

        return value

    def _populate_field(self, key: str, value: Any) -> Any:
        if value is not None and key in USER_KEYS and isinstance(value, str):
            return RedditUser(self.client, {"name": value})
        if value is not None and key in SUBREDDIT_KEYS and isinstance(value, str):
            return Subreddit(self.client, {"display_name": value})
        return self.populate(value)

    def _from_envelope(self, kind: str, data: Any) -> Any:
        if kind == "Listing":
            data = data or {}
            return Listing(
                self.client,
                data.get("children") or (),
                after=data.get("after", UNSET),
                before=data.get("before", UNSET),
            )
        if kind == "more":
            return MoreStub.from_data(self.client, data or {})

        content_class = KINDS.get(kind, RedditContent)
        return content_class(self.client, data if isinstance(data, dict) else {}, True)

    def _merge_thread(self, result: List[Any]) -> Any:
        if (
            len(result) == 2
            and isinstance(result[0], Listing)
            and len(result[0]) > 0
            and isinstance(result[0][0], Submission)
            and isinstance(result[1], Listing)
        ):
            submission, comments = result[0][0], result[1]
            if comments.stub is None:
                comments.set_stub(MoreStub.empty(self.client))
            if not comments.stub.link_id:
                comments.stub.link_id = submission.name
            submission._data["comments"] = comments
            return submission
        return result

    def build_replies_tree(self, children: List[Any]) -> List[Any]:
        """
        Re-attach a flat list of comments or messages to their parents.

        Every comment and message gets a fresh replies Listing. Items whose
        parent is in the list are moved into that parent's replies; a
        MoreStub is attached as the parent's stub instead. The continue-thread
        stub leaves the parent's replies to be fetched from its permalink.

        Args:
            children: Materialized items in the order reddit returned them

        Returns:
            The items whose parent is not in the list, in their original order
        """
        by_name: Dict[str, RedditContent] = {
            child.name: child
            for child in children
            if isinstance(child, (Comment, PrivateMessage)) and child.name
        }
        replies: Dict[str, List[Any]] = {name: [] for name in by_name}
        stubs: Dict[str, MoreStub] = {}
        continued = set()

        roots = []
        for child in children:
            parent_id = _parent_id(child)
            if parent_id not in by_name:
                roots.append(child)
            elif not isinstance(child, MoreStub):
                replies[parent_id].append(child)
            elif child.is_continue_thread(self._continue_thread_name):
                continued.add(parent_id)
            else:
                child.link_id = by_name[parent_id]._data.get("link_id") or child.link_id
                stubs[parent_id] = child

        for name, item in by_name.items():
            if name in continued:
                item._data["replies"] = empty_replies_listing(item)
            elif isinstance(item, Comment):
                stub = stubs.get(name)
                if stub is None:
                    stub = MoreStub.empty(self.client, link_id=item._data.get("link_id"))
                item._data["replies"] = Listing(
                    self.client, replies[name], is_comment_list=True, stub=stub
                )
            else:
                item._data["replies"] = Listing(self.client, replies[name])
        return roots


def _parent_id(item: Any) -> Optional[str]:
    if isinstance(item, MoreStub):
        return item.parent_id
    if isinstance(item, RedditContent):
        return item._data.get("parent_id")
    return None
