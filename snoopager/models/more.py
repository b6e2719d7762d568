"""
Expansion of reddit's `more` comment stubs.

A thread response lists only part of its comments; the rest are referenced by
id from a `more` object. MoreStub turns those ids into Comment objects, either
through the bulk `api/info` endpoint (fast, no replies) or through
`api/morechildren` (slower, keeps the reply tree).

Stubs never appear as items of a Listing. A Listing holds at most one stub and
delegates to it when asked for more comments.
"""

import asyncio
import math
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from snoopager.constants import MAX_API_INFO_AMOUNT, MAX_API_MORECHILDREN_AMOUNT
from snoopager.reddit.exceptions import MalformedResponseError, raise_for_json_errors
from snoopager.utils.logger import get_logger

if TYPE_CHECKING:
    from snoopager.reddit.client import RedditClient

logger = get_logger(__name__)


def _chunks(ids: Sequence[str], size: int) -> List[Tuple[str, ...]]:
    return [tuple(ids[i:i + size]) for i in range(0, len(ids), size)]


class MoreStub:
    """
    Not-yet-fetched children of a comment, message or submission.

    `children` only shrinks: draining returns a new stub holding the ids that
    are still outstanding.

    Attributes:
        children: Ids (without the `t1_` prefix) still to fetch, in thread order
        parent_id: Fullname of the item the children reply to
        link_id: Fullname of the submission the thread belongs to
        name: Fullname of the stub itself (`t1__` for continue-thread stubs)
    """

    def __init__(
        self,
        client: Optional["RedditClient"] = None,
        children: Sequence[str] = (),
        *,
        parent_id: Optional[str] = None,
        link_id: Optional[str] = None,
        id: Optional[str] = None,
        name: Optional[str] = None,
        count: Optional[int] = None,
        depth: Optional[int] = None,
    ) -> None:
        self._client = client
        self.children: Tuple[str, ...] = tuple(children)
        self.parent_id = parent_id
        self.link_id = link_id
        self.id = id
        self.name = name
        self.count = count
        self.depth = depth

    @classmethod
    def from_data(cls, client: Optional["RedditClient"], data: Dict[str, Any]) -> "MoreStub":
        """Build a stub from the `data` of a `{"kind": "more"}` envelope."""
        return cls(
            client,
            data.get("children") or (),
            parent_id=data.get("parent_id"),
            link_id=data.get("link_id"),
            id=data.get("id"),
            name=data.get("name"),
            count=data.get("count"),
            depth=data.get("depth"),
        )

    @classmethod
    def empty(
        cls, client: Optional["RedditClient"] = None, link_id: Optional[str] = None
    ) -> "MoreStub":
        return cls(client, link_id=link_id)

    @property
    def root_id(self) -> Optional[str]:
        """Fullname sent as `link_id` to api/morechildren."""
        return self.link_id or self.parent_id

    @property
    def is_empty(self) -> bool:
        return not self.children

    def is_continue_thread(self, stub_name: str = "t1__") -> bool:
        """True for the stub reddit sends in place of replies past the depth limit."""
        return self.name == stub_name

    def __len__(self) -> int:
        return len(self.children)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MoreStub):
            return NotImplemented
        return self.children == other.children and self.root_id == other.root_id

    def __repr__(self) -> str:
        return f"MoreStub(children={len(self.children)}, parent_id={self.parent_id!r}, link_id={self.link_id!r})"

    def clone(self) -> "MoreStub":
        return self._replace(self.children)

    def drained(self, amount: float) -> "MoreStub":
        """Return a copy of this stub without its first `amount` ids."""
        if amount >= len(self.children):
            return self._replace(())
        return self._replace(self.children[int(amount):])

    def _replace(self, children: Sequence[str]) -> "MoreStub":
        return MoreStub(
            self._client,
            children,
            parent_id=self.parent_id,
            link_id=self.link_id,
            id=self.id,
            name=self.name,
            count=self.count,
            depth=self.depth,
        )

    def _take(self, amount: float) -> Tuple[str, ...]:
        if amount >= len(self.children):
            return self.children
        return self.children[:max(0, int(amount))]

    async def fetch_more(self, amount: float, skip_replies: bool = False) -> List[Any]:
        """
        Fetch the first `amount` children of this stub.

        The stub itself is not modified; callers drain it with drained().

        Args:
            amount: Number of ids to resolve (math.inf for all of them)
            skip_replies: Use api/info, 100 ids per request, without replies

        Returns:
            Resolved items in thread order
        """
        if amount <= 0 or self.is_empty:
            return []
        if skip_replies:
            return await self.fetch_flat(amount)
        return await self.fetch_tree(amount)

    async def fetch_flat(self, amount: float) -> List[Any]:
        """
        Resolve ids through api/info, running all chunks concurrently.

        Returned comments carry no replies.
        """
        chunks = _chunks(self._take(amount), MAX_API_INFO_AMOUNT)
        pages = await asyncio.gather(*(self._fetch_info_chunk(chunk) for chunk in chunks))

        items = [item for page in pages for item in page]
        logger.debug(
            "more_children_fetched",
            strategy="flat",
            requests=len(chunks),
            items=len(items),
        )
        return items

    async def _fetch_info_chunk(self, chunk: Tuple[str, ...]) -> List[Any]:
        response = await self._client.get(
            "api/info", params={"id": ",".join(f"t1_{child}" for child in chunk)}
        )
        return list(response)

    async def fetch_tree(self, amount: float) -> List[Any]:
        """
        Resolve ids through api/morechildren, one chunk at a time.

        api/morechildren rejects overlapping requests from one account, so
        chunks and nested stubs are fetched strictly in sequence. When reddit
        answers a chunk with a smaller stub of its own, that stub is expanded
        in full before the next chunk is requested.

        Returns:
            Top-level items of each chunk in thread order, followed by the
            top-level items of the nested stubs expanded for that chunk
        """
        results: List[Any] = []
        requests = 0

        for chunk in _chunks(self._take(amount), MAX_API_MORECHILDREN_AMOUNT):
            response = await self._client.get(
                "api/morechildren",
                params={
                    "api_type": "json",
                    "children": ",".join(chunk),
                    "link_id": self.root_id,
                },
            )
            requests += 1
            raise_for_json_errors(response, endpoint="api/morechildren")

            try:
                things = response["json"]["data"]["things"]
            except (KeyError, TypeError) as e:
                raise MalformedResponseError(
                    "api/morechildren response has no json.data.things",
                    endpoint="api/morechildren",
                ) from e

            roots = self._client.materializer.build_replies_tree(things)
            nested = [root for root in roots if isinstance(root, MoreStub)]
            results.extend(root for root in roots if not isinstance(root, MoreStub))

            for stub in nested:
                if stub.is_continue_thread(self._client.config.continue_thread_stub_name):
                    continue
                if not stub.link_id:
                    stub.link_id = self.root_id
                logger.debug(
                    "nested_more_expanding",
                    parent_id=stub.parent_id,
                    children=len(stub.children),
                )
                results.extend(await stub.fetch_tree(math.inf))

        logger.debug(
            "more_children_fetched",
            strategy="tree",
            requests=requests,
            items=len(results),
        )
        return results
