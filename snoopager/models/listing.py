"""
Cursor-based pager over reddit Listings.

A Listing wraps the items of one or more fetched pages plus what is needed to
fetch the next one: the source URI and query, the `before`/`after` cursors,
and for comment threads the MoreStub holding ids that were left out.

Pagination never mutates a Listing. fetch_more() and fetch_all() work on a
clone and return it, so a reference to an older Listing stays a stable
snapshot.
"""

import math
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    TypeVar,
    Union,
    overload,
)
from urllib.parse import parse_qsl, urlsplit

from snoopager.constants import MAX_SAFE_LIMIT
from snoopager.models.more import MoreStub
from snoopager.reddit.exceptions import InvalidMethodCallError, MalformedResponseError
from snoopager.utils.logger import get_logger

if TYPE_CHECKING:
    from snoopager.reddit.client import RedditClient

logger = get_logger(__name__)

T = TypeVar("T")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# A cursor that was never reported differs from one reported as null:
# only the latter marks the end of a Listing.
UNSET: Any = _Unset()


def _identity(value: Any) -> Any:
    return value


class Listing(Sequence[T]):
    """
    Ordered, growable sequence of items fetched from a paginated endpoint.

    Regular listings are paged with `before`/`after` cursors. Comment
    listings are paged through their MoreStub instead; a comment listing that
    has no stub yet (e.g. the replies of a deep comment) fetches its first
    page from its URI like a regular listing.

    Example:
        >>> hot = await client.get_hot("python", limit=25)
        >>> len(hot)
        25
        >>> more = await hot.fetch_more(10)
        >>> len(more), len(hot)
        (35, 25)
    """

    def __init__(
        self,
        client: Optional["RedditClient"] = None,
        items: Iterable[T] = (),
        *,
        uri: Optional[str] = None,
        query: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        transform: Optional[Callable[[Any], Any]] = None,
        is_comment_list: bool = False,
        stub: Optional[MoreStub] = None,
        lookahead: Optional[Iterable[T]] = None,
        after: Any = UNSET,
        before: Any = UNSET,
    ) -> None:
        """
        Initialize a Listing.

        Args:
            client: Client used to fetch further pages
            items: Items already fetched. A trailing MoreStub is split off and
                becomes the listing's stub.
            uri: Endpoint the pages come from
            query: Query parameters sent with every page request
            method: HTTP method of the page request
            transform: Extracts the page Listing from a materialized response
            is_comment_list: Page with the stub instead of cursors
            stub: Ids of comments left out of the fetched pages
            lookahead: Items fetched ahead of what was asked for
            after: Forward cursor as reported by the server
            before: Backward cursor as reported by the server
        """
        self._client = client
        self._items: List[T] = list(items)
        self._uri = uri
        self._query: Dict[str, Any] = dict(query or {})
        self._method = method.upper()
        self._transform = transform or _identity
        self._is_comment_list = is_comment_list
        self._stub = stub
        self._lookahead: List[T] = list(lookahead or ())
        self._backward = False

        if after is not UNSET:
            self._query["after"] = after
        if before is not UNSET:
            self._query["before"] = before

        if self._items and isinstance(self._items[-1], MoreStub):
            self.set_stub(self._items.pop())

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> List[T]: ...

    def __getitem__(self, index: Union[int, slice]) -> Union[T, List[T]]:
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Listing):
            return NotImplemented
        return (
            self._items == other._items
            and self._lookahead == other._lookahead
            and self.after == other.after
            and self.before == other.before
            and self._stub == other._stub
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Listing(items={len(self._items)}, uri={self._uri!r}, "
            f"after={self.after!r}, before={self.before!r}, finished={self.is_finished})"
        )

    @property
    def uri(self) -> Optional[str]:
        return self._uri

    @property
    def query(self) -> Dict[str, Any]:
        return dict(self._query)

    @property
    def after(self) -> Any:
        return self._query.get("after", UNSET)

    @property
    def before(self) -> Any:
        return self._query.get("before", UNSET)

    @property
    def stub(self) -> Optional[MoreStub]:
        return self._stub

    @property
    def lookahead(self) -> List[T]:
        return list(self._lookahead)

    @property
    def is_comment_list(self) -> bool:
        return self._is_comment_list

    @property
    def is_finished(self) -> bool:
        """
        True if no more items can be fetched.

        A listing with buffered lookahead items is never finished. Otherwise a
        comment listing is finished once its stub is drained (or, without a
        stub, when it has nowhere to fetch from), and a regular listing once
        it has no URI or both cursors were reported as null.
        """
        if self._lookahead:
            return False
        if self._is_comment_list:
            if self._stub is None:
                return self._uri is None
            return self._stub.is_empty
        if self._uri is None:
            return True
        return self.after is None and self.before is None

    def set_uri(self, value: str) -> None:
        """
        Record the request URI this Listing was fetched from.

        Query parameters of the URI become defaults for later page requests;
        parameters already on the Listing win. The cursor for the opposite
        direction is set to null.
        """
        parts = urlsplit(value)
        self._uri = parts.path
        url_query = dict(parse_qsl(parts.query, keep_blank_values=True))
        for key, val in url_query.items():
            self._query.setdefault(key, val)

        if url_query.get("before"):
            self._query["after"] = None
        else:
            self._query["before"] = None

    def set_stub(self, stub: MoreStub) -> None:
        self._stub = stub
        self._is_comment_list = True

    def clone(self, deep: bool = False) -> "Listing[T]":
        """
        Copy this Listing's items and pagination state.

        Args:
            deep: Also clone each item that supports cloning
        """
        items: Iterable[T] = self._items
        if deep:
            items = [item.clone(deep=True) if hasattr(item, "clone") else item for item in self._items]
        clone = Listing(
            self._client,
            items,
            uri=self._uri,
            query=dict(self._query),
            method=self._method,
            transform=self._transform,
            is_comment_list=self._is_comment_list,
            stub=self._stub.clone() if self._stub is not None else None,
            lookahead=self._lookahead,
        )
        clone._backward = self._backward
        return clone

    async def fetch_more(
        self,
        amount: float,
        skip_replies: bool = False,
        append: bool = True,
    ) -> "Listing[T]":
        """
        Fetch up to `amount` more items.

        Buffered lookahead items are used first. Forward pages are appended;
        if this Listing was opened with a `before` cursor, pages are prepended
        so the items stay in the order reddit lists them.

        Args:
            amount: Number of items to fetch (math.inf for all)
            skip_replies: For comment listings, resolve stubbed comments
                through api/info: 100 per request instead of 20, but without
                their replies
            append: Keep the items already in this Listing

        Returns:
            A new Listing; this one is left unchanged

        Raises:
            InvalidMethodCallError: If `amount` is not a number

        Example:
            >>> page = await listing.fetch_more(10)
            >>> page.is_finished
            False
        """
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or math.isnan(amount):
            raise InvalidMethodCallError(
                "Failed to fetch Listing. (`amount` parameter was missing or invalid)"
            )
        if math.isfinite(amount):
            amount = math.ceil(amount)

        result = self.clone()
        if not append:
            result._items = []

        remaining = amount
        while remaining > 0 and not result.is_finished:
            if result._lookahead:
                remaining -= result._take_lookahead(remaining)
            elif result._stub is not None:
                remaining -= await result._fetch_from_stub(remaining, skip_replies)
            else:
                remaining -= await result._fetch_page(remaining)
        return result

    async def fetch_all(self, skip_replies: bool = False) -> "Listing[T]":
        """Fetch every remaining item. Equivalent to fetch_more(math.inf)."""
        return await self.fetch_more(math.inf, skip_replies=skip_replies)

    def _take_lookahead(self, amount: float) -> int:
        count = min(amount, len(self._lookahead))
        if self._backward:
            split = len(self._lookahead) - count
            self._items[:0] = self._lookahead[split:]
            self._lookahead = self._lookahead[:split]
        else:
            self._items.extend(self._lookahead[:count])
            self._lookahead = self._lookahead[count:]
        logger.debug("lookahead_consumed", items=count, buffered=len(self._lookahead))
        return count

    async def _fetch_from_stub(self, amount: float, skip_replies: bool) -> int:
        consumed = min(amount, len(self._stub))
        self._items.extend(await self._stub.fetch_more(amount, skip_replies=skip_replies))
        self._stub = self._stub.drained(consumed)
        return consumed

    async def _fetch_page(self, amount: float) -> int:
        query = {key: value for key, value in self._query.items() if value is not None}
        if not self._is_comment_list:
            # reddit ignores a limit it cannot parse and falls back to 25
            query["limit"] = min(amount, MAX_SAFE_LIMIT)

        response = await self._client.request(self._method, self._uri, params=query)
        page = self._transform(response)
        if not isinstance(page, Listing):
            raise MalformedResponseError(
                f"Expected a Listing from {self._uri}, got {type(page).__name__}",
                endpoint=self._uri,
            )

        fetched = list(page)
        surplus = max(len(fetched) - amount, 0)
        self._backward = bool(self._query.get("before"))
        if self._backward:
            # Items nearest the ones already held go into the Listing
            self._lookahead = fetched[:surplus] + self._lookahead
            self._items[:0] = fetched[surplus:]
            self._query["before"] = page.before if page.before is not UNSET else None
            self._query["after"] = None
        else:
            self._lookahead = fetched[len(fetched) - surplus:] + self._lookahead
            self._items.extend(fetched[:len(fetched) - surplus])
            self._query["before"] = None
            self._query["after"] = page.after if page.after is not UNSET else None

        if self._is_comment_list:
            if self._stub is None:
                self._stub = page.stub if page.stub is not None else MoreStub.empty(self._client)

        if not fetched:
            # An empty page ends the listing even if reddit sent a cursor
            self._query["after"] = None
            self._query["before"] = None

        logger.debug(
            "listing_page_fetched",
            uri=self._uri,
            items=len(fetched),
            after=self._query.get("after"),
            before=self._query.get("before"),
            buffered=len(self._lookahead),
        )
        return len(fetched)

    def to_plain(self) -> List[Any]:
        return [item.to_plain() if hasattr(item, "to_plain") else item for item in self._items]
