"""
Shared fixtures: a fake Reddit API served through httpx.MockTransport, a
controllable clock and a sleep that records instead of waiting.
"""

from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from snoopager.config import ClientConfig
from snoopager.reddit.client import RedditClient

USER_AGENT = "snoopager-tests/0.1 (by /u/snoopager)"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records waits and advances the fake clock."""

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.calls: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


Route = Union[List[httpx.Response], Callable[[httpx.Request], httpx.Response]]


class FakeReddit:
    """
    Request handler for httpx.MockTransport.

    Queued responses are served once each, in order; handler routes answer
    every request to their path. Unrouted requests get a 404.
    """

    def __init__(self) -> None:
        self._routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, *responses: httpx.Response) -> None:
        self._routes.setdefault(path, []).extend(responses)

    def add_json(self, path: str, body: Any, status_code: int = 200, **headers: str) -> None:
        self.add(path, httpx.Response(status_code, json=body, headers=headers))

    def add_handler(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[path] = handler

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get(request.url.path)
        if callable(route):
            return route(request)
        if not route:
            return httpx.Response(404, json={"message": "Not Found", "error": 404})
        return route.pop(0)


class Payloads:
    """Builders for reddit's `{kind, data}` JSON envelopes."""

    @staticmethod
    def thing(kind: str, **data: Any) -> Dict[str, Any]:
        return {"kind": kind, "data": data}

    @staticmethod
    def listing(children: List[Any], after: Optional[str] = None, before: Optional[str] = None) -> Dict[str, Any]:
        return Payloads.thing("Listing", children=children, after=after, before=before, dist=len(children))

    @staticmethod
    def submission(id: str, **data: Any) -> Dict[str, Any]:
        fields = {"id": id, "name": f"t3_{id}", "title": f"Post {id}", "author": "poster", "subreddit": "test"}
        fields.update(data)
        return Payloads.thing("t3", **fields)

    @staticmethod
    def comment(
        id: str,
        parent_id: str = "t3_post",
        link_id: str = "t3_post",
        replies: Any = "",
        **data: Any,
    ) -> Dict[str, Any]:
        fields = {
            "id": id,
            "name": f"t1_{id}",
            "parent_id": parent_id,
            "link_id": link_id,
            "body": f"Comment {id}",
            "author": "commenter",
            "subreddit": "test",
            "replies": replies,
        }
        fields.update(data)
        return Payloads.thing("t1", **fields)

    @staticmethod
    def message(id: str, parent_id: Optional[str] = None, replies: Any = "", **data: Any) -> Dict[str, Any]:
        fields = {"id": id, "name": f"t4_{id}", "parent_id": parent_id, "body": f"Message {id}", "replies": replies}
        fields.update(data)
        return Payloads.thing("t4", **fields)

    @staticmethod
    def more(
        children: List[str],
        parent_id: str = "t3_post",
        name: Optional[str] = None,
        id: Optional[str] = None,
    ) -> Dict[str, Any]:
        id = id or (children[0] if children else "_")
        return Payloads.thing(
            "more",
            children=children,
            count=len(children),
            parent_id=parent_id,
            depth=0,
            id=id,
            name=name or f"t1_{id}",
        )

    @staticmethod
    def morechildren(things: List[Any], errors: Optional[List[Any]] = None) -> Dict[str, Any]:
        return {"json": {"errors": errors or [], "data": {"things": things}}}


@pytest.fixture
def payloads():
    """JSON envelope builders."""
    return Payloads


@pytest.fixture
def clock():
    """Fake monotonic clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def sleep(clock):
    """Recording sleep bound to the fake clock."""
    return RecordingSleep(clock)


@pytest.fixture
def fake_reddit():
    """Fake Reddit API with no routes."""
    return FakeReddit()


@pytest.fixture
def static_config():
    """Config with a static access token; no token endpoint needed."""
    return ClientConfig(user_agent=USER_AGENT, access_token="static-token")


@pytest.fixture
def refresh_config():
    """Config using the refresh_token grant."""
    return ClientConfig(
        user_agent=USER_AGENT,
        client_id="client-id-123",
        client_secret="client-secret",
        refresh_token="refresh-abc",
    )


@pytest.fixture
def make_client(fake_reddit, clock, sleep, static_config):
    """Factory building a RedditClient wired to fake_reddit."""

    def factory(config: Optional[ClientConfig] = None, **overrides: Any) -> RedditClient:
        if config is None:
            config = static_config.model_copy(update=overrides) if overrides else static_config
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_reddit))
        return RedditClient(config, http_client, clock=clock, sleep=sleep)

    return factory


@pytest.fixture
def client(make_client):
    """RedditClient with a static token, talking to fake_reddit."""
    return make_client()
