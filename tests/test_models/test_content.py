"""
Tests for reddit content objects.

Tests cover:
- Unfetched handles and fetched snapshots
- fetch() and refresh() for each content type
- Normalisation of comment replies
- Reply tree expansion
- Voting, replying and moderation actions
"""

from types import MappingProxyType
from urllib.parse import parse_qs

import pytest

from snoopager.models.content import (
    Comment,
    Fetched,
    PrivateMessage,
    ReplyState,
    Submission,
    Subreddit,
    Unfetched,
)
from snoopager.models.listing import Listing
from snoopager.reddit.exceptions import (
    InvalidMethodCallError,
    NotFoundError,
    RedditJSONError,
)


def thread_response(payloads, comments):
    return [
        payloads.listing([payloads.submission("post")]),
        payloads.listing(comments),
    ]


def form(request):
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


class TestHandles:
    """Test unfetched and fetched states."""

    def test_unfetched_field_access_hints_at_fetch(self, client):
        """Test reading a missing field on a handle mentions fetch()."""
        submission = client.get_submission("abc")

        with pytest.raises(AttributeError) as exc_info:
            submission.title

        assert "fetch()" in str(exc_info.value)

    def test_fetched_missing_field(self, client, payloads):
        """Test a fetched object without a field raises a plain AttributeError."""
        submission = client.materializer.populate(payloads.submission("abc"))

        with pytest.raises(AttributeError) as exc_info:
            submission.not_a_field

        assert "fetch()" not in str(exc_info.value)

    def test_state(self, client, payloads):
        """Test state reports Unfetched with the identifier, or the fields."""
        handle = client.get_subreddit("python")
        fetched = client.materializer.populate(payloads.thing("t5", display_name="python", subscribers=1))

        assert handle.state == Unfetched(name="python")
        assert isinstance(fetched.state, Fetched)
        assert isinstance(fetched.state.fields, MappingProxyType)
        assert fetched.state.fields["subscribers"] == 1

    def test_equality_and_hash(self, client, payloads):
        """Test objects compare by type, state and fields."""
        a = client.get_submission("abc")
        b = client.get_submission("t3_abc")
        fetched = client.materializer.populate(payloads.submission("abc"))

        assert a == b
        assert hash(a) == hash(b)
        assert a != fetched
        assert a != client.get_comment("abc")

    def test_generic_content_cannot_be_fetched(self, client, payloads):
        """Test content of an unknown kind has no URI."""
        thing = client.materializer.populate(payloads.thing("LabeledMulti", name="m"))

        with pytest.raises(InvalidMethodCallError):
            thing.uri

    def test_to_plain_collapses_references(self, client, payloads):
        """Test author and subreddit handles convert back to names."""
        submission = client.materializer.populate(payloads.submission("abc", score=5))

        plain = submission.to_plain()

        assert plain["author"] == "poster"
        assert plain["subreddit"] == "test"
        assert plain["score"] == 5

    def test_deep_clone(self, client, payloads):
        """Test a deep clone shares no nested objects."""
        submission = client.materializer.populate(
            thread_response(payloads, [payloads.comment("c1")])
        )

        clone = submission.clone(deep=True)

        assert clone == submission
        assert clone.comments is not submission.comments
        assert clone.comments[0] is not submission.comments[0]


class TestFetch:
    """Test fetch() and refresh()."""

    @pytest.mark.asyncio
    async def test_fetch_subreddit(self, client, fake_reddit, payloads):
        """Test a subreddit handle is fetched from its about page."""
        fake_reddit.add_json("/r/python/about", payloads.thing("t5", display_name="python", subscribers=10))
        handle = client.get_subreddit("python")

        subreddit = await handle.fetch()

        assert isinstance(subreddit, Subreddit)
        assert subreddit.is_fetched is True
        assert subreddit.subscribers == 10
        assert handle.is_fetched is False

    @pytest.mark.asyncio
    async def test_missing_subreddit(self, client, fake_reddit, payloads):
        """Test a search listing in place of a subreddit means it does not exist."""
        fake_reddit.add_json("/r/nope/about", payloads.listing([]))

        with pytest.raises(NotFoundError):
            await client.get_subreddit("nope").fetch()

    @pytest.mark.asyncio
    async def test_fetch_user(self, client, fake_reddit, payloads):
        """Test a user handle is fetched from its about page."""
        fake_reddit.add_json("/user/spez/about", payloads.thing("t2", name="spez", link_karma=7))

        user = await client.get_user("spez").fetch()

        assert user.link_karma == 7

    @pytest.mark.asyncio
    async def test_fetch_submission(self, client, fake_reddit, payloads):
        """Test a submission is fetched with its comment listing attached."""
        fake_reddit.add_json(
            "/comments/post",
            thread_response(payloads, [payloads.comment("c1"), payloads.more(["c2"])]),
        )

        submission = await client.get_submission("post").fetch()

        assert isinstance(submission, Submission)
        assert submission.title == "Post post"
        assert [c.name for c in submission.comments] == ["t1_c1"]
        assert submission.comments.stub.link_id == "t3_post"
        assert submission.reply_state is ReplyState.PARTIALLY_EXPANDED

    @pytest.mark.asyncio
    async def test_missing_submission(self, client, fake_reddit, payloads):
        """Test a response without a submission raises NotFoundError."""
        fake_reddit.add_json("/comments/gone", payloads.listing([]))

        with pytest.raises(NotFoundError):
            await client.get_submission("gone").fetch()

    @pytest.mark.asyncio
    async def test_fetch_comment(self, client, fake_reddit, payloads):
        """Test a comment is fetched through api/info with replies left to its permalink."""
        fake_reddit.add_json("/api/info", payloads.listing([payloads.comment("c1")]))

        comment = await client.get_comment("c1").fetch()

        assert isinstance(comment, Comment)
        assert fake_reddit.requests[0].url.params["id"] == "t1_c1"
        assert comment.replies.uri == "comments/post"
        assert comment.replies.query == {"comment": "c1"}
        assert comment.reply_state is ReplyState.UNEXPANDED

    @pytest.mark.asyncio
    async def test_missing_comment(self, client, fake_reddit, payloads):
        """Test an empty api/info result raises NotFoundError."""
        fake_reddit.add_json("/api/info", payloads.listing([]))

        with pytest.raises(NotFoundError):
            await client.get_comment("c1").fetch()

    @pytest.mark.asyncio
    async def test_fetch_message_from_thread(self, client, fake_reddit, payloads):
        """Test a message is found inside its re-stitched conversation."""
        fake_reddit.add_json(
            "/message/messages/m3",
            payloads.listing([
                payloads.message(
                    "m1",
                    replies=payloads.listing([
                        payloads.message("m2", parent_id="t4_m1"),
                        payloads.message("m3", parent_id="t4_m2"),
                    ]),
                ),
            ]),
        )

        message = await client.get_message("m3").fetch()

        assert isinstance(message, PrivateMessage)
        assert message.name == "t4_m3"
        assert message.body == "Message m3"

    @pytest.mark.asyncio
    async def test_fetch_is_idempotent_refresh_is_not(self, client, fake_reddit, payloads):
        """Test fetch() on a fetched object returns it; refresh() re-requests."""
        fake_reddit.add_json("/r/python/about", payloads.thing("t5", display_name="python", subscribers=1))
        fake_reddit.add_json("/r/python/about", payloads.thing("t5", display_name="python", subscribers=2))

        subreddit = await client.get_subreddit("python").fetch()
        same = await subreddit.fetch()
        refreshed = await subreddit.refresh()

        assert same is subreddit
        assert refreshed.subscribers == 2
        assert len(fake_reddit.requests) == 2


class TestReplies:
    """Test normalisation of comment replies."""

    def test_empty_string_becomes_finished_listing(self, client, payloads):
        """Test reddit's empty-string replies become an empty, finished Listing."""
        comment = client.materializer.populate(payloads.comment("c1"))

        assert isinstance(comment.replies, Listing)
        assert len(comment.replies) == 0
        assert comment.replies.is_finished is True
        assert comment.reply_state is ReplyState.FULLY_EXPANDED

    def test_continue_thread_becomes_permalink_listing(self, client, payloads):
        """Test a lone continue-thread stub leaves replies to the comment's permalink."""
        comment = client.materializer.populate(
            payloads.comment(
                "c1",
                replies=payloads.listing([payloads.more([], parent_id="t1_c1", name="t1__", id="_")]),
            )
        )

        assert comment.replies.uri == "comments/post"
        assert comment.replies.query == {"comment": "c1"}
        assert comment.replies.is_finished is False
        assert comment.reply_state is ReplyState.UNEXPANDED

    def test_replies_stub_gets_link_id(self, client, payloads):
        """Test a replies stub is stamped with the comment's submission."""
        comment = client.materializer.populate(
            payloads.comment(
                "c1",
                replies=payloads.listing([
                    payloads.comment("c2", parent_id="t1_c1"),
                    payloads.more(["c3"], parent_id="t1_c1"),
                ]),
            )
        )

        assert comment.replies.stub.link_id == "t3_post"
        assert comment.reply_state is ReplyState.PARTIALLY_EXPANDED

    def test_empty_replies_stub_knows_its_submission(self, client, payloads):
        """Test the stub of empty replies carries link_id and survives a deep clone."""
        submission = client.materializer.populate(
            thread_response(payloads, [payloads.comment("c1")])
        )
        comment = submission.comments[0]

        clone = comment.clone(deep=True)

        assert comment.replies.stub.link_id == "t3_post"
        assert clone.replies.stub == comment.replies.stub
        assert clone == comment

    def test_continue_thread_name_from_config(self, make_client, payloads):
        """Test the continue-thread stub name can be configured."""
        client = make_client(continue_thread_stub_name="t1_cont")

        comment = client.materializer.populate(
            payloads.comment(
                "c1",
                replies=payloads.listing([payloads.more([], parent_id="t1_c1", name="t1_cont", id="cont")]),
            )
        )

        assert comment.replies.uri == "comments/post"


class TestExpandReplies:
    """Test expand_replies()."""

    @pytest.mark.asyncio
    async def test_expand_submission(self, client, fake_reddit, payloads):
        """Test stubbed comments are fetched and the original is left unchanged."""
        fake_reddit.add_json(
            "/comments/post",
            thread_response(payloads, [payloads.comment("c1"), payloads.more(["c2"])]),
        )
        fake_reddit.add_json("/api/morechildren", payloads.morechildren([payloads.comment("c2")]))

        submission = await client.get_submission("post").fetch()
        expanded = await submission.expand_replies()

        assert [c.name for c in expanded.comments] == ["t1_c1", "t1_c2"]
        assert expanded.reply_state is ReplyState.FULLY_EXPANDED
        assert [c.name for c in submission.comments] == ["t1_c1"]
        assert submission.reply_state is ReplyState.PARTIALLY_EXPANDED
        assert len(fake_reddit.requests) == 2

    @pytest.mark.asyncio
    async def test_expand_nested_replies(self, client, fake_reddit, payloads):
        """Test stubs below the top level are expanded too."""
        fake_reddit.add_json(
            "/comments/post",
            thread_response(
                payloads,
                [
                    payloads.comment(
                        "c1",
                        replies=payloads.listing([
                            payloads.comment("c2", parent_id="t1_c1"),
                            payloads.more(["c3"], parent_id="t1_c1"),
                        ]),
                    ),
                ],
            ),
        )
        fake_reddit.add_json(
            "/api/morechildren",
            payloads.morechildren([payloads.comment("c3", parent_id="t1_c1")]),
        )

        expanded = await client.get_submission("post").expand_replies()

        c1 = expanded.comments[0]
        assert [c.name for c in c1.replies] == ["t1_c2", "t1_c3"]
        assert c1.replies.is_finished is True
        assert fake_reddit.requests[1].url.params["link_id"] == "t3_post"

    @pytest.mark.asyncio
    async def test_depth_zero_fetches_nothing(self, client, fake_reddit, payloads):
        """Test depth=0 only fetches the item itself."""
        fake_reddit.add_json(
            "/comments/post",
            thread_response(payloads, [payloads.comment("c1"), payloads.more(["c2"])]),
        )

        expanded = await client.get_submission("post").expand_replies(depth=0)

        assert len(expanded.comments) == 1
        assert len(fake_reddit.requests) == 1


class TestActions:
    """Test voting, replying and moderation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action,direction", [("upvote", "1"), ("downvote", "-1"), ("unvote", "0")])
    async def test_vote(self, client, fake_reddit, action, direction):
        """Test votes are posted with their direction."""
        fake_reddit.add_json("/api/vote", {})
        submission = client.get_submission("abc")

        result = await getattr(submission, action)()

        request = fake_reddit.requests[0]
        assert result is submission
        assert request.method == "POST"
        assert form(request) == {"dir": direction, "id": "t3_abc"}

    @pytest.mark.asyncio
    async def test_save_with_category(self, client, fake_reddit):
        """Test save() sends the category when given."""
        fake_reddit.add_json("/api/save", {})

        await client.get_comment("c1").save(category="later")

        assert form(fake_reddit.requests[0]) == {"id": "t1_c1", "category": "later"}

    @pytest.mark.asyncio
    async def test_reply(self, client, fake_reddit, payloads):
        """Test reply() returns the new comment."""
        fake_reddit.add_json(
            "/api/comment",
            payloads.morechildren([payloads.comment("new", parent_id="t3_abc")]),
        )

        reply = await client.get_submission("abc").reply("hello")

        assert isinstance(reply, Comment)
        assert reply.name == "t1_new"
        assert form(fake_reddit.requests[0]) == {"api_type": "json", "text": "hello", "thing_id": "t3_abc"}

    @pytest.mark.asyncio
    async def test_reply_to_message(self, client, fake_reddit, payloads):
        """Test private messages can be replied to."""
        fake_reddit.add_json(
            "/api/comment",
            payloads.morechildren([payloads.message("m2", parent_id="t4_m1")]),
        )

        reply = await client.get_message("m1").reply("hi")

        assert isinstance(reply, PrivateMessage)

    @pytest.mark.asyncio
    async def test_reply_rejected(self, client, fake_reddit, payloads):
        """Test an error list in the reply response is raised."""
        fake_reddit.add_json(
            "/api/comment",
            payloads.morechildren([], errors=[["RATELIMIT", "you are doing that too much", "ratelimit"]]),
        )

        with pytest.raises(RedditJSONError):
            await client.get_comment("c1").reply("again")

    @pytest.mark.asyncio
    async def test_remove_as_spam(self, client, fake_reddit):
        """Test remove() sends the spam flag."""
        fake_reddit.add_json("/api/remove", {})

        await client.get_submission("abc").remove(spam=True)

        assert form(fake_reddit.requests[0]) == {"spam": "true", "id": "t3_abc"}

    def test_messages_cannot_be_voted_on(self, client):
        """Test capabilities are limited to the types that support them."""
        message = client.get_message("m1")

        assert not hasattr(message, "upvote")
        assert not hasattr(message, "remove")
