"""
Unit tests for the view state machines in social.graze.pdsls.views

Tests cover the mount sequence, notices, listing pagination and failure handling of each view.
The resolver and XRPC session are mocks from tests.test_helpers.
"""

import pytest

from social.graze.pdsls.address import RouteParams
from social.graze.pdsls.atproto.xrpc import DescribeRepoOutput, RepoEntry, ListReposOutput, RpcError
from social.graze.pdsls.resolve.handle import ResolutionError
from social.graze.pdsls.views.base import (
    LOADING_NOTICE,
    RESOLVE_FAILED_NOTICE,
    TRANSITIONS,
    InvalidTransition,
    ViewState,
)
from social.graze.pdsls.views.collection import CollectionView
from social.graze.pdsls.views.record import RecordView
from social.graze.pdsls.views.repository import RepositoryView
from social.graze.pdsls.views.server import ServerView

from tests.test_helpers import TEST_DID, TEST_PDS, record_body, record_page, repo_page


def route(path: str) -> RouteParams:
    return RouteParams.from_path(path)


class TestTransitions:
    """Test suite for the transition table."""

    def test_mount_path(self):
        assert ViewState.resolving in TRANSITIONS[ViewState.idle]
        assert ViewState.loading in TRANSITIONS[ViewState.resolving]
        assert ViewState.ready in TRANSITIONS[ViewState.loading]

    def test_idle_cannot_skip(self):
        assert ViewState.ready not in TRANSITIONS[ViewState.idle]
        assert ViewState.loading not in TRANSITIONS[ViewState.idle]

    def test_failed_can_recover(self):
        assert ViewState.ready in TRANSITIONS[ViewState.failed]
        assert ViewState.resolving not in TRANSITIONS[ViewState.failed]

    @pytest.mark.asyncio
    async def test_mount_twice_rejected(self, navigator, xrpc_session):
        """Test a view is mounted once and never re-enters resolution."""
        xrpc_session.list_repos.return_value = repo_page(3)
        view = await navigator.navigate(route("/pds.example.com"))

        with pytest.raises(InvalidTransition):
            await view.mount()


class TestMount:
    """Test suite for the shared mount sequence."""

    @pytest.mark.asyncio
    async def test_literal_host_skips_resolution(
        self, navigator, resolver, session_factory, xrpc_session
    ):
        xrpc_session.list_repos.return_value = repo_page(3)

        view = await navigator.navigate(route("/pds.bsky.mom"))

        assert isinstance(view, ServerView)
        assert view.state == ViewState.ready
        resolver.resolve.assert_not_called()
        session_factory.assert_called_once_with("https://pds.bsky.mom")

    @pytest.mark.asyncio
    async def test_sentinel_resolves_repo(self, navigator, resolver, session_factory, xrpc_session):
        xrpc_session.describe_repo.return_value = DescribeRepoOutput(did=TEST_DID)

        view = await navigator.navigate(route(f"/at/{TEST_DID}"))

        resolver.resolve.assert_awaited_once_with(TEST_DID)
        session_factory.assert_called_once_with(TEST_PDS)
        assert view.identity.did == TEST_DID
        assert view.pds_host == "pds.example.com"

    @pytest.mark.asyncio
    async def test_notices_on_success(self, navigator, xrpc_session, notices):
        """Test the notice reads Loading... while mounting and is cleared afterwards."""
        xrpc_session.list_repos.return_value = repo_page(3)

        view = await navigator.navigate(route("/pds.example.com"))

        assert notices == ["", LOADING_NOTICE, ""]
        assert view.notice == ""
        assert view.error is None

    @pytest.mark.asyncio
    async def test_resolution_failure(self, navigator, resolver, session_factory, notices):
        resolver.resolve.side_effect = ResolutionError.pds_not_found(TEST_DID)

        view = await navigator.navigate(route(f"/at/{TEST_DID}"))

        assert view.state == ViewState.failed
        assert navigator.notice.text == RESOLVE_FAILED_NOTICE
        assert "error-pdsls-resolve-1001" in view.error
        session_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_failure_shows_server_message(self, navigator, xrpc_session):
        xrpc_session.get_record.side_effect = RpcError(
            "Could not locate record", status=400, error="RecordNotFound"
        )

        view = await navigator.navigate(route(f"/at/{TEST_DID}/app.bsky.feed.post/nope"))

        assert view.state == ViewState.failed
        assert view.error == "Could not locate record"
        assert navigator.notice.text == "Could not locate record"
        assert view.record is None


class TestServerView:
    """Test suite for repository listings on one PDS."""

    @pytest.mark.asyncio
    async def test_first_page(self, navigator, xrpc_session):
        xrpc_session.list_repos.return_value = repo_page(1000, cursor="c1")

        view = await navigator.navigate(route("/pds.example.com"))

        xrpc_session.list_repos.assert_awaited_once_with(1000, None)
        assert len(view.listing.items) == 1000
        assert view.has_more

    @pytest.mark.asyncio
    async def test_inactive_repos_marked(self, navigator, xrpc_session):
        xrpc_session.list_repos.return_value = ListReposOutput(
            repos=[
                RepoEntry(did="did:plc:live"),
                RepoEntry(did="did:plc:gone", active=False, status="takendown"),
            ]
        )

        view = await navigator.navigate(route("/pds.example.com"))
        repos = view.snapshot()["repos"]

        assert repos[0] == {"label": "did:plc:live", "href": "/at/did:plc:live", "active": True}
        assert repos[1]["active"] is False
        assert view.has_more is False

    @pytest.mark.asyncio
    async def test_load_more_appends(self, navigator, xrpc_session, notices):
        xrpc_session.list_repos.side_effect = [
            repo_page(1000, cursor="c1"),
            repo_page(10, cursor="c2", start=1000),
        ]
        view = await navigator.navigate(route("/pds.example.com"))
        notices.clear()

        assert await view.load_more() is True

        assert xrpc_session.list_repos.await_args.args == (1000, "c1")
        assert [r.did for r in view.listing.items[998:1002]] == [
            "did:plc:repo998",
            "did:plc:repo999",
            "did:plc:repo1000",
            "did:plc:repo1001",
        ]
        assert view.state == ViewState.ready
        assert view.has_more is False
        assert notices == [LOADING_NOTICE, ""]

    @pytest.mark.asyncio
    async def test_load_more_when_exhausted(self, navigator, xrpc_session):
        xrpc_session.list_repos.return_value = repo_page(3)
        view = await navigator.navigate(route("/pds.example.com"))

        assert await view.load_more() is False
        assert xrpc_session.list_repos.await_count == 1

    @pytest.mark.asyncio
    async def test_load_more_before_mount(self, navigator, xrpc_session):
        view = navigator.open(route("/pds.example.com"))

        assert await view.load_more() is False
        xrpc_session.list_repos.assert_not_called()

    @pytest.mark.asyncio
    async def test_load_more_failure_keeps_items(self, navigator, xrpc_session):
        """Test a failed page keeps what was loaded and can be retried without duplicates."""
        xrpc_session.list_repos.side_effect = [
            repo_page(1000, cursor="c1"),
            RpcError("upstream timeout"),
            repo_page(1000, cursor="c2", start=1000),
        ]
        view = await navigator.navigate(route("/pds.example.com"))

        assert await view.load_more() is True
        assert view.state == ViewState.failed
        assert view.error == "upstream timeout"
        assert navigator.notice.text == "upstream timeout"
        assert len(view.listing.items) == 1000
        assert view.listing.cursor == "c1"
        assert view.has_more

        assert await view.load_more() is True
        assert view.state == ViewState.ready
        assert view.error is None
        assert navigator.notice.text == ""
        assert xrpc_session.list_repos.await_args.args == (1000, "c1")
        dids = [r.did for r in view.listing.items]
        assert len(dids) == 2000
        assert len(set(dids)) == 2000


class TestRepositoryView:
    """Test suite for describeRepo-backed views."""

    @pytest.mark.asyncio
    async def test_collections(self, navigator, xrpc_session):
        xrpc_session.describe_repo.return_value = DescribeRepoOutput(
            did=TEST_DID,
            handle="alice.test",
            did_doc={"id": TEST_DID},
            collections=["app.bsky.actor.profile", "app.bsky.feed.post"],
        )

        view = await navigator.navigate(route(f"/at/{TEST_DID}"))

        assert isinstance(view, RepositoryView)
        xrpc_session.describe_repo.assert_awaited_once_with(TEST_DID)
        assert [item.href for item in view.items()] == [
            f"/at/{TEST_DID}/app.bsky.actor.profile",
            f"/at/{TEST_DID}/app.bsky.feed.post",
        ]
        snapshot = view.snapshot()
        assert snapshot["handle"] == "alice.test"
        assert snapshot["did_doc"] == {"id": TEST_DID}

    @pytest.mark.asyncio
    async def test_load_more_not_supported(self, navigator, xrpc_session):
        xrpc_session.describe_repo.return_value = DescribeRepoOutput(did=TEST_DID)
        await navigator.navigate(route(f"/at/{TEST_DID}"))

        assert await navigator.load_more() is False


class TestCollectionView:
    """Test suite for record listings."""

    @pytest.mark.asyncio
    async def test_records(self, navigator, xrpc_session):
        xrpc_session.list_records.return_value = record_page(100, cursor="r1")

        view = await navigator.navigate(route(f"/at/{TEST_DID}/app.bsky.feed.post"))

        assert isinstance(view, CollectionView)
        xrpc_session.list_records.assert_awaited_once_with(
            TEST_DID, "app.bsky.feed.post", 100, None
        )
        assert view.items()[0].href == f"/at/{TEST_DID}/app.bsky.feed.post/rkey0"
        assert view.snapshot()["has_more"] is True
        assert view.snapshot()["cursor"] == "r1"

    @pytest.mark.asyncio
    async def test_short_page_ends_listing(self, navigator, xrpc_session):
        """Test a short page with a cursor still ends the listing."""
        xrpc_session.list_records.return_value = record_page(42, cursor="r1")

        view = await navigator.navigate(route(f"/at/{TEST_DID}/app.bsky.feed.post"))

        assert view.has_more is False
        assert view.listing.cursor is None

    @pytest.mark.asyncio
    async def test_navigator_load_more(self, navigator, xrpc_session):
        xrpc_session.list_records.side_effect = [
            record_page(100, cursor="r1"),
            record_page(100, cursor="r2", start=100),
        ]
        view = await navigator.navigate(route(f"/at/{TEST_DID}/app.bsky.feed.post"))

        assert await navigator.load_more() is True
        assert len(view.listing.items) == 200
        assert xrpc_session.list_records.await_args.args == (
            TEST_DID,
            "app.bsky.feed.post",
            100,
            "r1",
        )


class TestRecordView:
    """Test suite for single records."""

    @pytest.mark.asyncio
    async def test_record_links(self, navigator, xrpc_session):
        uri = f"at://{TEST_DID}/app.bsky.feed.like/3k"
        xrpc_session.get_record.return_value = record_body(
            uri,
            {
                "$type": "app.bsky.feed.like",
                "subject": {"uri": "at://did:plc:other/app.bsky.feed.post/abc"},
            },
        )

        view = await navigator.navigate(route(f"/at/{TEST_DID}/app.bsky.feed.like/3k"))

        assert isinstance(view, RecordView)
        xrpc_session.get_record.assert_awaited_once_with(TEST_DID, "app.bsky.feed.like", "3k")
        snapshot = view.snapshot()
        assert snapshot["record"]["uri"] == uri
        assert {
            "pointer": "/value/subject/uri",
            "href": "/at/did:plc:other/app.bsky.feed.post/abc",
        } in snapshot["links"]

    @pytest.mark.asyncio
    async def test_snapshot_breadcrumbs(self, navigator, xrpc_session):
        xrpc_session.get_record.return_value = record_body(
            f"at://{TEST_DID}/app.bsky.feed.post/3k", {"text": "hi"}
        )

        view = await navigator.navigate(route(f"/at/{TEST_DID}/app.bsky.feed.post/3k"))

        assert view.snapshot()["breadcrumbs"] == [
            {"label": "pds.example.com", "href": "/pds.example.com"},
            {"label": TEST_DID, "href": f"/at/{TEST_DID}"},
            {"label": "app.bsky.feed.post", "href": f"/at/{TEST_DID}/app.bsky.feed.post"},
            {"label": "3k", "href": None},
        ]
