"""
Common testing utilities for PDSls view and service tests.

Provides builders for mock collaborators (the identity resolver and XRPC sessions) and for the
wire models they return.
"""

from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, Mock

from social.graze.pdsls.atproto.xrpc import (
    ListRecordsOutput,
    ListReposOutput,
    RecordOutput,
    RepoEntry,
    XrpcSession,
)
from social.graze.pdsls.resolve.handle import ResolvedSubject

TEST_DID = "did:plc:oisofpd7lj26yvgiivf3lxsi"
TEST_PDS = "https://pds.example.com"


def make_xrpc_session(endpoint: str = TEST_PDS) -> Mock:
    """Create a mock XrpcSession with async RPC methods."""
    session = Mock(spec=XrpcSession)
    session.endpoint = endpoint
    session.host = endpoint.removeprefix("https://")
    session.describe_repo = AsyncMock()
    session.get_record = AsyncMock()
    session.list_records = AsyncMock()
    session.list_repos = AsyncMock()
    return session


def make_resolver(did: str = TEST_DID, pds: str = TEST_PDS) -> Mock:
    """Create a mock resolver that resolves everything to one DID and PDS."""
    resolver = Mock()
    resolver.resolve = AsyncMock(return_value=ResolvedSubject(did=did, pds=pds))
    resolver.resolve_did = AsyncMock(return_value=did)
    return resolver


def repo_page(count: int, cursor: Optional[str] = None, start: int = 0) -> ListReposOutput:
    return ListReposOutput(
        repos=[RepoEntry(did=f"did:plc:repo{start + i}") for i in range(count)],
        cursor=cursor,
    )


def record_page(
    count: int, cursor: Optional[str] = None, start: int = 0, repo: str = TEST_DID
) -> ListRecordsOutput:
    return ListRecordsOutput(
        records=[
            RecordOutput(
                uri=f"at://{repo}/app.bsky.feed.post/rkey{start + i}",
                cid=f"cid{start + i}",
                value={"text": f"post {start + i}"},
            )
            for i in range(count)
        ],
        cursor=cursor,
    )


def record_body(uri: str, value: Dict[str, Any]) -> RecordOutput:
    return RecordOutput(uri=uri, cid="bafyreicid", value=value)
