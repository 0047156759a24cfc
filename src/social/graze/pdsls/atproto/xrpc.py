"""XRPC sessions bound to a single PDS.

A session is a cheap, stateless view over the shared aiohttp ClientSession: creating one does no
network I/O, and every view mount or endpoint change builds a new one. Responses are decoded into
pydantic models at this boundary so callers never index into raw JSON.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from aiohttp import ClientError, ClientSession
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from social.graze.pdsls.app.metrics import MetricsClient
from social.graze.pdsls.atproto.chain import (
    ChainMiddlewareClient,
    ChainResponse,
    DebugMiddleware,
    RequestMiddlewareBase,
    StatsdMiddleware,
)

logger = logging.getLogger(__name__)

OutputType = TypeVar("OutputType", bound=BaseModel)


class RpcError(Exception):
    """
    Raised when an XRPC call fails for any reason.

    The message is the server's own error text when it sent one, so it can be shown verbatim.
    """

    def __init__(
        self, message: str, status: Optional[int] = None, error: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.error = error

    @staticmethod
    def from_response(nsid: str, response: ChainResponse) -> "RpcError":
        error = response.body_value("error")
        message = response.body_value("message") or error
        if not message:
            message = f"error-pdsls-xrpc-1000 {nsid} failed with HTTP {response.status}"
        return RpcError(str(message), status=response.status, error=error)

    @staticmethod
    def transport(nsid: str, exception: Exception) -> "RpcError":
        detail = str(exception) or type(exception).__name__
        return RpcError(f"error-pdsls-xrpc-1001 {nsid} request failed: {detail}")

    @staticmethod
    def malformed(nsid: str, detail: str) -> "RpcError":
        return RpcError(f"error-pdsls-xrpc-1002 {nsid} returned an invalid body: {detail}")


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class DescribeRepoOutput(WireModel):
    handle: Optional[str] = None
    did: str
    did_doc: Dict[str, Any] = Field(default_factory=dict, alias="didDoc")
    collections: List[str] = Field(default_factory=list)
    handle_is_correct: Optional[bool] = Field(default=None, alias="handleIsCorrect")


class RecordOutput(WireModel):
    uri: str
    cid: Optional[str] = None
    value: Dict[str, Any]

    @property
    def repo(self) -> str:
        return self.uri.removeprefix("at://").split("/")[0]

    @property
    def rkey(self) -> str:
        return self.uri.rsplit("/", 1)[-1]


class ListRecordsOutput(WireModel):
    records: List[RecordOutput] = Field(default_factory=list)
    cursor: Optional[str] = None


class RepoEntry(WireModel):
    did: str
    head: Optional[str] = None
    rev: Optional[str] = None
    active: bool = True
    status: Optional[str] = None


class ListReposOutput(WireModel):
    repos: List[RepoEntry] = Field(default_factory=list)
    cursor: Optional[str] = None


def endpoint_url(endpoint: str) -> str:
    """Normalize a bare host or URL into an https base URL without a trailing slash."""
    endpoint = endpoint.rstrip("/")
    if endpoint.startswith(("https://", "http://")):
        return endpoint
    return f"https://{endpoint}"


class XrpcSession:
    """Unauthenticated XRPC client for one PDS endpoint."""

    def __init__(
        self,
        http_session: ClientSession,
        endpoint: str,
        middleware: Optional[List[RequestMiddlewareBase]] = None,
    ) -> None:
        self.endpoint = endpoint_url(endpoint)
        self._chain_client = ChainMiddlewareClient(
            client_session=http_session, middleware=middleware, logger=logger
        )

    @property
    def host(self) -> str:
        return self.endpoint.removeprefix("https://").removeprefix("http://")

    async def query(
        self, nsid: str, output: Type[OutputType], params: Dict[str, Any]
    ) -> OutputType:
        url = f"{self.endpoint}/xrpc/{nsid}"
        query_params = {k: str(v) for k, v in params.items() if v is not None}

        try:
            async with self._chain_client.get(url, params=query_params) as (
                _,
                chain_response,
            ):
                response = chain_response
        except (ClientError, TimeoutError) as e:
            raise RpcError.transport(nsid, e) from e
        except ValueError as e:
            raise RpcError.malformed(nsid, str(e)) from e

        if not response.ok:
            raise RpcError.from_response(nsid, response)

        if not isinstance(response.body, dict):
            raise RpcError.malformed(nsid, "expected a JSON object")

        try:
            return output.model_validate(response.body)
        except ValidationError as e:
            raise RpcError.malformed(nsid, str(e)) from e

    async def describe_repo(self, repo: str) -> DescribeRepoOutput:
        return await self.query(
            "com.atproto.repo.describeRepo", DescribeRepoOutput, {"repo": repo}
        )

    async def get_record(self, repo: str, collection: str, rkey: str) -> RecordOutput:
        return await self.query(
            "com.atproto.repo.getRecord",
            RecordOutput,
            {"repo": repo, "collection": collection, "rkey": rkey},
        )

    async def list_records(
        self, repo: str, collection: str, limit: int, cursor: Optional[str] = None
    ) -> ListRecordsOutput:
        return await self.query(
            "com.atproto.repo.listRecords",
            ListRecordsOutput,
            {"repo": repo, "collection": collection, "limit": limit, "cursor": cursor},
        )

    async def list_repos(
        self, limit: int, cursor: Optional[str] = None
    ) -> ListReposOutput:
        return await self.query(
            "com.atproto.sync.listRepos",
            ListReposOutput,
            {"limit": limit, "cursor": cursor},
        )


def create_session(
    http_session: ClientSession,
    endpoint: str,
    metrics_client: Optional[MetricsClient] = None,
    debug: bool = False,
) -> XrpcSession:
    """Build a session for one endpoint. Does no I/O."""
    middleware: List[RequestMiddlewareBase] = []
    if metrics_client is not None:
        middleware.append(StatsdMiddleware(metrics_client))
    if debug:
        middleware.append(DebugMiddleware())
    return XrpcSession(http_session, endpoint, middleware=middleware)
