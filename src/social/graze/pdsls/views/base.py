"""
View state machines.

Every view follows the same sequence when it is mounted:

    IDLE -> RESOLVING -> LOADING -> READY
                |           |
                +-> FAILED  +-> FAILED

Resolution is skipped when the route names a literal PDS host. Listing views may "load more"
from READY (staying READY on success) or from FAILED (returning to READY on success).

A view never writes after it stops being the active one. Each view is handed an `is_current`
check by the navigator and consults it after every suspension point before touching its own
state or publishing a notice.
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable, Dict, FrozenSet, Generic, Optional, Protocol, TypeVar

from social.graze.pdsls.address import RouteParams
from social.graze.pdsls.atproto.pagination import ListingAccumulator, Page
from social.graze.pdsls.atproto.xrpc import RpcError, XrpcSession, endpoint_url
from social.graze.pdsls.resolve.handle import ResolutionError, ResolvedSubject

logger = logging.getLogger(__name__)

LOADING_NOTICE = "Loading..."
RESOLVE_FAILED_NOTICE = "Could not resolve PDS"

T = TypeVar("T")
ResultType = TypeVar("ResultType")


class ViewState(str, Enum):
    idle = "idle"
    resolving = "resolving"
    loading = "loading"
    ready = "ready"
    failed = "failed"


TRANSITIONS: Dict[ViewState, FrozenSet[ViewState]] = {
    ViewState.idle: frozenset({ViewState.resolving}),
    ViewState.resolving: frozenset({ViewState.loading, ViewState.failed}),
    ViewState.loading: frozenset({ViewState.ready, ViewState.failed}),
    ViewState.ready: frozenset({ViewState.ready, ViewState.failed}),
    ViewState.failed: frozenset({ViewState.ready, ViewState.failed}),
}


class InvalidTransition(Exception):
    @staticmethod
    def between(source: ViewState, target: ViewState) -> "InvalidTransition":
        return InvalidTransition(
            f"error-pdsls-view-1000 Invalid transition {source.value} -> {target.value}"
        )


class Resolver(Protocol):
    async def resolve(self, identifier: str) -> ResolvedSubject: ...

    async def resolve_did(self, identifier: str) -> str: ...


@dataclass
class ViewContext:
    """Everything a view borrows from the navigator that mounted it."""

    resolver: Resolver
    session_factory: Callable[[str], XrpcSession]
    publish_notice: Callable[[str], None]
    is_current: Callable[[], bool]
    record_page_size: int = 100
    repo_page_size: int = 1000


class View(ABC, Generic[ResultType]):
    """One navigation depth: resolve, fetch once, then hold the result."""

    kind: str = "view"

    def __init__(self, route: RouteParams, context: ViewContext) -> None:
        self.route = route
        self._context = context
        self.state = ViewState.idle
        self.notice = ""
        self.error: Optional[str] = None
        self.identity: Optional[ResolvedSubject] = None
        self.session: Optional[XrpcSession] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> bool:
        return self._context.is_current()

    @property
    def pds_host(self) -> Optional[str]:
        if self.session is not None:
            return self.session.host
        if not self.route.resolves_pds:
            return self.route.pds
        return None

    def _transition(self, target: ViewState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransition.between(self.state, target)
        logger.debug("%s %s: %s -> %s", self.kind, self.route.to_path(), self.state.value, target.value)
        self.state = target

    def _set_notice(self, text: str) -> None:
        if not self.current:
            return
        self.notice = text
        self._context.publish_notice(text)

    def _fail(self, message: str, notice: Optional[str] = None) -> None:
        self.error = message
        self._transition(ViewState.failed)
        self._set_notice(notice if notice is not None else message)

    async def mount(self) -> None:
        async with self._lock:
            self._transition(ViewState.resolving)
            self._set_notice(LOADING_NOTICE)

            if self.route.resolves_pds:
                try:
                    identity = await self._context.resolver.resolve(self.route.repo or "")
                except ResolutionError as e:
                    if not self.current:
                        return
                    logger.info("Could not resolve %s: %s", self.route.repo, e)
                    self._fail(str(e), RESOLVE_FAILED_NOTICE)
                    return
                if not self.current:
                    logger.debug("Dropping stale resolution for %s", self.route.to_path())
                    return
                self.identity = identity
                endpoint = identity.endpoint
            else:
                endpoint = endpoint_url(self.route.pds)

            self._transition(ViewState.loading)
            self.session = self._context.session_factory(endpoint)
            await self._load()

    async def _load(self) -> None:
        assert self.session is not None
        try:
            result = await self._fetch(self.session)
        except RpcError as e:
            if not self.current:
                return
            logger.info("%s %s failed: %s", self.kind, self.route.to_path(), e.message)
            self._fail(e.message)
            return
        if not self.current:
            logger.debug("Dropping stale response for %s", self.route.to_path())
            return
        self._store(result)
        self.error = None
        self._transition(ViewState.ready)
        self._set_notice("")

    @abstractmethod
    async def _fetch(self, session: XrpcSession) -> ResultType:
        pass

    @abstractmethod
    def _store(self, result: ResultType) -> None:
        pass

    def snapshot(self) -> Dict[str, Any]:
        return {
            "view": self.kind,
            "state": self.state.value,
            "notice": self.notice,
            "error": self.error,
            "pds": self.pds_host,
            "path": self.route.to_path(),
            "breadcrumbs": [
                {"label": label, "href": href}
                for label, href in self.route.breadcrumbs(self.pds_host)
            ],
        }


class ListingView(View[Page[T]]):
    """A view over a cursor-paginated listing that grows on explicit "load more"."""

    def __init__(self, route: RouteParams, context: ViewContext, page_size: int) -> None:
        super().__init__(route, context)
        self.listing: ListingAccumulator[T] = ListingAccumulator(page_size=page_size)

    @property
    def has_more(self) -> bool:
        return self.session is not None and not self.listing.exhausted

    def _store(self, result: Page[T]) -> None:
        self.listing.extend(result)

    async def load_more(self) -> bool:
        """Fetch the next page. Returns False when there was nothing to do."""
        async with self._lock:
            if self.state not in (ViewState.ready, ViewState.failed) or not self.has_more:
                return False
            self._set_notice(LOADING_NOTICE)
            await self._load()
            return True

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["cursor"] = self.listing.cursor
        data["has_more"] = self.has_more
        return data
