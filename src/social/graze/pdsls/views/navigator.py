import logging
from typing import Callable, Dict, List, Optional, Type

from social.graze.pdsls.address import AddressScheme, RouteParams, parse_address
from social.graze.pdsls.atproto.xrpc import XrpcSession
from social.graze.pdsls.resolve.handle import ResolutionError
from social.graze.pdsls.views.base import ListingView, Resolver, View, ViewContext
from social.graze.pdsls.views.collection import CollectionView
from social.graze.pdsls.views.record import RecordView
from social.graze.pdsls.views.repository import RepositoryView
from social.graze.pdsls.views.server import ServerView

logger = logging.getLogger(__name__)

SUBMIT_RESOLVE_FAILED_NOTICE = "Could not resolve At-URI/DID/Handle"

VIEWS_BY_DEPTH: Dict[int, Type[View]] = {
    1: ServerView,
    2: RepositoryView,
    3: CollectionView,
    4: RecordView,
}


class NoticeBoard:
    """
    The single notice display slot.

    Only the navigator writes here, on behalf of whichever view is active.
    """

    def __init__(self) -> None:
        self.text = ""
        self._listeners: List[Callable[[str], None]] = []

    def subscribe(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def publish(self, text: str) -> None:
        self.text = text
        for listener in self._listeners:
            listener(text)


class Navigator:
    """
    Mounts one view at a time and owns the notice slot.

    Navigating discards the previous view outright. Each mount gets a generation number, and a
    view's notices reach the board only while its generation is still the latest one.
    """

    def __init__(
        self,
        resolver: Resolver,
        session_factory: Callable[[str], XrpcSession],
        record_page_size: int = 100,
        repo_page_size: int = 1000,
    ) -> None:
        self._resolver = resolver
        self._session_factory = session_factory
        self._record_page_size = record_page_size
        self._repo_page_size = repo_page_size
        self._generation = 0
        self.notice = NoticeBoard()
        self.view: Optional[View] = None

    def _is_current(self, generation: int) -> Callable[[], bool]:
        return lambda: self._generation == generation

    def _publisher(self, generation: int) -> Callable[[str], None]:
        def publish(text: str) -> None:
            if self._generation == generation:
                self.notice.publish(text)

        return publish

    def open(self, route: RouteParams) -> View:
        """Replace the active view with a fresh, not yet mounted view for the route."""
        self._generation += 1
        generation = self._generation
        context = ViewContext(
            resolver=self._resolver,
            session_factory=self._session_factory,
            publish_notice=self._publisher(generation),
            is_current=self._is_current(generation),
            record_page_size=self._record_page_size,
            repo_page_size=self._repo_page_size,
        )
        view = VIEWS_BY_DEPTH[route.depth](route, context)
        self.view = view
        self.notice.publish("")
        return view

    async def navigate(self, route: RouteParams) -> View:
        view = self.open(route)
        await view.mount()
        return view

    async def locate(self, raw: str) -> Optional[RouteParams]:
        """Normalize user input into the route it should navigate to.

        Handles are canonicalized to DIDs. When that fails the notice says so and None is
        returned.

        Raises:
            MalformedInput: if the input cannot be normalized
        """
        address = parse_address(raw)
        route = address.to_route()

        if address.scheme == AddressScheme.at_uri:
            generation = self._generation
            try:
                did = await self._resolver.resolve_did(address.identifier or "")
            except ResolutionError as e:
                logger.info("Could not resolve %s: %s", address.identifier, e)
                if self._generation == generation:
                    self.notice.publish(SUBMIT_RESOLVE_FAILED_NOTICE)
                return None
            if self._generation != generation:
                return None
            route = route.model_copy(update={"repo": did})

        return route

    async def submit(self, raw: str) -> Optional[View]:
        """Navigate to user input. The active view stays put when the input does not resolve."""
        route = await self.locate(raw)
        if route is None:
            return None
        return await self.navigate(route)

    async def load_more(self) -> bool:
        view = self.view
        if not isinstance(view, ListingView):
            return False
        return await view.load_more()
