"""Cursor-driven pagination shared by the repository and record listings."""

from dataclasses import dataclass, field
import logging
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from social.graze.pdsls.atproto.xrpc import RecordOutput, RepoEntry, XrpcSession

logger = logging.getLogger(__name__)

RECORD_PAGE_SIZE = 100
REPO_PAGE_SIZE = 1000

T = TypeVar("T")

PageCall = Callable[[int, Optional[str]], Awaitable[Tuple[Sequence[T], Optional[str]]]]
"""Fetches one page given (limit, cursor) and returns (items, next cursor)."""


@dataclass
class Page(Generic[T]):
    items: List[T]
    cursor: Optional[str] = None

    @property
    def exhausted(self) -> bool:
        return self.cursor is None


async def fetch_page(
    call: PageCall[T], page_size: int, cursor: Optional[str] = None
) -> Page[T]:
    """Fetch one page and apply the exhaustion rule.

    A page shorter than the requested size ends the listing even when the server also sent a
    cursor, and a page without a cursor ends it regardless of its size.

    Args:
        call: Page fetcher bound to a session and query
        page_size: Number of items requested
        cursor: Cursor returned with the previous page, None for the first page

    Returns:
        Page whose cursor is None once the listing is exhausted
    """
    items, next_cursor = await call(page_size, cursor)
    items = list(items)
    if len(items) < page_size:
        if next_cursor:
            logger.debug(
                "Ignoring cursor %s on short page (%d < %d)",
                next_cursor,
                len(items),
                page_size,
            )
        next_cursor = None
    return Page(items=items, cursor=next_cursor or None)


@dataclass
class ListingAccumulator(Generic[T]):
    """
    Ordered items gathered so far plus the cursor for the next page.

    Owned by exactly one view. A failed fetch never reaches `extend`, so retrying with the same
    cursor cannot duplicate items that were already accumulated.
    """

    page_size: int
    items: List[T] = field(default_factory=list)
    cursor: Optional[str] = None
    pages: int = 0

    @property
    def exhausted(self) -> bool:
        return self.pages > 0 and self.cursor is None

    def extend(self, page: Page[T]) -> None:
        self.items.extend(page.items)
        self.cursor = page.cursor
        self.pages += 1


def repos_call(session: XrpcSession) -> PageCall[RepoEntry]:
    async def call(limit: int, cursor: Optional[str]) -> Tuple[List[RepoEntry], Optional[str]]:
        output = await session.list_repos(limit, cursor)
        return output.repos, output.cursor

    return call


def records_call(
    session: XrpcSession, repo: str, collection: str
) -> PageCall[RecordOutput]:
    async def call(
        limit: int, cursor: Optional[str]
    ) -> Tuple[List[RecordOutput], Optional[str]]:
        output = await session.list_records(repo, collection, limit, cursor)
        return output.records, output.cursor

    return call
