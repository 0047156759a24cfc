from typing import Any, Dict, List

from social.graze.pdsls.address import RESOLVE_SENTINEL, RouteParams
from social.graze.pdsls.atproto.pagination import Page, fetch_page, repos_call
from social.graze.pdsls.atproto.xrpc import RepoEntry, XrpcSession
from social.graze.pdsls.views.base import ListingView, ViewContext
from social.graze.pdsls.views.render import ListItem


class ServerView(ListingView[RepoEntry]):
    """Repositories hosted on one PDS, listed in pages of `repo_page_size`."""

    kind = "server"

    def __init__(self, route: RouteParams, context: ViewContext) -> None:
        super().__init__(route, context, context.repo_page_size)

    async def _fetch(self, session: XrpcSession) -> Page[RepoEntry]:
        return await fetch_page(
            repos_call(session), self.listing.page_size, self.listing.cursor
        )

    def items(self) -> List[ListItem]:
        return [
            ListItem(label=repo.did, href=f"/{RESOLVE_SENTINEL}/{repo.did}", active=repo.active)
            for repo in self.listing.items
        ]

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["repos"] = [item.to_dict() for item in self.items()]
        return data
