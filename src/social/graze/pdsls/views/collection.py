from typing import Any, Dict, List

from social.graze.pdsls.address import RouteParams
from social.graze.pdsls.atproto.pagination import Page, fetch_page, records_call
from social.graze.pdsls.atproto.xrpc import RecordOutput, XrpcSession
from social.graze.pdsls.views.base import ListingView, ViewContext
from social.graze.pdsls.views.render import ListItem


class CollectionView(ListingView[RecordOutput]):
    """Records of one collection in one repository, listed in pages of `record_page_size`."""

    kind = "collection"

    def __init__(self, route: RouteParams, context: ViewContext) -> None:
        super().__init__(route, context, context.record_page_size)

    async def _fetch(self, session: XrpcSession) -> Page[RecordOutput]:
        call = records_call(session, self.route.repo or "", self.route.collection or "")
        return await fetch_page(call, self.listing.page_size, self.listing.cursor)

    def items(self) -> List[ListItem]:
        base = self.route.to_path()
        return [
            ListItem(label=record.rkey, href=f"{base}/{record.rkey}")
            for record in self.listing.items
        ]

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["records"] = [item.to_dict() for item in self.items()]
        return data
