from typing import Any, Dict, List, Optional

from social.graze.pdsls.atproto.xrpc import DescribeRepoOutput, XrpcSession
from social.graze.pdsls.views.base import View
from social.graze.pdsls.views.render import ListItem


class RepositoryView(View[DescribeRepoOutput]):
    """Collections of one repository alongside its DID document."""

    kind = "repository"

    description: Optional[DescribeRepoOutput] = None

    async def _fetch(self, session: XrpcSession) -> DescribeRepoOutput:
        return await session.describe_repo(self.route.repo or "")

    def _store(self, result: DescribeRepoOutput) -> None:
        self.description = result

    def items(self) -> List[ListItem]:
        if self.description is None:
            return []
        base = self.route.to_path()
        return [
            ListItem(label=collection, href=f"{base}/{collection}")
            for collection in self.description.collections
        ]

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["collections"] = [item.to_dict() for item in self.items()]
        if self.description is not None:
            data["did"] = self.description.did
            data["handle"] = self.description.handle
            data["did_doc"] = self.description.did_doc
        return data
