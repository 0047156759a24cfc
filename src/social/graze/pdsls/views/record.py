from typing import Any, Dict, Optional

from social.graze.pdsls.atproto.xrpc import RecordOutput, XrpcSession
from social.graze.pdsls.views.base import View
from social.graze.pdsls.views.render import value_links


class RecordView(View[RecordOutput]):
    kind = "record"

    record: Optional[RecordOutput] = None

    async def _fetch(self, session: XrpcSession) -> RecordOutput:
        return await session.get_record(
            self.route.repo or "", self.route.collection or "", self.route.rkey or ""
        )

    def _store(self, result: RecordOutput) -> None:
        self.record = result

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        if self.record is not None:
            record = self.record.model_dump(by_alias=True)
            data["record"] = record
            data["links"] = value_links(record, self.record.repo)
        return data
