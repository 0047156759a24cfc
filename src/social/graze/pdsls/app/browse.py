import argparse
import asyncio
import functools
import logging
from typing import Optional

import aiohttp

from social.graze.pdsls.address import MalformedInput
from social.graze.pdsls.app.cli import configure_logging
from social.graze.pdsls.app.config import Settings
from social.graze.pdsls.atproto.xrpc import create_session
from social.graze.pdsls.resolve.handle import IdentityResolver
from social.graze.pdsls.views.base import ListingView, View, ViewState
from social.graze.pdsls.views.collection import CollectionView
from social.graze.pdsls.views.navigator import Navigator
from social.graze.pdsls.views.record import RecordView
from social.graze.pdsls.views.render import JsonValueRenderer, ValueRenderer
from social.graze.pdsls.views.repository import RepositoryView
from social.graze.pdsls.views.server import ServerView

logger = logging.getLogger(__name__)


def render_view(view: View, renderer: ValueRenderer) -> str:
    lines = [" / ".join(label for label, _ in view.route.breadcrumbs(view.pds_host))]

    if isinstance(view, (ServerView, CollectionView, RepositoryView)):
        lines.extend(renderer.render_item(item) for item in view.items())

    if isinstance(view, RepositoryView) and view.description is not None:
        lines.append(
            renderer.render_value(view.description.did_doc, view.description.did)
        )
    elif isinstance(view, RecordView) and view.record is not None:
        lines.append(
            renderer.render_value(
                view.record.model_dump(by_alias=True), view.record.repo
            )
        )

    if isinstance(view, ListingView) and view.has_more:
        lines.append(f"... more available (cursor {view.listing.cursor})")
    return "\n".join(lines)


async def browse(raw: str, pages: int, settings: Settings) -> int:
    async with aiohttp.ClientSession() as http_session:
        navigator = Navigator(
            resolver=IdentityResolver(http_session, settings.plc_hostname),
            session_factory=functools.partial(
                create_session, http_session, debug=settings.debug
            ),
            record_page_size=settings.record_page_size,
            repo_page_size=settings.repo_page_size,
        )
        navigator.notice.subscribe(
            lambda text: logger.info("%s", text) if text else None
        )

        try:
            view: Optional[View] = await navigator.submit(raw)
        except MalformedInput as e:
            logger.error("%s", e)
            return 2

        if view is None:
            logger.error("%s", navigator.notice.text)
            return 1

        for _ in range(pages - 1):
            if not await navigator.load_more() or view.state != ViewState.ready:
                break

        if view.state == ViewState.failed:
            logger.error("%s", navigator.notice.text)
            return 1

        print(render_view(view, JsonValueRenderer()))
        return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="pdsls-browse",
        description="Browse a PDS, repository, collection or record.",
    )
    parser.add_argument(
        "input", help="PDS URL or AT URI (at:// optional, DID or handle alone also works)"
    )
    parser.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Number of pages to load for repository and record listings.",
    )
    args = parser.parse_args()

    configure_logging()
    settings = Settings()  # type: ignore
    raise SystemExit(asyncio.run(browse(args.input, max(1, args.pages), settings)))


if __name__ == "__main__":
    main()
