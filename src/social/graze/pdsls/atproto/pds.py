import logging
from typing import List
from aiohttp import ClientError, ClientSession
import sentry_sdk

logger = logging.getLogger(__name__)

DEFAULT_PDS_STATE_URL = "https://raw.githubusercontent.com/mary-ext/atproto-scraping/refs/heads/trunk/state.json"


async def known_pds_hosts(session: ClientSession, state_url: str) -> List[str]:
    """Hosts from the community scraping state that were reachable on their last check.

    Used for input suggestions only, so any failure yields an empty list.
    """
    try:
        async with session.get(state_url) as resp:
            if resp.status != 200:
                logger.warning("PDS state at %s returned HTTP %s", state_url, resp.status)
                return []
            body = await resp.json(content_type=None)
    except (ClientError, ValueError) as e:
        sentry_sdk.capture_exception(e)
        return []

    pdses = body.get("pdses", None) if isinstance(body, dict) else None
    if not isinstance(pdses, dict):
        return []

    return [
        url.removeprefix("https://").rstrip("/")
        for url, state in pdses.items()
        if not (isinstance(state, dict) and state.get("errorAt"))
    ]
