from typing import List
import argparse
import aiohttp
import asyncio
import logging

from social.graze.pdsls.app.cli import configure_logging
from social.graze.pdsls.resolve.handle import IdentityResolver, ResolutionError

logger = logging.getLogger(__name__)


async def realMain() -> int:
    parser = argparse.ArgumentParser(prog="resolve", description="Resolve handles")
    parser.add_argument("subject", nargs="+", help="The subject(s) to resolve.")
    parser.add_argument(
        "--plc-hostname",
        default="plc.directory",
        help="The PLC hostname to use for resolving did-method-plc DIDs.",
    )

    args = vars(parser.parse_args())

    subjects: List[str] = args.get("subject", [])
    failures = 0

    async with aiohttp.ClientSession() as session:
        resolver = IdentityResolver(session, args.get("plc_hostname", "plc.directory"))
        for subject in subjects:
            try:
                resolved = await resolver.resolve(subject)
                print(resolved.model_dump_json())
            except ResolutionError as e:
                failures += 1
                logger.error("Could not resolve %s: %s", subject, e)
    return 1 if failures else 0


def main() -> None:
    configure_logging()
    raise SystemExit(asyncio.run(realMain()))


if __name__ == "__main__":
    main()
