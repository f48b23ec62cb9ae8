from typing import List
import argparse
import aiohttp
import asyncio
import logging

logger = logging.getLogger(__name__)

from org.spacesprotocol.sep.resolve.model import ActionAdapter
from org.spacesprotocol.sep.resolve.records import HttpRecordLookup
from org.spacesprotocol.sep.resolve.registry import RegistryClient
from org.spacesprotocol.sep.resolve.resolver import Resolver


async def realMain() -> None:
    parser = argparse.ArgumentParser(prog="resolve", description="Resolve spaces")
    parser.add_argument("space", nargs="+", help="The space(s) to resolve.")
    parser.add_argument(
        "--records-url",
        default="http://127.0.0.1:7226",
        help="The records gateway used to look up space zones.",
    )
    parser.add_argument(
        "--spaced-url",
        default="http://127.0.0.1:7225",
        help="The spaces daemon JSON-RPC endpoint used for covenant lookups.",
    )
    parser.add_argument(
        "--search",
        default=None,
        help="Search URL template with %%s for the query, used for spaces without directives.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Timeout in seconds for each backend call.",
    )

    args = vars(parser.parse_args())

    spaces: List[str] = args.get("space", [])
    search_template = args.get("search")

    async with aiohttp.ClientSession() as session:
        resolver = Resolver(
            HttpRecordLookup(session, args["records_url"], args["timeout"]),
            RegistryClient(session, args["spaced_url"], args["timeout"]),
        )
        for space in spaces:
            try:
                action = await resolver.resolve(space, lambda: search_template)
                print(f"{space} {ActionAdapter.dump_json(action).decode()}")
            except Exception:
                logging.exception("Exception resolving space %s", space)


def main() -> None:
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
