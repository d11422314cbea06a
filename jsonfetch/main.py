"""
Entrypoint: load .env and config, init logging, fetch each URL given on the
command line and print the decoded JSON.

    jsonfetch https://api.example.com/items [more urls...]
"""

import asyncio
import json
import os
import sys
from typing import List

import structlog
from dotenv import load_dotenv

from .config import Config, configure
from .errors import ConstructionError
from .fetcher import FetcherSettings
from .json_fetcher import FetchState, JSONFetcher

logger = structlog.get_logger(__name__)

USAGE = "usage: jsonfetch URL [URL ...]"


async def fetch_all(urls: List[str], settings: FetcherSettings = None, client=None, out=None) -> int:
    """Fetch every URL concurrently and write one JSON document per success to `out`."""
    out = out or sys.stdout
    failures = []

    def on_success(fetcher: JSONFetcher):
        out.write(json.dumps(fetcher.data, indent=2, ensure_ascii=False) + "\n")

    def on_failure(fetcher: JSONFetcher):
        failures.append(fetcher)
        logger.error("fetch_error", url=fetcher.request.url, error=str(fetcher.error))

    fetchers = [
        JSONFetcher.from_url(url, on_success, on_failure, settings=settings, client=client)
        for url in urls
    ]
    for fetcher in fetchers:
        fetcher.start()

    states = await asyncio.gather(*(fetcher.wait() for fetcher in fetchers))
    return 0 if all(state is FetchState.SUCCEEDED for state in states) else 1


def main(argv: List[str] = None) -> int:
    """Initialize dependencies and run the fetches"""
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE, file=sys.stderr)
        return 2

    # Load environment variables from .env file
    load_dotenv()

    try:
        config = configure(Config(os.getenv('JSONFETCH_CONFIG')))
        settings = FetcherSettings.from_config(config)
        return asyncio.run(fetch_all(argv, settings=settings))
    except (ConstructionError, FileNotFoundError, ValueError) as e:
        print(f"jsonfetch: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
