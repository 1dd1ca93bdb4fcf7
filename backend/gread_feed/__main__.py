"""
Print the threaded GRead activity feed.

Loads the viewer's moderation lists and the first pages of the feed, then
prints each post with its comment tree indented underneath.

Usage:
    python -m gread_feed --pages 2

Environment Variables:
    GREAD_API_BASE_URL         - BuddyPress REST base URL
    GREAD_CUSTOM_API_BASE_URL  - GRead plugin REST base URL
    GREAD_AUTH_TOKEN           - JWT for the viewer (moderation lists need it)
    GREAD_PAGE_SIZE            - Activities per page (default: 20)
    GREAD_LOG_LEVEL / GREAD_LOG_JSON - Logging (written to stderr)
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx

from gread_feed.core.config import get_settings
from gread_feed.core.errors import FeedLoadError
from gread_feed.core.logging_config import configure_logging
from gread_feed.schemas.activity import ActivityRecord
from gread_feed.services.feed_session import FeedSession
from gread_feed.services.gread_client import GReadAPIClient
from gread_feed.services.thread_reconstructor import iter_thread

logger = logging.getLogger(__name__)


def format_forest(forest: List[ActivityRecord], max_depth: int) -> List[str]:
    """One line per record, indented two spaces per nesting level."""
    lines = []
    for record, level in iter_thread(forest, max_depth=max_depth):
        text = " ".join(record.plain_content.split())
        lines.append(f"{'  ' * level}[{record.id}] {record.best_user_name}: {text}")
    return lines


async def load_feed(session: FeedSession, pages: int) -> List[ActivityRecord]:
    """Start the session and load up to `pages` pages; returns the forest."""
    await session.start()
    for _ in range(pages - 1):
        if not await session.load_next_page():
            break
    return session.forest


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the threaded GRead activity feed")
    parser.add_argument("--pages", "-p", type=int, default=1, help="Pages to load (default: 1)")
    parser.add_argument("--page-size", type=int, help="Override GREAD_PAGE_SIZE")
    args = parser.parse_args(argv)
    if args.pages < 1:
        parser.error("--pages must be at least 1")
    return args


async def main(
    argv: Optional[List[str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    overrides = {}
    if args.page_size is not None:
        overrides["page_size"] = args.page_size

    async with GReadAPIClient.from_settings(settings, transport=transport) as client:
        async with FeedSession.from_settings(client, settings, **overrides) as session:
            try:
                forest = await load_feed(session, args.pages)
            except FeedLoadError as e:
                logger.error(f"Could not load the feed: {e}")
                return 1

            for line in format_forest(forest, settings.max_thread_depth):
                print(line)

    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
