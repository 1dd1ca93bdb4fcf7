"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- Raw activity payload factories
- An in-memory IFeedAPIClient fake with failure and gating hooks
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import pytest


# Set test environment variables BEFORE any imports
# so settings never pick up a developer's .env values
os.environ["GREAD_API_BASE_URL"] = "https://gread.test/wp-json/buddypress/v1"
os.environ["GREAD_CUSTOM_API_BASE_URL"] = "https://gread.test/wp-json/gread/v1"
os.environ["GREAD_PAGE_SIZE"] = "20"
os.environ["GREAD_MAX_RETRIES"] = "0"
os.environ["GREAD_LOG_JSON"] = "false"

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from gread_feed.core.errors import FeedAPIError  # noqa: E402
from gread_feed.services.interfaces.feed_client import IFeedAPIClient  # noqa: E402


def raw_post(
    activity_id: Any,
    user_id: Any = 1,
    date: Optional[str] = "2024-01-01 00:00:00",
    **fields: Any
) -> Dict[str, Any]:
    """Raw activity_update payload as the backend sends it."""
    payload = {
        "id": activity_id,
        "user_id": user_id,
        "type": "activity_update",
        "component": "activity",
        "content": f"post {activity_id}",
        "item_id": 0,
        "secondary_item_id": 0,
        "date_recorded": date,
    }
    payload.update(fields)
    return payload


def raw_comment(
    activity_id: Any,
    item_id: Any,
    secondary_item_id: Any = None,
    user_id: Any = 2,
    date: Optional[str] = "2024-01-01 00:00:00",
    **fields: Any
) -> Dict[str, Any]:
    """Raw activity_comment payload pointing at its parent candidates."""
    payload = {
        "id": activity_id,
        "user_id": user_id,
        "type": "activity_comment",
        "component": "activity",
        "content": f"comment {activity_id}",
        "item_id": item_id,
        "secondary_item_id": secondary_item_id,
        "date_recorded": date,
    }
    payload.update(fields)
    return payload


class FakeFeedClient(IFeedAPIClient):
    """
    In-memory feed backend.

    Attributes:
        pages: page number -> raw records returned for it
        blocked / muted: ids returned by the list endpoints
        fail_pages: page numbers whose fetch raises FeedAPIError
        fail_blocked / fail_muted: make the list endpoints raise
        gates: page number -> asyncio.Event the fetch waits on
        blocked_gates: events the next blocked-list fetches wait on, one per
            call; the list is read before waiting, as a slow server would
        calls: (method, args) log of every call
    """

    def __init__(self, pages: Optional[Dict[int, List[Dict[str, Any]]]] = None):
        self.pages = pages or {}
        self.blocked: Set[int] = set()
        self.muted: Set[int] = set()
        self.fail_pages: Set[int] = set()
        self.fail_blocked = False
        self.fail_muted = False
        self.gates: Dict[int, asyncio.Event] = {}
        self.blocked_gates: List[asyncio.Event] = []
        self.calls: List[tuple] = []

    async def fetch_page(self, page: int, page_size: int) -> List[Dict[str, Any]]:
        self.calls.append(("fetch_page", page, page_size))
        gate = self.gates.get(page)
        if gate is not None:
            await gate.wait()
        if page in self.fail_pages:
            raise FeedAPIError(f"HTTP 500 from /activity (page {page})", "/activity", 500)
        return list(self.pages.get(page, []))

    async def fetch_blocked_ids(self) -> Set[int]:
        self.calls.append(("fetch_blocked_ids",))
        snapshot = set(self.blocked)
        if self.blocked_gates:
            await self.blocked_gates.pop(0).wait()
        if self.fail_blocked:
            raise FeedAPIError("blocked list unavailable", "/user/blocked_list", 503)
        return snapshot

    async def fetch_muted_ids(self) -> Set[int]:
        self.calls.append(("fetch_muted_ids",))
        if self.fail_muted:
            raise FeedAPIError("muted list unavailable", "/user/muted_list", 503)
        return set(self.muted)

    async def block_user(self, user_id: int) -> None:
        self.calls.append(("block_user", user_id))
        self.blocked.add(user_id)

    async def unblock_user(self, user_id: int) -> None:
        self.calls.append(("unblock_user", user_id))
        self.blocked.discard(user_id)

    async def mute_user(self, user_id: int) -> None:
        self.calls.append(("mute_user", user_id))
        self.muted.add(user_id)

    async def unmute_user(self, user_id: int) -> None:
        self.calls.append(("unmute_user", user_id))
        self.muted.discard(user_id)

    async def delete_activity(self, activity_id: int) -> None:
        self.calls.append(("delete_activity", activity_id))

    async def post_update(self, content: str) -> None:
        self.calls.append(("post_update", content))

    async def post_comment(self, parent_id: int, content: str) -> None:
        self.calls.append(("post_comment", parent_id, content))

    async def report_user(self, user_id: int, reason: str) -> None:
        self.calls.append(("report_user", user_id, reason))


@pytest.fixture
def fake_client():
    """Empty in-memory backend; tests fill in pages and lists."""
    return FakeFeedClient()


@pytest.fixture
def clean_settings_cache():
    """Clear the cached Settings before and after a test that edits env vars."""
    from gread_feed.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_post():
    """Factory for raw activity_update payloads."""
    return raw_post


@pytest.fixture
def make_comment():
    """Factory for raw activity_comment payloads."""
    return raw_comment
