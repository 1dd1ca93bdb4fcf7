"""
Moderation filter and moderation-list loading.

ModerationFilter is an immutable snapshot of the blocked and muted user
sets. It is never edited in place: ModerationService.load() builds a new
snapshot from the server, keeping the previous set for whichever list
failed to load.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from gread_feed.core.errors import FeedAPIError
from gread_feed.services.interfaces.feed_client import IFeedAPIClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModerationFilter:
    """
    Blocked and muted author ids with a visibility predicate.

    Attributes:
        blocked_user_ids: Users the viewer blocked
        muted_user_ids: Users the viewer muted
    """
    blocked_user_ids: FrozenSet[int] = field(default_factory=frozenset)
    muted_user_ids: FrozenSet[int] = field(default_factory=frozenset)

    @classmethod
    def from_ids(
        cls,
        blocked: Iterable[int] = (),
        muted: Iterable[int] = ()
    ) -> "ModerationFilter":
        return cls(frozenset(blocked), frozenset(muted))

    def is_visible(self, user_id: Optional[int]) -> bool:
        """
        Whether content by `user_id` may be shown.

        Unattributed content (user_id None) is always visible; moderation
        only hides known authors.
        """
        if user_id is None:
            return True
        return user_id not in self.blocked_user_ids and user_id not in self.muted_user_ids


class ModerationService:
    """
    Loads the viewer's moderation lists through the feed API client.

    The two lists are fetched independently. A failed fetch is logged and
    the corresponding set from `previous` is kept, so a flaky endpoint never
    un-hides content the viewer already suppressed.
    """

    def __init__(self, client: IFeedAPIClient):
        self.client = client

    async def load(self, previous: Optional[ModerationFilter] = None) -> ModerationFilter:
        """
        Build a fresh ModerationFilter from the server.

        Args:
            previous: Snapshot whose sets are reused for lists that fail

        Returns:
            New ModerationFilter (never raises for fetch failures)
        """
        previous = previous or ModerationFilter()

        try:
            blocked = frozenset(await self.client.fetch_blocked_ids())
        except FeedAPIError as e:
            logger.warning(f"Keeping previous blocked list, fetch failed: {e}")
            blocked = previous.blocked_user_ids

        try:
            muted = frozenset(await self.client.fetch_muted_ids())
        except FeedAPIError as e:
            logger.warning(f"Keeping previous muted list, fetch failed: {e}")
            muted = previous.muted_user_ids

        logger.info(
            f"Moderation lists loaded: {len(blocked)} blocked, {len(muted)} muted"
        )
        return ModerationFilter(blocked_user_ids=blocked, muted_user_ids=muted)
