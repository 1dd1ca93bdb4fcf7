"""
Feed API Client Interface (IFeedAPIClient)

Abstract base class defining the contract between the feed engine and the
GRead backend. The engine only relies on these methods; tests substitute
in-memory fakes.

Implementation guide:
- All methods must be async
- Network, timeout and non-2xx failures raise FeedAPIError
- An exhausted feed is an empty list, not an error
- Transient failures should be retried before raising
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Set


class IFeedAPIClient(ABC):
    """
    Abstract interface for the backend calls the feed engine needs.

    The client manages:
    1. Fetching pages of raw activity records
    2. Fetching the viewer's blocked and muted user lists
    3. Block/unblock/mute/unmute actions
    4. Deleting one of the viewer's activities
    """

    @abstractmethod
    async def fetch_page(
        self,
        page: int,
        page_size: int
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of the activity feed, comments included.

        Args:
            page: 1-based page number
            page_size: Records requested per page (1-100)

        Returns:
            Raw activity objects in server order, e.g.
            [
                {
                    "id": 120,
                    "user_id": "7",
                    "type": "activity_update",
                    "content": {"rendered": "<p>Finished Dune!</p>"},
                    "item_id": 0,
                    "secondary_item_id": 0,
                    "date_recorded": "2024-01-02 10:00:00",
                    "hide_sitewide": "0"
                },
                ...
            ]
            An empty list once the feed is exhausted.

        Raises:
            ValueError: If page < 1 or page_size out of range
            FeedAPIError: On network or HTTP failure (after retries)
        """
        pass

    @abstractmethod
    async def fetch_blocked_ids(self) -> Set[int]:
        """
        Fetch ids of users the viewer blocked.

        Raises:
            FeedAPIError: On network or HTTP failure
        """
        pass

    @abstractmethod
    async def fetch_muted_ids(self) -> Set[int]:
        """
        Fetch ids of users the viewer muted.

        Raises:
            FeedAPIError: On network or HTTP failure
        """
        pass

    @abstractmethod
    async def block_user(self, user_id: int) -> None:
        """
        Block a user.

        Raises:
            ModerationActionError: If the server reports success=false
            FeedAPIError: On network or HTTP failure
        """
        pass

    @abstractmethod
    async def unblock_user(self, user_id: int) -> None:
        """Unblock a user. Same errors as block_user()."""
        pass

    @abstractmethod
    async def mute_user(self, user_id: int) -> None:
        """Mute a user. Same errors as block_user()."""
        pass

    @abstractmethod
    async def unmute_user(self, user_id: int) -> None:
        """Unmute a user. Same errors as block_user()."""
        pass

    @abstractmethod
    async def delete_activity(self, activity_id: int) -> None:
        """
        Delete one of the viewer's activities.

        Raises:
            FeedAPIError: On network or HTTP failure (403 for someone
                else's activity)
        """
        pass

    @abstractmethod
    async def post_update(self, content: str) -> None:
        """
        Publish a new top-level activity_update.

        Args:
            content: Post body (HTML allowed, as the site renders it)

        Raises:
            ValueError: If content is blank
            FeedAPIError: On network or HTTP failure
        """
        pass

    @abstractmethod
    async def post_comment(self, parent_id: int, content: str) -> None:
        """
        Comment on an existing activity (post or comment).

        Args:
            parent_id: Activity being replied to
            content: Comment body

        Raises:
            ValueError: If content is blank
            FeedAPIError: On network or HTTP failure
        """
        pass

    @abstractmethod
    async def report_user(self, user_id: int, reason: str) -> None:
        """
        Report a user to the site moderators.

        Raises:
            ModerationActionError: If the server reports success=false
            FeedAPIError: On network or HTTP failure
        """
        pass
