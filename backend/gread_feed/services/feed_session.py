"""
Paginated activity feed session.

A FeedSession owns the state of one feed screen: the accumulated flat store
of decoded activities, the page cursor, the moderation snapshot and the
rendered forest. It is constructed explicitly by whatever owns the screen
and closed with it; there is no shared global instance.

Concurrency model (asyncio):
- One page load at a time: load_next_page() is a no-op while a load is in
  flight instead of racing it
- Fetches run outside the write lock; store mutation and reconstruction
  run under it, and the new forest is published once it is released
- load_first_page() and close() bump an epoch counter; a fetch that
  started under an older epoch is discarded when it returns
- Moderation refreshes carry their own counter; an older refresh never
  overwrites a newer one that finished first
"""

import asyncio
import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from gread_feed.core.config import Settings
from gread_feed.core.errors import FeedAPIError, FeedLoadError
from gread_feed.core.logging_config import log_with_context
from gread_feed.schemas.activity import ActivityRecord
from gread_feed.services.decoder import decode_page
from gread_feed.services.interfaces.feed_client import IFeedAPIClient
from gread_feed.services.moderation import ModerationFilter, ModerationService
from gread_feed.services.thread_reconstructor import DEFAULT_MAX_DEPTH, reconstruct

logger = logging.getLogger(__name__)

ForestCallback = Callable[[List[ActivityRecord]], Union[None, Awaitable[None]]]


class FeedSession:
    """
    Page-by-page feed loader with dedup and moderation-aware threading.

    After every successful page load or moderation refresh the whole flat
    store is re-threaded and the new forest is handed to
    `on_forest_updated`, so the forest always reflects the latest pages and
    the latest moderation lists whatever order they arrived in. Moderation
    refreshes are numbered when they start; a refresh that finishes after a
    newer one has been applied is dropped.

    The callback runs after the write lock is released, so it may call back
    into the session (refresh, delete, load the next page). A forest that
    was replaced before its callback ran is not published.

    Usage:
        async with FeedSession(client, on_forest_updated=render) as session:
            await session.start()
            await session.load_next_page()

    Attributes:
        flat_store: Deduplicated records in arrival order
        current_page: Last successfully loaded page (1-based)
        has_more: Whether another page may hold more records
        forest: Last published forest
        moderation: Current moderation snapshot
        last_error: Failure of the most recent load, None after a success
    """

    def __init__(
        self,
        client: IFeedAPIClient,
        page_size: int = 20,
        moderation: Optional[ModerationFilter] = None,
        moderation_service: Optional[ModerationService] = None,
        on_forest_updated: Optional[ForestCallback] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        session_id: Optional[str] = None,
    ):
        """
        Initialize an empty session.

        Args:
            client: Backend client for pages, moderation lists and actions
            page_size: Records requested per page (1-100)
            moderation: Initial moderation snapshot (default: nothing hidden)
            moderation_service: Loader for moderation lists (default: one
                built on `client`)
            on_forest_updated: Sync or async callback receiving each new forest
            max_depth: Deepest comment nesting kept
            session_id: Identifier used in logs (default: random)
        """
        if page_size < 1 or page_size > 100:
            raise ValueError(f"Page size must be 1-100, got {page_size}")

        self.client = client
        self.page_size = page_size
        self.max_depth = max_depth
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.moderation = moderation or ModerationFilter()
        self.moderation_service = moderation_service or ModerationService(client)
        self.on_forest_updated = on_forest_updated

        self.flat_store: List[ActivityRecord] = []
        self.current_page = 1
        self.has_more = True
        self.forest: List[ActivityRecord] = []
        self.last_error: Optional[Exception] = None

        # Ids ever accepted this session; deleted ids stay here so a later
        # page cannot bring them back
        self._known_ids: Set[int] = set()
        self._epoch = 0
        self._moderation_epoch = 0
        self._moderation_applied = 0
        self._active_load: Optional[object] = None
        self._write_lock = asyncio.Lock()
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        client: IFeedAPIClient,
        settings: Settings,
        **kwargs: Any
    ) -> "FeedSession":
        """Build a session from Settings; explicit keyword arguments win."""
        kwargs.setdefault("page_size", settings.page_size)
        kwargs.setdefault("max_depth", settings.max_thread_depth)
        return cls(client, **kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def is_loading(self) -> bool:
        return self._active_load is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Feed session {self.session_id} is closed")

    async def start(self) -> bool:
        """
        Load moderation lists, then the first page.

        Returns:
            True if the first page was applied
        """
        await self.refresh_moderation()
        return await self.load_first_page()

    async def pull_to_refresh(self) -> bool:
        """Explicit full refresh: reload moderation lists and restart at page 1."""
        log_with_context(logger, "info", "Full feed refresh requested", session_id=self.session_id)
        return await self.start()

    async def load_first_page(self) -> bool:
        """
        Restart the feed at page 1.

        Supersedes any load in flight. On success the flat store is replaced
        by page 1 and the forest is rebuilt once; on failure the previous
        store, cursor and forest are kept.

        Returns:
            True if the page was applied, False if it was superseded

        Raises:
            FeedLoadError: If the fetch failed
        """
        self._ensure_open()
        self._epoch += 1
        return await self._load_page(1, replace=True)

    async def load_next_page(self) -> bool:
        """
        Load the page after current_page and append its new records.

        Does nothing while another load is in flight or once the feed is
        exhausted.

        Returns:
            True if a page was applied, False if skipped or superseded

        Raises:
            FeedLoadError: If the fetch failed
        """
        self._ensure_open()

        if self._active_load is not None:
            logger.debug("Skipping next page: a load is already in flight")
            return False
        if not self.has_more:
            logger.debug("Skipping next page: feed exhausted")
            return False

        return await self._load_page(self.current_page + 1, replace=False)

    async def _load_page(self, page: int, replace: bool) -> bool:
        epoch = self._epoch
        token = object()
        self._active_load = token

        try:
            try:
                raw = await self.client.fetch_page(page, self.page_size)
            except FeedAPIError as e:
                if epoch != self._epoch:
                    logger.info(f"Ignoring failure of superseded page {page} load: {e}")
                    return False

                self.last_error = e
                log_with_context(
                    logger,
                    "error",
                    f"Failed to load feed page {page}: {e}",
                    session_id=self.session_id,
                    epoch=epoch,
                    page=page,
                    status_code=e.status_code,
                )
                raise FeedLoadError(f"Failed to load page {page}: {e}", page=page) from e

            records = decode_page(raw)

            async with self._write_lock:
                if epoch != self._epoch or self._closed:
                    log_with_context(
                        logger,
                        "info",
                        f"Discarding superseded page {page}",
                        session_id=self.session_id,
                        epoch=epoch,
                        page=page,
                    )
                    return False

                added = self._apply_page(records, replace)
                self.current_page = page
                self.has_more = len(raw) >= self.page_size
                self.last_error = None

                log_with_context(
                    logger,
                    "info",
                    f"Loaded feed page {page}: {added} new of {len(records)} decoded",
                    session_id=self.session_id,
                    epoch=epoch,
                    page=page,
                    has_more=self.has_more,
                    store_size=len(self.flat_store),
                )

                forest = self._rebuild_locked()

            # Released before publishing so the callback can page further
            if self._active_load is token:
                self._active_load = None
            await self._publish(forest)
            return True

        finally:
            if self._active_load is token:
                self._active_load = None

    def _apply_page(self, records: List[ActivityRecord], replace: bool) -> int:
        """Append records whose id is new; returns how many were added."""
        if replace:
            store: List[ActivityRecord] = []
            known: Set[int] = set()
        else:
            store = list(self.flat_store)
            known = set(self._known_ids)

        added = 0
        for record in records:
            if record.id in known:
                continue
            known.add(record.id)
            store.append(record)
            added += 1

        self.flat_store = store
        self._known_ids = known
        return added

    async def refresh_moderation(self, state: Optional[ModerationFilter] = None) -> bool:
        """
        Replace the moderation snapshot and re-thread the current store.

        No feed page is fetched. When `state` is None the lists are reloaded
        through the moderation service first; a list that fails to load
        keeps its previous contents. If a refresh that started later has
        already been applied by the time this one's lists arrive, this
        result is dropped.

        Args:
            state: New snapshot to apply as-is

        Returns:
            True if the snapshot was applied
        """
        self._ensure_open()

        self._moderation_epoch += 1
        generation = self._moderation_epoch

        if state is None:
            state = await self.moderation_service.load(self.moderation)

        async with self._write_lock:
            if self._closed:
                return False
            if generation < self._moderation_applied:
                log_with_context(
                    logger,
                    "info",
                    f"Discarding moderation refresh #{generation}, "
                    f"#{self._moderation_applied} is newer",
                    session_id=self.session_id,
                )
                return False

            self._moderation_applied = generation
            self.moderation = state
            forest = self._rebuild_locked()

        await self._publish(forest)
        return True

    async def block_user(self, user_id: int) -> None:
        """Block `user_id` on the server, then refresh moderation."""
        await self.client.block_user(user_id)
        await self.refresh_moderation()

    async def unblock_user(self, user_id: int) -> None:
        await self.client.unblock_user(user_id)
        await self.refresh_moderation()

    async def mute_user(self, user_id: int) -> None:
        await self.client.mute_user(user_id)
        await self.refresh_moderation()

    async def unmute_user(self, user_id: int) -> None:
        await self.client.unmute_user(user_id)
        await self.refresh_moderation()

    async def report_user(self, user_id: int, reason: str) -> None:
        """Report `user_id` to the site moderators. The feed is unchanged."""
        await self.client.report_user(user_id, reason)

    async def report_activity(self, activity_id: int, reason: str) -> None:
        """
        Report the author of a loaded activity.

        Raises:
            ValueError: If the activity is not loaded or has no author
        """
        record = next((r for r in self.flat_store if r.id == activity_id), None)
        if record is None:
            raise ValueError(f"Activity {activity_id} is not in this feed")
        if record.user_id is None:
            raise ValueError(f"Activity {activity_id} has no author to report")

        await self.report_user(record.user_id, reason)

    async def post_update(self, content: str) -> bool:
        """
        Publish a new post, then reload the feed from page 1.

        Returns:
            Result of the reload (see load_first_page)
        """
        self._ensure_open()
        await self.client.post_update(content)
        return await self.load_first_page()

    async def post_comment(self, parent_id: int, content: str) -> bool:
        """Comment on `parent_id`, then reload the feed from page 1."""
        self._ensure_open()
        await self.client.post_comment(parent_id, content)
        return await self.load_first_page()

    async def delete_activity(self, activity_id: int) -> None:
        """
        Delete an activity on the server and drop it from the store.

        Its comments stay in the store but become orphans, so they leave
        the forest with it.
        """
        self._ensure_open()
        await self.client.delete_activity(activity_id)

        async with self._write_lock:
            remaining = [record for record in self.flat_store if record.id != activity_id]
            if len(remaining) == len(self.flat_store):
                return
            self.flat_store = remaining
            forest = self._rebuild_locked()

        await self._publish(forest)

    def _rebuild_locked(self) -> List[ActivityRecord]:
        """Re-thread the whole store. Caller holds the write lock."""
        self.forest = reconstruct(self.flat_store, self.moderation, self.max_depth)
        return self.forest

    async def _publish(self, forest: List[ActivityRecord]) -> None:
        """Hand `forest` to the consumer unless a newer one replaced it."""
        if self.on_forest_updated is None or forest is not self.forest:
            return

        result = self.on_forest_updated(list(forest))
        if inspect.isawaitable(result):
            await result

    async def close(self) -> None:
        """
        Tear the session down.

        Fetches still in flight are discarded when they return. The client
        is left open; it belongs to whoever created it.
        """
        if self._closed:
            return

        self._closed = True
        self._epoch += 1
        self.flat_store = []
        self.forest = []
        self._known_ids = set()
        log_with_context(logger, "info", "Feed session closed", session_id=self.session_id)
