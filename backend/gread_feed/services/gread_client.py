"""
GRead backend client over httpx.

Implements IFeedAPIClient against the two REST namespaces of the GRead
WordPress site:
- BuddyPress (/wp-json/buddypress/v1): activity feed, posting and deletion
- GRead plugin (/wp-json/gread/v1): moderation lists, actions and reports

Key behaviours:
- Bearer token auth when a token is configured
- "false", "[]" and empty bodies mean "no data" and decode to []
- Transport errors, timeouts, 429 and 5xx are retried with backoff,
  except for new posts and comments, which are sent once
- Every failure surfaces as FeedAPIError carrying endpoint and status
"""

import logging
import time
from typing import Any, Dict, List, Optional, Set

import httpx
from pydantic import ValidationError

from gread_feed.core.config import Settings
from gread_feed.core.errors import FeedAPIError, ModerationActionError
from gread_feed.core.logging_config import log_with_context
from gread_feed.core.retry import call_with_backoff
from gread_feed.schemas.moderation import (
    BlockedListResponse,
    ModerationResponse,
    MutedListResponse,
)
from gread_feed.services.interfaces.feed_client import IFeedAPIClient

logger = logging.getLogger(__name__)

EMPTY_BODIES = {"", "false", "[]"}


class GReadAPIClient(IFeedAPIClient):
    """
    httpx-based implementation of IFeedAPIClient.

    Usage:
        async with GReadAPIClient.from_settings(get_settings()) as client:
            raw = await client.fetch_page(1, 20)

    Attributes:
        base_url: BuddyPress REST base URL
        custom_base_url: GRead plugin REST base URL
        max_retries: Retries for transient failures
        retry_base_delay: First backoff delay in seconds
    """

    def __init__(
        self,
        base_url: str,
        custom_base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: BuddyPress REST base URL (no trailing slash)
            custom_base_url: GRead plugin REST base URL (no trailing slash)
            auth_token: JWT sent as "Authorization: Bearer <token>"
            timeout: Per-request timeout in seconds
            max_retries: Retries for transient failures
            retry_base_delay: First backoff delay in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.custom_base_url = custom_base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

        headers = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        self._http = httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

        logger.info(
            f"GReadAPIClient initialized for {self.base_url} "
            f"(authenticated: {auth_token is not None})"
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "GReadAPIClient":
        return cls(
            base_url=settings.api_base_url,
            custom_base_url=settings.custom_api_base_url,
            auth_token=settings.auth_token,
            timeout=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
            transport=transport,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - closes the HTTP client."""
        await self.close()

    async def close(self):
        """Close the underlying HTTP client."""
        await self._http.aclose()
        logger.info("GReadAPIClient closed")

    async def _send_once(
        self,
        method: str,
        url: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """One HTTP round trip; returns parsed JSON, or None for an empty body."""
        started = time.monotonic()

        try:
            response = await self._http.request(method, url, params=params, json=json_body)
        except httpx.TimeoutException as e:
            raise FeedAPIError(f"Request to {endpoint} timed out", endpoint=endpoint) from e
        except httpx.RequestError as e:
            raise FeedAPIError(f"Request to {endpoint} failed: {e}", endpoint=endpoint) from e

        latency_ms = round((time.monotonic() - started) * 1000, 1)
        log_with_context(
            logger,
            "debug",
            f"{method} {endpoint} -> {response.status_code}",
            endpoint=endpoint,
            method=method,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )

        if not response.is_success:
            raise FeedAPIError(
                f"HTTP {response.status_code} from {endpoint}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        body = response.text.strip()
        if body in EMPTY_BODIES:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise FeedAPIError(
                f"Invalid JSON from {endpoint}",
                endpoint=endpoint,
                status_code=response.status_code,
            ) from e

    async def _request(
        self,
        method: str,
        base: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        retry: bool = True,
    ) -> Any:
        url = f"{base}{endpoint}"
        return await call_with_backoff(
            lambda: self._send_once(method, url, endpoint, params, json_body),
            max_retries=self.max_retries if retry else 0,
            base_delay=self.retry_base_delay,
            name=f"{method} {endpoint}",
        )

    async def fetch_page(
        self,
        page: int,
        page_size: int
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of the activity feed.

        See IFeedAPIClient.fetch_page for full documentation.
        """
        if page < 1:
            raise ValueError(f"Page must be >= 1, got {page}")
        if page_size < 1 or page_size > 100:
            raise ValueError(f"Page size must be 1-100, got {page_size}")

        data = await self._request(
            "GET",
            self.base_url,
            "/activity",
            params={"per_page": page_size, "page": page, "display_comments": "true"},
        )

        # Either a bare list or {"activities": [...], "total": ..., "has_more_items": ...}
        if isinstance(data, dict):
            data = data.get("activities")
        if not isinstance(data, list):
            return []

        logger.info(f"Fetched {len(data)} activities (page {page}, size {page_size})")
        return data

    async def fetch_blocked_ids(self) -> Set[int]:
        data = await self._request("GET", self.custom_base_url, "/user/blocked_list")
        return set(self._parse_list(BlockedListResponse, data, "/user/blocked_list").blocked_users)

    async def fetch_muted_ids(self) -> Set[int]:
        data = await self._request("GET", self.custom_base_url, "/user/muted_list")
        return set(self._parse_list(MutedListResponse, data, "/user/muted_list").muted_users)

    @staticmethod
    def _parse_list(model, data: Any, endpoint: str):
        if data is None:
            return model()
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise FeedAPIError(
                f"Unexpected moderation list payload from {endpoint}",
                endpoint=endpoint,
            ) from e

    async def _moderation_action(
        self,
        action: str,
        user_id: int,
        **fields: Any
    ) -> None:
        endpoint = f"/user/{action}"
        data = await self._request(
            "POST",
            self.custom_base_url,
            endpoint,
            json_body={"user_id": user_id, **fields},
        )

        try:
            result = ModerationResponse.model_validate(data or {})
        except ValidationError as e:
            raise FeedAPIError(
                f"Unexpected response from {endpoint}", endpoint=endpoint
            ) from e

        if not result.success:
            raise ModerationActionError(
                result.message or f"Server refused to {action} user {user_id}",
                user_id=user_id,
                action=action,
            )

        logger.info(f"{action} user {user_id}: {result.message or 'ok'}")

    async def block_user(self, user_id: int) -> None:
        await self._moderation_action("block", user_id)

    async def unblock_user(self, user_id: int) -> None:
        await self._moderation_action("unblock", user_id)

    async def mute_user(self, user_id: int) -> None:
        await self._moderation_action("mute", user_id)

    async def unmute_user(self, user_id: int) -> None:
        await self._moderation_action("unmute", user_id)

    async def report_user(self, user_id: int, reason: str) -> None:
        await self._moderation_action("report", user_id, reason=reason)

    async def delete_activity(self, activity_id: int) -> None:
        await self._request("DELETE", self.base_url, f"/activity/{activity_id}")
        logger.info(f"Deleted activity {activity_id}")

    async def post_update(self, content: str) -> None:
        if not content or not content.strip():
            raise ValueError("Post content cannot be empty")

        await self._request(
            "POST",
            self.base_url,
            "/activity",
            json_body={
                "content": content,
                "type": "activity_update",
                "component": "activity",
            },
            retry=False,
        )
        logger.info("Posted activity update")

    async def post_comment(self, parent_id: int, content: str) -> None:
        if not content or not content.strip():
            raise ValueError("Comment content cannot be empty")

        await self._request(
            "POST",
            self.base_url,
            "/activity",
            json_body={"content": content, "parent": parent_id},
            retry=False,
        )
        logger.info(f"Posted comment on activity {parent_id}")
