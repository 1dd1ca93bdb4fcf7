"""
Exception hierarchy for the feed engine.

Per-record decode problems stay inside the decoder; network and HTTP
failures surface to callers as FeedAPIError / FeedLoadError.
"""

from typing import Optional


class GReadFeedError(Exception):
    """Base exception for the feed engine."""
    pass


class RecordDecodeError(GReadFeedError):
    """Raised when a raw activity has no usable integer id."""

    def __init__(self, message: str, raw_id: object = None):
        super().__init__(message)
        self.raw_id = raw_id


class FeedAPIError(GReadFeedError):
    """
    Raised when a backend request fails.

    Attributes:
        endpoint: Path that was requested
        status_code: HTTP status, or None for transport failures/timeouts
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """True for failures worth retrying: transport errors, 429 and 5xx."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class FeedLoadError(GReadFeedError):
    """Raised by a feed session when a page could not be loaded."""

    def __init__(self, message: str, page: int):
        super().__init__(message)
        self.page = page


class ModerationActionError(GReadFeedError):
    """Raised when the server rejects a block/mute/unblock/unmute request."""

    def __init__(self, message: str, user_id: int, action: str):
        super().__init__(message)
        self.user_id = user_id
        self.action = action
