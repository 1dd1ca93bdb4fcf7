"""Service interface contracts (ABCs)"""

from gread_feed.services.interfaces.feed_client import IFeedAPIClient

__all__ = [
    'IFeedAPIClient',
]
