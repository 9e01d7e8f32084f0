"""
Remote API clients used by item collections.
"""

from .api import ItemAPIClient
from .fields import HTTPFieldLoader, ItemFieldLoader
from .source import HTTPItemSource, RemoteItemSource

__all__ = [
    "HTTPFieldLoader",
    "HTTPItemSource",
    "ItemAPIClient",
    "ItemFieldLoader",
    "RemoteItemSource",
]
