"""
Item Collections.

Paginated, cacheable collections of items from a remote item API.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("item-collections")
except PackageNotFoundError:
    __version__ = "unknown"

from .clients import HTTPFieldLoader, HTTPItemSource, ItemAPIClient
from .core import AsyncOperationHandle, ItemCollection, item_collection_from_file
from .models import CollectionArchive, ConnectionPolicy, ItemRef, SourceDescriptor
from .utils.errors import (
    CanceledError,
    ItemCollectionError,
    NotFoundError,
    NotPermittedError,
    OutOfRangeError,
    PersistenceError,
    RemoteFailureError,
)

__all__ = [
    "__version__",
    "AsyncOperationHandle",
    "CanceledError",
    "CollectionArchive",
    "ConnectionPolicy",
    "HTTPFieldLoader",
    "HTTPItemSource",
    "ItemAPIClient",
    "ItemCollection",
    "ItemCollectionError",
    "ItemRef",
    "NotFoundError",
    "NotPermittedError",
    "OutOfRangeError",
    "PersistenceError",
    "RemoteFailureError",
    "SourceDescriptor",
    "item_collection_from_file",
]
