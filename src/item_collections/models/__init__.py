"""
Pydantic models for item collections.
"""

from .archive import ARCHIVE_VERSION, CollectionArchive
from .source import ConnectionPolicy, ItemRef, Page, SourceDescriptor, SourceKind

__all__ = [
    "ARCHIVE_VERSION",
    "CollectionArchive",
    "ConnectionPolicy",
    "ItemRef",
    "Page",
    "SourceDescriptor",
    "SourceKind",
]
