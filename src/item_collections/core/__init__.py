"""
Item collection core: collections and their operation handles.
"""

from .collection import ItemCollection, item_collection_from_file
from .operation import (
    AsyncOperationHandle,
    get_dispatcher,
    immediate_dispatcher,
    loop_dispatcher,
)

__all__ = [
    "AsyncOperationHandle",
    "ItemCollection",
    "get_dispatcher",
    "immediate_dispatcher",
    "item_collection_from_file",
    "loop_dispatcher",
]
