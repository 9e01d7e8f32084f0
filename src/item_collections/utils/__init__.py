"""
Utility functions and helpers for item collections.
"""

from .errors import (
    CanceledError,
    ItemCollectionError,
    NotFoundError,
    NotPermittedError,
    OutOfRangeError,
    PersistenceError,
    RemoteFailureError,
)
from .logging_config import get_logger, initialize_logging, log_operation
from .observable import ObservableValue

__all__ = [
    # Errors
    "ItemCollectionError",
    "NotPermittedError",
    "NotFoundError",
    "OutOfRangeError",
    "RemoteFailureError",
    "PersistenceError",
    "CanceledError",
    # Logging
    "get_logger",
    "initialize_logging",
    "log_operation",
    # Observables
    "ObservableValue",
]
