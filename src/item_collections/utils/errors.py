"""
Unified error handling for item collections.
"""


class ItemCollectionError(Exception):
    """Base exception for item collection errors."""

    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}. {self.suggestion}"
        return self.message


class NotPermittedError(ItemCollectionError):
    """Edit or reorder attempted on a collection lacking that capability."""

    pass


class NotFoundError(ItemCollectionError):
    """Item or index absent from the collection window."""

    pass


class OutOfRangeError(ItemCollectionError):
    """Index beyond the resolvable extent of the collection."""

    pass


class RemoteFailureError(ItemCollectionError):
    """Underlying API or transport error."""

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        cause: BaseException | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, suggestion)
        self.cause = cause
        self.status_code = status_code


class PersistenceError(ItemCollectionError):
    """I/O or archive format error."""

    pass


class CanceledError(ItemCollectionError):
    """Operation canceled before completion."""

    pass
