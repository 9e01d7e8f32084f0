"""
Push-notified observable values.
"""

from collections.abc import Callable
import logging
from typing import Generic, TypeVar

T = TypeVar("T")

Observer = Callable[[T, T], None]

logger = logging.getLogger(__name__)


class ObservableValue(Generic[T]):
    """
    A value whose changes are pushed to subscribers.

    Observers are called with ``(old, new)`` only when the value actually
    changes, in subscription order.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._observers: list[Observer] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, new_value: T) -> bool:
        """Update the value, returning True if observers were notified."""
        old_value = self._value
        if new_value == old_value:
            return False
        self._value = new_value
        for observer in list(self._observers):
            try:
                observer(old_value, new_value)
            except Exception:
                logger.exception(f"Observer {observer!r} failed on {old_value} -> {new_value}")
        return True

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            A callable that removes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    @property
    def observer_count(self) -> int:
        return len(self._observers)
