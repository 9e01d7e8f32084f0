"""
Cancelable handles for in-flight collection operations.

Every public collection operation returns an AsyncOperationHandle right
away; the result reaches the caller later through a callback. Once a
handle is canceled its callback is never invoked again.
"""

import asyncio
from collections.abc import Callable, Coroutine
import logging
from typing import Any, Literal

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]


def immediate_dispatcher(invoke: Callable[[], None]) -> None:
    """Run callbacks inline, on the event loop thread that produced the result."""
    invoke()


def loop_dispatcher(invoke: Callable[[], None]) -> None:
    """Defer callbacks to the next iteration of the running event loop."""
    asyncio.get_running_loop().call_soon(invoke)


def get_dispatcher(name: Literal["immediate", "loop"]) -> Dispatcher:
    dispatchers: dict[str, Dispatcher] = {
        "immediate": immediate_dispatcher,
        "loop": loop_dispatcher,
    }
    try:
        return dispatchers[name]
    except KeyError:
        raise ValueError(f"Unknown delivery context: {name}") from None


class AsyncOperationHandle:
    """
    One in-flight request.

    The handle owns the asyncio task doing the work. ``cancel()`` stops the
    task, runs any registered cancel hooks (used to roll back optimistic
    edits) and suppresses all further callback deliveries.
    """

    def __init__(self, name: str, dispatcher: Dispatcher = immediate_dispatcher):
        self.name = name
        self._dispatcher = dispatcher
        self._task: asyncio.Task | None = None
        self._canceled = False
        self._finished = False
        self._cancel_hooks: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        state = "canceled" if self._canceled else "finished" if self._finished else "pending"
        return f"<AsyncOperationHandle {self.name} {state}>"

    @property
    def canceled(self) -> bool:
        return self._canceled

    @property
    def finished(self) -> bool:
        """True once the final callback has been handed to the dispatcher."""
        return self._finished

    @property
    def done(self) -> bool:
        return self._finished or self._canceled

    def start(self, coro: Coroutine[Any, Any, None]) -> "AsyncOperationHandle":
        """Schedule the operation's coroutine on the running event loop."""
        self._task = asyncio.get_running_loop().create_task(coro, name=self.name)
        return self

    def resolved(
        self, callback: Callable[..., None] | None, *args: Any
    ) -> "AsyncOperationHandle":
        """Start an operation whose outcome is already known."""

        async def _deliver() -> None:
            self.finish(callback, *args)

        return self.start(_deliver())

    def add_cancel_hook(self, hook: Callable[[], None]) -> None:
        """Register a hook run if the handle is canceled before it finishes."""
        self._cancel_hooks.append(hook)

    def cancel(self) -> bool:
        """
        Cancel the operation.

        Returns:
            False if the operation had already finished or been canceled
        """
        if self.done:
            return False

        self._canceled = True
        hooks, self._cancel_hooks = self._cancel_hooks, []
        for hook in hooks:
            hook()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug(f"Canceled operation {self.name}")
        return True

    def deliver(self, callback: Callable[..., None] | None, *args: Any) -> None:
        """Deliver an intermediate result (e.g. a stalled notification)."""
        if callback is None or self._canceled:
            return
        self._dispatcher(lambda: self._invoke(callback, args))

    def finish(self, callback: Callable[..., None] | None, *args: Any) -> None:
        """Deliver the final result; later cancellation becomes a no-op."""
        if self.done:
            return
        self._finished = True
        self._cancel_hooks = []
        self.deliver(callback, *args)

    def _invoke(self, callback: Callable[..., None], args: tuple[Any, ...]) -> None:
        # Re-checked here since deferred dispatchers run after a gap
        if self._canceled:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Callback for {self.name} raised")

    async def wait(self) -> None:
        """Wait for the operation's task to end, whatever its outcome."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
