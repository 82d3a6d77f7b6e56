"""
Minimal observer lists used for the client's side-effect channels.

A client never persists, notifies or delivers anything itself: it emits on
one of its signals (``persist``, ``expired``, ``dispatch``) and whatever is
connected reacts. Listener failures are logged and never reach the emitter.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Set

logger = logging.getLogger(__name__)


class Signal:
    """
    A named list of listeners.

    Listeners may be plain callables or coroutine functions; coroutines are
    scheduled on the running loop so ``emit`` itself never blocks.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Callable[..., Any]] = []
        self._pending: Set[asyncio.Task] = set()

    def connect(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        if listener not in self._listeners:
            self._listeners.append(listener)
        return listener

    def disconnect(self, listener: Callable[..., Any]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)

    def emit(self, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(*args)
            except Exception:
                logger.exception(f"Listener for '{self.name}' failed")
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._on_done)

    async def drain(self) -> None:
        """Wait for every scheduled async listener to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Async listener for '{self.name}' failed: {error!r}", exc_info=error)
