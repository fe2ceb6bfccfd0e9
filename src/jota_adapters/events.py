"""Explicit subscriber registry used by every adapter that emits events."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Subscription:
    """Opaque unsubscribe token returned by :meth:`ListenerRegistry.subscribe`.

    Calling the token removes the listener. Calling it again is a no-op.
    """

    __slots__ = ("_cancels",)

    def __init__(self, *cancels: Callable[[], None]) -> None:
        self._cancels: list[Callable[[], None]] = list(cancels)

    @property
    def active(self) -> bool:
        """Whether the listener is still registered."""
        return bool(self._cancels)

    def __call__(self) -> None:
        cancels, self._cancels = self._cancels, []
        for cancel in cancels:
            cancel()


class ListenerRegistry[E]:
    """Map of subscription id to callback.

    Listeners are invoked in subscription order. A listener that raises is
    logged and skipped; delivery to the remaining listeners continues.

    Example:
        ```python
        registry: ListenerRegistry[str] = ListenerRegistry("demo")
        unsubscribe = registry.subscribe(print)
        registry.emit("hello")
        unsubscribe()
        ```
    """

    def __init__(self, name: str = "listeners") -> None:
        self._name = name
        self._listeners: dict[int, Callable[[E], None]] = {}
        self._ids = itertools.count(1)

    def subscribe(self, callback: Callable[[E], None]) -> Subscription:
        """Register a callback and return its unsubscribe token."""
        token = next(self._ids)
        self._listeners[token] = callback
        return Subscription(lambda: self._listeners.pop(token, None))

    def emit(self, event: E) -> None:
        """Deliver an event to every registered listener."""
        for token, callback in list(self._listeners.items()):
            try:
                callback(event)
            except Exception:
                logger.exception("Listener %d of %s raised", token, self._name)

    def clear(self) -> None:
        """Drop every registered listener."""
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
