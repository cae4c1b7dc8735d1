"""Lifecycle notifications fired around every call.

Each hook keeps an explicit list of listeners. A listener that raises is
logged and skipped; it never changes the outcome of the call that fired the
event.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=BaseModel)


class TelemetryHook(Generic[EventT]):
    """Zero or more listeners for one kind of event."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Callable[[EventT], object]] = []

    def subscribe(self, listener: Callable[[EventT], object]) -> Callable[[EventT], object]:
        """Register *listener*. Returns it so the method works as a decorator."""
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Callable[[EventT], object]) -> None:
        """Remove *listener*. Unknown listeners are ignored."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def __len__(self) -> int:
        return len(self._listeners)

    def emit(self, event: EventT) -> None:
        # Snapshot so a listener may unsubscribe itself while being called
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(
                    "%s listener %r raised; ignoring", self.name, listener, exc_info=True
                )
