"""Per-event-kind listener lists."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .models import EventKind, Message

if TYPE_CHECKING:  # pragma: no cover
    from .sender import OutboundSender

# Called as listener(message, sender). Coroutine functions are awaited. Both
# arguments are only valid for the duration of the call.
Listener = Callable[[Message, "OutboundSender"], Any]


class ListenerRegistry:
    """Ordered listener lists, one per EventKind. Append-only."""

    def __init__(self) -> None:
        self._listeners: dict[EventKind, list[Listener]] = {
            kind: [] for kind in EventKind
        }

    def add(self, kind: EventKind, callback: Listener) -> None:
        if not callable(callback):
            raise TypeError(f"listener for {kind.name} must be callable")
        self._listeners[kind].append(callback)

    def listeners(self, kind: EventKind) -> tuple[Listener, ...]:
        return tuple(self._listeners[kind])

    def count(self, kind: EventKind | None = None) -> int:
        if kind is None:
            return sum(len(items) for items in self._listeners.values())
        return len(self._listeners[kind])
