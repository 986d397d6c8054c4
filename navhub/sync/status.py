"""Sync status value and its listener registry."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncStatus:
    """Immutable snapshot of the engine's sync state."""

    enabled: bool = False
    syncing: bool = False
    last_sync_time: int | None = None
    error: str | None = None


StatusListener = Callable[[SyncStatus], None]


class StatusBroadcaster:
    """Synchronous listener list.

    Listeners are called over a copy of the registry, so a listener may
    unsubscribe itself (or others) while being notified. A failing listener
    is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._listeners: list[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, status: SyncStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception(
                    "sync_status_listener_failed",
                    extra={"listener": getattr(listener, "__name__", repr(listener))},
                )

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
