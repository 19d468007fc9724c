"""
Observer plumbing for store and context change notifications.

Subscribers receive payloads synchronously on the posting thread. Callers that
need delivery on a specific thread (the GUI) wrap their callback with a
dispatcher.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Generic[T]):
    """Handle returned by `NotificationCenter.subscribe`."""

    def __init__(self, center: "NotificationCenter[T]", callback: Callable[[T], None]) -> None:
        self._center = center
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving notifications. Safe to call more than once."""
        if self._active:
            self._active = False
            self._center._remove(self)

    def _deliver(self, payload: T) -> None:
        if self._active:
            self._callback(payload)


class NotificationCenter(Generic[T]):
    """
    A minimal thread-safe publish/subscribe hub.

    Notes
    -----
    A failing subscriber is logged and does not prevent delivery to the rest.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription[T]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Subscription[T]:
        sub = Subscription(self, callback)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def post(self, payload: T) -> None:
        with self._lock:
            targets = list(self._subscriptions)
        for sub in targets:
            try:
                sub._deliver(payload)
            except Exception:
                logger.exception("Subscriber of %s failed", self._name)

    def clear(self) -> None:
        with self._lock:
            targets, self._subscriptions = self._subscriptions, []
        for sub in targets:
            sub._active = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, sub: Subscription[T]) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)
