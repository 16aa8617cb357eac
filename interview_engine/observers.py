"""Subscriber registry for full-state broadcasts."""

from __future__ import annotations

import itertools
import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Callback = Callable[[T], None]


class SubscriberRegistry(Generic[T]):
    """Handle → callback mapping; removal is by handle, never by identity.

    The same callable may be registered twice and gets two independent
    handles.  A raising subscriber is logged and skipped; the others
    still receive the value.
    """

    def __init__(self) -> None:
        self._callbacks: dict[int, Callback] = {}
        self._handles = itertools.count(1)

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, callback: Callback) -> int:
        handle = next(self._handles)
        self._callbacks[handle] = callback
        return handle

    def remove(self, handle: int) -> bool:
        """Drop a subscription; ``False`` if the handle was unknown."""
        return self._callbacks.pop(handle, None) is not None

    def notify_one(self, handle: int, value: T) -> None:
        callback = self._callbacks.get(handle)
        if callback is not None:
            self._deliver(handle, callback, value)

    def broadcast(self, value: T) -> None:
        # Copy: a callback may unsubscribe itself while we iterate.
        for handle, callback in list(self._callbacks.items()):
            self._deliver(handle, callback, value)

    @staticmethod
    def _deliver(handle: int, callback: Callback, value: T) -> None:
        try:
            callback(value)
        except Exception:  # noqa: BLE001
            logger.exception("Subscriber %d raised during broadcast", handle)
