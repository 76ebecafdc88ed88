from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from invitation_routing.adapters.listeners import Subscription

TAKING_TOO_LONG_MESSAGE_KEY = "Connection.TakingTooLong"

BackPressHandler = Callable[[], bool]


class Announcer(Protocol):
    """Screen-reader announcements; ``message_key`` is an untranslated string key."""

    def announce(self, message_key: str) -> None:
        ...


class BackPressInterceptor(Protocol):
    """Hardware back-button hook. A handler returning True consumes the press."""

    def add_listener(self, handler: BackPressHandler) -> Subscription:
        ...


class RecordingAnnouncer:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def announce(self, message_key: str) -> None:
        self.messages.append(message_key)


class _HandlerSubscription:
    def __init__(self, owner: StackBackPressInterceptor, handler: BackPressHandler) -> None:
        self._owner = owner
        self._handler = handler

    def close(self) -> None:
        self._owner._remove(self._handler)


class StackBackPressInterceptor:
    """Most recently added handler is asked first, as on the platform."""

    def __init__(self) -> None:
        self._handlers: list[BackPressHandler] = []

    def add_listener(self, handler: BackPressHandler) -> Subscription:
        self._handlers.append(handler)
        return _HandlerSubscription(self, handler)

    def _remove(self, handler: BackPressHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def press(self) -> bool:
        """Simulate a back press; returns True if a handler consumed it."""
        for handler in reversed(tuple(self._handlers)):
            if handler():
                return True
        return False

    @property
    def handler_count(self) -> int:
        return len(self._handlers)
