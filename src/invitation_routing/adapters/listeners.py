from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

Listener = Callable[[], None]


class Subscription(Protocol):
    """Handle returned by reactive adapters; ``close`` stops delivery."""

    def close(self) -> None:
        ...


class _RegistrySubscription:
    def __init__(self, registry: ListenerRegistry, listener: Listener) -> None:
        self._registry = registry
        self._listener = listener
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._registry.discard(self._listener)


class ListenerRegistry:
    """Change listeners for the in-memory adapters, notified in subscription order."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def add(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return _RegistrySubscription(self, listener)

    def discard(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(self) -> None:
        for listener in tuple(self._listeners):
            listener()

    def __len__(self) -> int:
        return len(self._listeners)
