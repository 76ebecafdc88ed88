from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from invitation_routing.adapters.listeners import Listener, ListenerRegistry, Subscription
from invitation_routing.contracts import NotificationRecord, is_external_credential


class NotificationFeed(Protocol):
    """Live collection of candidate notification records."""

    def current(self, *, openid_uri: str | None = None) -> Sequence[NotificationRecord]:
        """Return the current candidates, oldest first."""
        ...

    def subscribe(self, listener: Listener) -> Subscription:
        ...


class InMemoryNotificationFeed:
    """
    Ordered notification feed.

    When an ``openid_uri`` hint is given, external credentials are limited to the
    ones offered through that URI; protocol notifications are always returned.
    """

    def __init__(self, notifications: Sequence[NotificationRecord] = ()) -> None:
        self._notifications: list[NotificationRecord] = list(notifications)
        self._listeners = ListenerRegistry()

    def current(self, *, openid_uri: str | None = None) -> Sequence[NotificationRecord]:
        if openid_uri is None:
            return tuple(self._notifications)
        return tuple(
            n for n in self._notifications if not is_external_credential(n) or n.offer_uri == openid_uri
        )

    def subscribe(self, listener: Listener) -> Subscription:
        return self._listeners.add(listener)

    def publish(self, notification: NotificationRecord) -> None:
        self._notifications.append(notification)
        self._listeners.notify()

    def remove(self, notification_id: str) -> None:
        before = len(self._notifications)
        self._notifications = [n for n in self._notifications if n.id != notification_id]
        if len(self._notifications) != before:
            self._listeners.notify()

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
