from __future__ import annotations

from typing import Protocol

from invitation_routing.adapters.listeners import Listener, ListenerRegistry, Subscription
from invitation_routing.contracts import ConnectionRecord, InvitationRecord


class RecordStore(Protocol):
    """Read-only, reactive view over invitation and connection records."""

    def get_invitation(self, invitation_id: str) -> InvitationRecord | None:
        """Return the invitation, or None while it has not materialized."""
        ...

    def get_connection_by_invitation(self, invitation_id: str) -> ConnectionRecord | None:
        """Return the connection formed from the invitation, if any."""
        ...

    def subscribe(self, listener: Listener) -> Subscription:
        """Call ``listener`` after every change to the store."""
        ...


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._invitations: dict[str, InvitationRecord] = {}
        self._connections: dict[str, ConnectionRecord] = {}
        self._listeners = ListenerRegistry()

    def get_invitation(self, invitation_id: str) -> InvitationRecord | None:
        return self._invitations.get(invitation_id)

    def get_connection_by_invitation(self, invitation_id: str) -> ConnectionRecord | None:
        return self._connections.get(invitation_id)

    def subscribe(self, listener: Listener) -> Subscription:
        return self._listeners.add(listener)

    def put_invitation(self, invitation: InvitationRecord) -> None:
        self._invitations[invitation.id] = invitation
        self._listeners.notify()

    def put_connection(self, connection: ConnectionRecord, *, invitation_id: str | None = None) -> None:
        key = invitation_id or connection.out_of_band_id
        if not key:
            raise ValueError("connection must be keyed by an invitation id")
        self._connections[key] = connection
        self._listeners.notify()

    def remove_connection(self, invitation_id: str) -> None:
        if self._connections.pop(invitation_id, None) is not None:
            self._listeners.notify()

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
