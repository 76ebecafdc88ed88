# invitation_routing/matcher.py
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

from invitation_routing.contracts import (
    BasicMessageNotification,
    ConnectionRecord,
    CredentialExchangeNotification,
    InvitationRecord,
    NotificationRecord,
    ProofExchangeNotification,
    ProtocolNotification,
    is_external_credential,
)
from invitation_routing.observability import safe_log


def _correlates(
    notification: ProtocolNotification,
    *,
    connection: Optional[ConnectionRecord],
    thread_ids: frozenset[str],
) -> bool:
    if connection is not None and notification.connection_id == connection.id:
        return True
    return notification.thread_id is not None and notification.thread_id in thread_ids


def match_notification(
    notifications: Iterable[NotificationRecord],
    *,
    connection: Optional[ConnectionRecord],
    invitation: Optional[InvitationRecord],
    logger: Optional[logging.Logger] = None,
) -> NotificationRecord | None:
    """
    Return the first notification that belongs to this connection or invitation.

    Basic messages never qualify. Exchange records qualify by connection id, then
    by the invitation's request thread ids. External credentials qualify by
    presence alone.
    """
    thread_ids = invitation.invitation_request_thread_ids if invitation is not None else frozenset()

    for notification in notifications:
        if isinstance(notification, BasicMessageNotification):
            safe_log(logger, logging.DEBUG, "Connection: BasicMessageRecord, skipping", notification_id=notification.id)
            continue

        if isinstance(notification, (CredentialExchangeNotification, ProofExchangeNotification)) and _correlates(
            notification, connection=connection, thread_ids=thread_ids
        ):
            safe_log(
                logger,
                logging.INFO,
                "Connection: Handling notification %s",
                notification.id,
                notification_id=notification.id,
            )
            return notification

        if is_external_credential(notification):
            safe_log(
                logger,
                logging.INFO,
                "Connection: Handling external credential %s",
                notification.id,
                notification_id=notification.id,
            )
            return notification

    return None
