# invitation_routing/router.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from invitation_routing._compat import StrEnum
from invitation_routing.contracts import (
    PROOF_GOAL_CODES,
    ChatDestination,
    ConnectionRecord,
    CredentialOfferDestination,
    Destination,
    ExternalCredentialDetailDestination,
    GoalCode,
    InvitationRecord,
    NotificationRecord,
    ProofReviewDestination,
    is_external_credential,
)


class DecisionKind(StrEnum):
    WAIT = "wait"
    RESOLVE = "resolve"
    STALL = "stall"


class DecisionReason(StrEnum):
    AWAITING_INVITATION = "awaiting_invitation"
    AWAITING_NOTIFICATION = "awaiting_notification"
    EXTERNAL_CREDENTIAL = "external_credential"
    CONNECTION_WITHOUT_GOAL_CODE = "connection_without_goal_code"
    CONNECTIONLESS_PROOF_REQUEST = "connectionless_proof_request"
    PROOF_REQUEST_GOAL_CODE = "proof_request_goal_code"
    CREDENTIAL_OFFER_GOAL_CODE = "credential_offer_goal_code"
    UNHANDLED_GOAL_CODE = "unhandled_goal_code"
    MISSING_INVITATION = "missing_invitation"
    USER_DISMISSED = "user_dismissed"
    DELAY_AUTO_REDIRECT = "delay_auto_redirect"


@dataclass(frozen=True)
class RoutingDecision:
    kind: DecisionKind
    reason: DecisionReason
    destination: Optional[Destination] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is DecisionKind.RESOLVE


def _wait(reason: DecisionReason) -> RoutingDecision:
    return RoutingDecision(kind=DecisionKind.WAIT, reason=reason)


def _resolve(reason: DecisionReason, destination: Destination) -> RoutingDecision:
    return RoutingDecision(kind=DecisionKind.RESOLVE, reason=reason, destination=destination)


def route_connection_match(
    *,
    invitation: Optional[InvitationRecord],
    connection: ConnectionRecord,
    matched: NotificationRecord,
) -> RoutingDecision:
    """Route a notification that arrived over a connection by the invitation's goal code."""
    if invitation is None:
        return RoutingDecision(kind=DecisionKind.STALL, reason=DecisionReason.MISSING_INVITATION)

    goal_code = invitation.goal_code
    if goal_code in PROOF_GOAL_CODES:
        return _resolve(DecisionReason.PROOF_REQUEST_GOAL_CODE, ProofReviewDestination(proof_id=matched.id))
    if goal_code == GoalCode.CREDENTIAL_OFFER.value:
        return _resolve(
            DecisionReason.CREDENTIAL_OFFER_GOAL_CODE,
            CredentialOfferDestination(credential_id=matched.id),
        )
    return _resolve(DecisionReason.UNHANDLED_GOAL_CODE, ChatDestination(connection_id=connection.id))


def decide_route(
    *,
    invitation: Optional[InvitationRecord],
    connection: Optional[ConnectionRecord],
    matched: Optional[NotificationRecord] = None,
) -> RoutingDecision:
    """
    Pick the next screen from the observed records and the matched notification.

    External credentials preempt every goal-code rule. Otherwise: wait for the
    invitation; a connection whose invitation has no recognized goal code goes
    straight to chat; wait for a match; a match without a connection is a
    connectionless proof request; a match over a connection is routed by goal
    code.
    """
    if matched is not None and is_external_credential(matched):
        return _resolve(DecisionReason.EXTERNAL_CREDENTIAL, ExternalCredentialDetailDestination(credential=matched))

    if invitation is None:
        return _wait(DecisionReason.AWAITING_INVITATION)

    if connection is not None and not invitation.has_known_goal_code:
        return _resolve(DecisionReason.CONNECTION_WITHOUT_GOAL_CODE, ChatDestination(connection_id=connection.id))

    if matched is None:
        return _wait(DecisionReason.AWAITING_NOTIFICATION)

    # connectionless offers do not exist
    if connection is None:
        return _resolve(DecisionReason.CONNECTIONLESS_PROOF_REQUEST, ProofReviewDestination(proof_id=matched.id))

    return route_connection_match(invitation=invitation, connection=connection, matched=matched)
