"""
invitationflow distribution import namespace.

Re-exports the public surface of the core ``invitation_routing`` package.
"""

from importlib.metadata import PackageNotFoundError, version

# src/invitationflow/__init__.py
from invitation_routing.config import RoutingConfig, load_config
from invitation_routing.contracts import (
    ChatDestination,
    ConnectionRecord,
    CredentialOfferDestination,
    ExternalCredentialDetailDestination,
    GoalCode,
    HomeDestination,
    InvitationRecord,
    ProcessState,
    ProofReviewDestination,
    parse_notification,
)
from invitation_routing.engine import ConnectionProcess
from invitation_routing.errors import ConfigurationError, InvitationRoutingError, ProcessLifecycleError
from invitation_routing.matcher import match_notification
from invitation_routing.router import RoutingDecision, decide_route

try:
    __version__ = version("invitationflow")
except PackageNotFoundError:  # pragma: no cover - source checkout without install
    __version__ = "0+unknown"

__all__ = [
    "ChatDestination",
    "ConfigurationError",
    "ConnectionProcess",
    "ConnectionRecord",
    "CredentialOfferDestination",
    "ExternalCredentialDetailDestination",
    "GoalCode",
    "HomeDestination",
    "InvitationRecord",
    "InvitationRoutingError",
    "ProcessLifecycleError",
    "ProcessState",
    "ProofReviewDestination",
    "RoutingConfig",
    "RoutingDecision",
    "__version__",
    "decide_route",
    "load_config",
    "match_notification",
    "parse_notification",
]
