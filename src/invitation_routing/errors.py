# invitation_routing/errors.py
from __future__ import annotations


class InvitationRoutingError(Exception):
    """Base class for errors raised by the invitation routing core."""


class ConfigurationError(InvitationRoutingError, ValueError):
    """Raised when routing configuration values cannot be validated."""


class ProcessLifecycleError(InvitationRoutingError, RuntimeError):
    """Raised when a connection process is driven after teardown."""
