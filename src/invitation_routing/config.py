# invitation_routing/config.py
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from invitation_routing.errors import ConfigurationError

DEFAULT_DELAY_MS = 10000

ENV_PREFIX = "INVITATION_ROUTING_"
ENV_DELAY_MS = f"{ENV_PREFIX}DELAY_MS"
ENV_AUTO_REDIRECT = f"{ENV_PREFIX}AUTO_REDIRECT_ON_DELAY"


class RoutingConfig(BaseSettings):
    """Watchdog settings for a connection process, loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    delay_ms: int = Field(
        default=DEFAULT_DELAY_MS,
        ge=0,
        description="Milliseconds to wait for a matching notification before the delay policy applies",
    )
    auto_redirect_on_delay: bool = Field(
        default=False,
        description="Send the user Home when the delay elapses instead of showing a notice",
    )

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0


def load_config(overrides: Optional[Mapping[str, Any]] = None) -> RoutingConfig:
    """
    Build a RoutingConfig from ``INVITATION_ROUTING_*`` variables and overrides.

    Overrides are passed as init values, so they win over the environment.
    ``None`` override values mean "not set" and fall back to the environment or
    the defaults.
    """
    values = {key: value for key, value in (overrides or {}).items() if value is not None}
    try:
        return RoutingConfig(**values)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
