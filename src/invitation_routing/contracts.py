# invitation_routing/contracts.py
from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from invitation_routing._compat import StrEnum

# ------------------------------------------------------------------------------
# Shared BaseModel config helpers
# ------------------------------------------------------------------------------

_IMMUTABLE_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    use_enum_values=False,
    frozen=True,
)

# ------------------------------------------------------------------------------
# Invitation / connection records
# ------------------------------------------------------------------------------


class GoalCode(StrEnum):
    PROOF_REQUEST_VERIFY = "aries.vc.verify"
    PROOF_REQUEST_VERIFY_ONCE = "aries.vc.verify.once"
    CREDENTIAL_OFFER = "aries.vc.issue"


KNOWN_GOAL_CODES: frozenset[str] = frozenset(code.value for code in GoalCode)
PROOF_GOAL_CODES: frozenset[str] = frozenset(
    {GoalCode.PROOF_REQUEST_VERIFY.value, GoalCode.PROOF_REQUEST_VERIFY_ONCE.value}
)


class InvitationRecord(BaseModel):
    """Out-of-band invitation as materialized by the agent."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG
    id: str
    goal_code: str | None = Field(default=None, validation_alias=AliasChoices("goal_code", "goalCode"))
    invitation_request_thread_ids: frozenset[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices(
            "invitation_request_thread_ids",
            "invitationRequestsThreadIds",
            "invitationRequestThreadIds",
        ),
    )

    @field_validator("invitation_request_thread_ids", mode="before")
    @classmethod
    def _coerce_thread_ids(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset({value})
        return value

    @property
    def has_known_goal_code(self) -> bool:
        return (self.goal_code or "") in KNOWN_GOAL_CODES


class ConnectionRecord(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    id: str
    out_of_band_id: str | None = Field(default=None, validation_alias=AliasChoices("out_of_band_id", "outOfBandId"))


# ------------------------------------------------------------------------------
# Notifications
# ------------------------------------------------------------------------------


class BasicMessageNotification(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    record_type: Literal["BasicMessageRecord"] = "BasicMessageRecord"
    id: str
    connection_id: str | None = Field(default=None, validation_alias=AliasChoices("connection_id", "connectionId"))
    content: str = ""


class CredentialExchangeNotification(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    record_type: Literal["CredentialExchangeRecord"] = "CredentialExchangeRecord"
    id: str
    connection_id: str | None = Field(default=None, validation_alias=AliasChoices("connection_id", "connectionId"))
    thread_id: str | None = Field(default=None, validation_alias=AliasChoices("thread_id", "threadId"))


class ProofExchangeNotification(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    record_type: Literal["ProofExchangeRecord"] = "ProofExchangeRecord"
    id: str
    connection_id: str | None = Field(default=None, validation_alias=AliasChoices("connection_id", "connectionId"))
    thread_id: str | None = Field(default=None, validation_alias=AliasChoices("thread_id", "threadId"))


class W3cCredentialNotification(BaseModel):
    """Credential issued over OpenID; carries no connection or thread correlation."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG
    record_type: Literal["W3cCredentialRecord"] = "W3cCredentialRecord"
    id: str
    credential: dict[str, Any] = Field(default_factory=dict)
    offer_uri: str | None = Field(default=None, validation_alias=AliasChoices("offer_uri", "offerUri"))


class SdJwtVcNotification(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    record_type: Literal["SdJwtVcRecord"] = "SdJwtVcRecord"
    id: str
    compact: str = ""
    offer_uri: str | None = Field(default=None, validation_alias=AliasChoices("offer_uri", "offerUri"))


ProtocolNotification = Union[CredentialExchangeNotification, ProofExchangeNotification]

ExternalCredentialRecord = Annotated[
    Union[W3cCredentialNotification, SdJwtVcNotification],
    Field(discriminator="record_type"),
]

NotificationRecord = Annotated[
    Union[
        BasicMessageNotification,
        CredentialExchangeNotification,
        ProofExchangeNotification,
        W3cCredentialNotification,
        SdJwtVcNotification,
    ],
    Field(discriminator="record_type"),
]

NOTIFICATION_ADAPTER: TypeAdapter[NotificationRecord] = TypeAdapter(NotificationRecord)


def parse_notification(raw: Any) -> NotificationRecord:
    """Validate a raw mapping into the matching notification variant."""
    return NOTIFICATION_ADAPTER.validate_python(raw)


def is_external_credential(notification: Any) -> bool:
    return isinstance(notification, (W3cCredentialNotification, SdJwtVcNotification))


# ------------------------------------------------------------------------------
# Destinations
# ------------------------------------------------------------------------------


class NavigationMode(StrEnum):
    # replace the stack with [tabs, target]
    RESET = "reset"
    # swap the waiting screen for the target
    REPLACE = "replace"
    # navigate the parent stack
    NAVIGATE = "navigate"


class ChatDestination(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    navigation_mode: ClassVar[NavigationMode] = NavigationMode.RESET
    screen: Literal["Chat"] = "Chat"
    connection_id: str


class ProofReviewDestination(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    navigation_mode: ClassVar[NavigationMode] = NavigationMode.REPLACE
    screen: Literal["ProofRequest"] = "ProofRequest"
    proof_id: str


class CredentialOfferDestination(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    navigation_mode: ClassVar[NavigationMode] = NavigationMode.REPLACE
    screen: Literal["CredentialOffer"] = "CredentialOffer"
    credential_id: str


class ExternalCredentialDetailDestination(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    navigation_mode: ClassVar[NavigationMode] = NavigationMode.REPLACE
    screen: Literal["OpenIDCredentialDetails"] = "OpenIDCredentialDetails"
    credential: ExternalCredentialRecord


class HomeDestination(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    navigation_mode: ClassVar[NavigationMode] = NavigationMode.NAVIGATE
    screen: Literal["Home"] = "Home"


Destination = Annotated[
    Union[
        ChatDestination,
        ProofReviewDestination,
        CredentialOfferDestination,
        ExternalCredentialDetailDestination,
        HomeDestination,
    ],
    Field(discriminator="screen"),
]

# ------------------------------------------------------------------------------
# Process state
# ------------------------------------------------------------------------------


class RouterPhase(StrEnum):
    WAITING_FOR_SIGNAL = "waiting_for_signal"
    DECIDING = "deciding"
    RESOLVED = "resolved"


class ProcessState(BaseModel):
    """
    Local state of one connection process.

    Values are never mutated; see invitation_routing.process_state for the
    transitions that produce successors.
    """

    model_config = _IMMUTABLE_CONTRACT_CONFIG
    in_progress: bool = True
    matched_notification: Optional[NotificationRecord] = None
    delay_elapsed: bool = False
    delay_notice_shown: bool = False
    phase: RouterPhase = RouterPhase.WAITING_FOR_SIGNAL
    destination: Optional[Destination] = None
    resolution_reason: str | None = None
