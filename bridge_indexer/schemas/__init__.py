# Canonical schemas for the bridge indexer.
# Entities are what the engine stores; events are what the chain emits.

from .entities import (
    ENTITY_TYPES,
    Account,
    AccountAction,
    AccountMessage,
    AccountStatus,
    BridgeAction,
    BridgeMessage,
    BridgeMessageStatus,
    CandidateValidator,
    CandidateValidatorMessage,
    CandidatesValidatorsProposal,
    ChainKind,
    Collection,
    Direction,
    Entity,
    HexString,
    Limit,
    LimitKind,
    LimitMessage,
    LimitProposal,
    LimitValues,
    Message,
    MessageStatus,
    ProposalStatus,
    ValidatorAction,
    ValidatorState,
    ValidatorsListMessage,
    normalize_hex,
)
from .events import (
    AccountControlEvent,
    ApprovedRelayMessageEvent,
    BaseEvent,
    BridgeEvent,
    BridgePausedByVolumeEvent,
    BridgePausedEvent,
    BridgeResumedEvent,
    BridgeStartedByVolumeEvent,
    BridgeStartedEvent,
    BridgeStoppedEvent,
    ConfirmCancelMessageEvent,
    ConfirmMessageEvent,
    ConfirmWithdrawMessageEvent,
    EventKind,
    GuestAccountPausedEvent,
    GuestAccountResumedEvent,
    HostAccountPausedEvent,
    HostAccountResumedEvent,
    ProposalApprovedEvent,
    ProposalCreatedEvent,
    RelayMessageEvent,
    RevertMessageEvent,
    SetNewLimitsEvent,
    ValidatorAddedEvent,
    ValidatorRemovedEvent,
    ValidatorsListMessageEvent,
    ValidatorsListProposalCreatedEvent,
    WithdrawMessageEvent,
)

__all__ = [
    # Entities
    "ENTITY_TYPES",
    "Account",
    "AccountAction",
    "AccountMessage",
    "AccountStatus",
    "BridgeAction",
    "BridgeMessage",
    "BridgeMessageStatus",
    "CandidateValidator",
    "CandidateValidatorMessage",
    "CandidatesValidatorsProposal",
    "ChainKind",
    "Collection",
    "Direction",
    "Entity",
    "HexString",
    "Limit",
    "LimitKind",
    "LimitMessage",
    "LimitProposal",
    "LimitValues",
    "Message",
    "MessageStatus",
    "ProposalStatus",
    "ValidatorAction",
    "ValidatorState",
    "ValidatorsListMessage",
    "normalize_hex",
    # Events
    "AccountControlEvent",
    "ApprovedRelayMessageEvent",
    "BaseEvent",
    "BridgeEvent",
    "BridgePausedByVolumeEvent",
    "BridgePausedEvent",
    "BridgeResumedEvent",
    "BridgeStartedByVolumeEvent",
    "BridgeStartedEvent",
    "BridgeStoppedEvent",
    "ConfirmCancelMessageEvent",
    "ConfirmMessageEvent",
    "ConfirmWithdrawMessageEvent",
    "EventKind",
    "GuestAccountPausedEvent",
    "GuestAccountResumedEvent",
    "HostAccountPausedEvent",
    "HostAccountResumedEvent",
    "ProposalApprovedEvent",
    "ProposalCreatedEvent",
    "RelayMessageEvent",
    "RevertMessageEvent",
    "SetNewLimitsEvent",
    "ValidatorAddedEvent",
    "ValidatorRemovedEvent",
    "ValidatorsListMessageEvent",
    "ValidatorsListProposalCreatedEvent",
    "WithdrawMessageEvent",
]
