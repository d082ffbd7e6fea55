"""
Bridge Contract Event Schema

One model per contract event. The event source delivers them in chain
order, one finalized block at a time.

Each event:
- Carries its `kind` tag (the contract event name)
- Carries the block number it was emitted in
- Is validated on the way in; extra fields from the source are ignored
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from .entities import HexString, LimitValues, NonNegativeInt


class EventKind(str, Enum):
    """
    Every event kind the engine understands.
    Values are the contract event names.
    """
    # Transfer messages
    RELAY_MESSAGE = "RelayMessage"
    WITHDRAW_MESSAGE = "WithdrawMessage"
    APPROVED_RELAY_MESSAGE = "ApprovedRelayMessage"
    CONFIRM_MESSAGE = "ConfirmMessage"
    CONFIRM_WITHDRAW_MESSAGE = "ConfirmWithdrawMessage"
    CONFIRM_CANCEL_MESSAGE = "ConfirmCancelMessage"
    REVERT_MESSAGE = "RevertMessage"

    # Bridge control
    BRIDGE_STARTED = "BridgeStarted"
    BRIDGE_STOPPED = "BridgeStopped"
    BRIDGE_PAUSED = "BridgePaused"
    BRIDGE_RESUMED = "BridgeResumed"
    BRIDGE_PAUSED_BY_VOLUME = "BridgePausedByVolume"
    BRIDGE_STARTED_BY_VOLUME = "BridgeStartedByVolume"

    # Account controls
    HOST_ACCOUNT_PAUSED = "HostAccountPausedMessage"
    HOST_ACCOUNT_RESUMED = "HostAccountResumedMessage"
    GUEST_ACCOUNT_PAUSED = "GuestAccountPausedMessage"
    GUEST_ACCOUNT_RESUMED = "GuestAccountResumedMessage"

    # Limits
    SET_NEW_LIMITS = "SetNewLimits"
    PROPOSAL_CREATED = "ProposalCreated"
    PROPOSAL_APPROVED = "ProposalApproved"

    # Validator governance
    VALIDATOR_ADDED = "ValidatorAdded"
    VALIDATOR_REMOVED = "ValidatorRemoved"
    VALIDATORS_LIST_PROPOSAL_CREATED = "ValidatorsListProposalCreated"
    VALIDATORS_LIST_MESSAGE = "ValidatorsListMessage"


class BaseEvent(BaseModel):
    """Fields common to every event."""
    block_number: NonNegativeInt

    @property
    def event_kind(self) -> EventKind:
        return EventKind(self.kind)

    @property
    def target_id(self) -> str:
        """Id of the record this event is about (for diagnostics)."""
        for field in ("message_id", "proposal_id"):
            value = getattr(self, field, None)
            if value is not None:
                return value
        return ""


# ------------------------------------------------------------
# Transfer messages
# ------------------------------------------------------------

class RelayMessageEvent(BaseEvent):
    """Host -> guest transfer. sender is on ETH, recipient on SUB."""
    kind: Literal["RelayMessage"] = "RelayMessage"
    message_id: HexString
    sender: HexString
    recipient: HexString
    amount: NonNegativeInt
    token: Optional[str] = None


class WithdrawMessageEvent(BaseEvent):
    """Guest -> host transfer. sender is on SUB, recipient on ETH."""
    kind: Literal["WithdrawMessage"] = "WithdrawMessage"
    message_id: HexString
    sender: HexString
    recipient: HexString
    amount: NonNegativeInt
    token: Optional[str] = None


class ApprovedRelayMessageEvent(BaseEvent):
    kind: Literal["ApprovedRelayMessage"] = "ApprovedRelayMessage"
    message_id: HexString


class ConfirmMessageEvent(BaseEvent):
    kind: Literal["ConfirmMessage"] = "ConfirmMessage"
    message_id: HexString


class ConfirmWithdrawMessageEvent(BaseEvent):
    kind: Literal["ConfirmWithdrawMessage"] = "ConfirmWithdrawMessage"
    message_id: HexString


class ConfirmCancelMessageEvent(BaseEvent):
    kind: Literal["ConfirmCancelMessage"] = "ConfirmCancelMessage"
    message_id: HexString


class RevertMessageEvent(BaseEvent):
    kind: Literal["RevertMessage"] = "RevertMessage"
    message_id: HexString


# ------------------------------------------------------------
# Bridge control
# ------------------------------------------------------------

class BridgeStartedEvent(BaseEvent):
    kind: Literal["BridgeStarted"] = "BridgeStarted"
    message_id: HexString


class BridgeStoppedEvent(BaseEvent):
    kind: Literal["BridgeStopped"] = "BridgeStopped"
    message_id: HexString


class BridgePausedEvent(BaseEvent):
    kind: Literal["BridgePaused"] = "BridgePaused"
    message_id: HexString


class BridgeResumedEvent(BaseEvent):
    kind: Literal["BridgeResumed"] = "BridgeResumed"
    message_id: HexString


class BridgePausedByVolumeEvent(BaseEvent):
    kind: Literal["BridgePausedByVolume"] = "BridgePausedByVolume"
    message_id: HexString


class BridgeStartedByVolumeEvent(BaseEvent):
    kind: Literal["BridgeStartedByVolume"] = "BridgeStartedByVolume"
    message_id: HexString


# ------------------------------------------------------------
# Account controls
# ------------------------------------------------------------

class AccountControlEvent(BaseEvent):
    """Host events name the ETH sender, guest events the SUB recipient."""
    message_id: HexString
    address: HexString
    timestamp: NonNegativeInt


class HostAccountPausedEvent(AccountControlEvent):
    kind: Literal["HostAccountPausedMessage"] = "HostAccountPausedMessage"


class HostAccountResumedEvent(AccountControlEvent):
    kind: Literal["HostAccountResumedMessage"] = "HostAccountResumedMessage"


class GuestAccountPausedEvent(AccountControlEvent):
    kind: Literal["GuestAccountPausedMessage"] = "GuestAccountPausedMessage"


class GuestAccountResumedEvent(AccountControlEvent):
    kind: Literal["GuestAccountResumedMessage"] = "GuestAccountResumedMessage"


# ------------------------------------------------------------
# Limits
# ------------------------------------------------------------

class SetNewLimitsEvent(BaseEvent, LimitValues):
    kind: Literal["SetNewLimits"] = "SetNewLimits"


class ProposalCreatedEvent(BaseEvent, LimitValues):
    kind: Literal["ProposalCreated"] = "ProposalCreated"
    proposal_id: HexString
    sender: HexString


class ProposalApprovedEvent(BaseEvent):
    kind: Literal["ProposalApproved"] = "ProposalApproved"
    proposal_id: HexString


# ------------------------------------------------------------
# Validator governance
# ------------------------------------------------------------

class ValidatorAddedEvent(BaseEvent):
    kind: Literal["ValidatorAdded"] = "ValidatorAdded"
    message_id: HexString
    host_address: HexString
    guest_address: HexString


class ValidatorRemovedEvent(BaseEvent):
    kind: Literal["ValidatorRemoved"] = "ValidatorRemoved"
    message_id: HexString
    host_address: HexString
    guest_address: HexString


class ValidatorsListProposalCreatedEvent(BaseEvent):
    kind: Literal["ValidatorsListProposalCreated"] = "ValidatorsListProposalCreated"
    proposal_id: HexString
    host_addresses: list[HexString]


class ValidatorsListMessageEvent(BaseEvent):
    """
    A new host-chain validator list and decision threshold.

    Only becomes state if every host address translates to an active
    candidate's guest address.
    """
    kind: Literal["ValidatorsListMessage"] = "ValidatorsListMessage"
    message_id: HexString
    proposal_id: HexString
    host_addresses: list[HexString]
    threshold: NonNegativeInt


BridgeEvent = Annotated[
    Union[
        RelayMessageEvent,
        WithdrawMessageEvent,
        ApprovedRelayMessageEvent,
        ConfirmMessageEvent,
        ConfirmWithdrawMessageEvent,
        ConfirmCancelMessageEvent,
        RevertMessageEvent,
        BridgeStartedEvent,
        BridgeStoppedEvent,
        BridgePausedEvent,
        BridgeResumedEvent,
        BridgePausedByVolumeEvent,
        BridgeStartedByVolumeEvent,
        HostAccountPausedEvent,
        HostAccountResumedEvent,
        GuestAccountPausedEvent,
        GuestAccountResumedEvent,
        SetNewLimitsEvent,
        ProposalCreatedEvent,
        ProposalApprovedEvent,
        ValidatorAddedEvent,
        ValidatorRemovedEvent,
        ValidatorsListProposalCreatedEvent,
        ValidatorsListMessageEvent,
    ],
    Field(discriminator="kind"),
]
