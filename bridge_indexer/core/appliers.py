"""
Status Appliers

One applier per entity family. Each takes a parsed event, reads and writes
through the EntityStore, and returns an ApplyOutcome.

CREATION RULES:
- A creation event for an id that already exists leaves the stored record
  alone (UNCHANGED). Audit records are written exactly once.
- Projections (Account, Limit, CandidateValidator) are overwritten by the
  latest event for their key.

STATUS CHANGES:
- Unknown target: IGNORED, no stub record, warning diagnostic.
- Disallowed transition: REJECTED, record untouched, warning diagnostic.
"""

from typing import Optional, Union

from ..db.store import EntityStore
from ..observability import get_logger
from ..schemas import (
    Account,
    AccountAction,
    AccountControlEvent,
    AccountMessage,
    AccountStatus,
    BridgeAction,
    BridgeMessage,
    CandidateValidator,
    CandidateValidatorMessage,
    CandidatesValidatorsProposal,
    ChainKind,
    Direction,
    EventKind,
    Limit,
    LimitMessage,
    LimitProposal,
    Message,
    MessageStatus,
    ProposalApprovedEvent,
    ProposalCreatedEvent,
    ProposalStatus,
    RelayMessageEvent,
    SetNewLimitsEvent,
    ValidatorAction,
    ValidatorAddedEvent,
    ValidatorRemovedEvent,
    ValidatorsListProposalCreatedEvent,
    WithdrawMessageEvent,
)
from ..schemas.events import BaseEvent
from .identity import limit_message_id
from .outcomes import (
    ApplyOutcome,
    Diagnostic,
    DiagnosticKind,
    DiagnosticSink,
    Severity,
    discard_diagnostic,
    unknown_target,
)


logger = get_logger(__name__)


# ============================================================
# TRANSITION TABLES
# ============================================================

ALLOWED_MESSAGE_TRANSITIONS: dict[MessageStatus, frozenset[MessageStatus]] = {
    MessageStatus.PENDING: frozenset({
        MessageStatus.APPROVED,
        MessageStatus.CONFIRMED,
        MessageStatus.CONFIRMED_WITHDRAW,
        MessageStatus.CANCELED,
    }),
    MessageStatus.APPROVED: frozenset({
        MessageStatus.CONFIRMED,
        MessageStatus.CONFIRMED_WITHDRAW,
        MessageStatus.CANCELED,
    }),
    MessageStatus.CONFIRMED: frozenset(),
    MessageStatus.CONFIRMED_WITHDRAW: frozenset(),
    MessageStatus.CANCELED: frozenset(),
}

CONFIRM_STATUS_BY_DIRECTION = {
    Direction.ETH2SUB: MessageStatus.CONFIRMED,
    Direction.SUB2ETH: MessageStatus.CONFIRMED_WITHDRAW,
}

MESSAGE_STATUS_BY_EVENT = {
    EventKind.APPROVED_RELAY_MESSAGE: MessageStatus.APPROVED,
    EventKind.CONFIRM_MESSAGE: MessageStatus.CONFIRMED,
    EventKind.CONFIRM_WITHDRAW_MESSAGE: MessageStatus.CONFIRMED_WITHDRAW,
    EventKind.REVERT_MESSAGE: MessageStatus.CANCELED,
    EventKind.CONFIRM_CANCEL_MESSAGE: MessageStatus.CANCELED,
}

BRIDGE_ACTION_BY_EVENT = {
    EventKind.BRIDGE_STARTED: BridgeAction.START,
    EventKind.BRIDGE_STOPPED: BridgeAction.STOP,
    EventKind.BRIDGE_PAUSED: BridgeAction.PAUSE,
    EventKind.BRIDGE_RESUMED: BridgeAction.RESUME,
    EventKind.BRIDGE_PAUSED_BY_VOLUME: BridgeAction.PAUSE,
    EventKind.BRIDGE_STARTED_BY_VOLUME: BridgeAction.RESUME,
}

# (action, direction, chain kind) per account control event
ACCOUNT_CONTROL_BY_EVENT = {
    EventKind.HOST_ACCOUNT_PAUSED: (AccountAction.PAUSE, Direction.ETH2SUB, ChainKind.ETH),
    EventKind.HOST_ACCOUNT_RESUMED: (AccountAction.RESUME, Direction.ETH2SUB, ChainKind.ETH),
    EventKind.GUEST_ACCOUNT_PAUSED: (AccountAction.PAUSE, Direction.SUB2ETH, ChainKind.SUB),
    EventKind.GUEST_ACCOUNT_RESUMED: (AccountAction.RESUME, Direction.SUB2ETH, ChainKind.SUB),
}

ACCOUNT_STATUS_BY_ACTION = {
    AccountAction.PAUSE: AccountStatus.BLOCKED,
    AccountAction.RESUME: AccountStatus.ACTIVE,
}


def check_message_transition(message: Message, target: MessageStatus) -> Optional[str]:
    """
    Check a status change against the message state machine.

    Returns None if the change is allowed, otherwise the reason it is not.
    Callers handle target == current status themselves.
    """
    if target not in ALLOWED_MESSAGE_TRANSITIONS[message.status]:
        return f"cannot move from {message.status.value} to {target.value}"

    expected_confirm = CONFIRM_STATUS_BY_DIRECTION[message.direction]
    if target in CONFIRM_STATUS_BY_DIRECTION.values() and target != expected_confirm:
        return (
            f"{message.direction.value} message confirms as "
            f"{expected_confirm.value}, not {target.value}"
        )

    return None


class Applier:
    """Base class: holds the store and the diagnostic sink."""

    def __init__(self, store: EntityStore, report: DiagnosticSink = discard_diagnostic):
        self.store = store
        self.report = report

    def _create_once(self, repository, entity) -> ApplyOutcome:
        """Save entity unless its id is already taken."""
        if repository.load(entity.id) is not None:
            logger.debug(
                "Record already exists, leaving it untouched",
                collection=repository.collection.value,
                entity_id=entity.id,
            )
            return ApplyOutcome.UNCHANGED
        repository.save(entity)
        return ApplyOutcome.CREATED


# ============================================================
# MESSAGES
# ============================================================

class MessageApplier(Applier):
    """Transfer message creation and status lifecycle."""

    def create(self, event: Union[RelayMessageEvent, WithdrawMessageEvent]) -> ApplyOutcome:
        direction = (
            Direction.ETH2SUB
            if event.event_kind == EventKind.RELAY_MESSAGE
            else Direction.SUB2ETH
        )
        message = Message(
            id=event.message_id,
            block_number=event.block_number,
            origin_address=event.sender,
            destination_address=event.recipient,
            amount=event.amount,
            token=event.token,
            status=MessageStatus.PENDING,
            direction=direction,
        )
        return self._create_once(self.store.messages, message)

    def change_status(self, event: BaseEvent) -> ApplyOutcome:
        target = MESSAGE_STATUS_BY_EVENT[event.event_kind]
        message = self.store.messages.load(event.message_id)

        if message is None:
            self.report(unknown_target(
                event, f"{event.kind} for unknown message {event.message_id}"
            ))
            return ApplyOutcome.IGNORED

        if message.status == target:
            return ApplyOutcome.UNCHANGED

        reason = check_message_transition(message, target)
        if reason is not None:
            self.report(Diagnostic(
                kind=DiagnosticKind.TRANSITION_REJECTED,
                severity=Severity.WARNING,
                event_kind=event.kind,
                block_number=event.block_number,
                target_id=message.id,
                message=f"{event.kind} rejected for message {message.id}: {reason}",
            ))
            return ApplyOutcome.REJECTED

        self.store.messages.save(message.model_copy(update={"status": target}))
        logger.debug(
            "Message status changed",
            message_id=message.id,
            from_status=message.status.value,
            to_status=target.value,
        )
        return ApplyOutcome.UPDATED


# ============================================================
# BRIDGE CONTROL
# ============================================================

class BridgeMessageApplier(Applier):

    def create(self, event: BaseEvent) -> ApplyOutcome:
        bridge_message = BridgeMessage(
            id=event.message_id,
            block_number=event.block_number,
            action=BRIDGE_ACTION_BY_EVENT[event.event_kind],
        )
        return self._create_once(self.store.bridge_messages, bridge_message)


# ============================================================
# ACCOUNTS
# ============================================================

class AccountApplier(Applier):
    """
    Account pause/resume.

    The AccountMessage is an immutable audit record; the Account row is the
    current state of the address and always follows the latest event.
    """

    def apply(self, event: AccountControlEvent) -> ApplyOutcome:
        action, direction, chain_kind = ACCOUNT_CONTROL_BY_EVENT[event.event_kind]

        outcome = self._create_once(self.store.account_messages, AccountMessage(
            id=event.message_id,
            block_number=event.block_number,
            action=action,
            direction=direction,
            address=event.address,
            timestamp=event.timestamp,
        ))

        account = Account(
            id=event.address,
            block_number=event.block_number,
            message_id=event.message_id,
            kind=chain_kind,
            status=ACCOUNT_STATUS_BY_ACTION[action],
            timestamp=event.timestamp,
        )
        existing = self.store.accounts.load(account.id)
        self.store.accounts.save(account)

        if outcome == ApplyOutcome.CREATED:
            return outcome
        return ApplyOutcome.UNCHANGED if existing == account else ApplyOutcome.UPDATED


# ============================================================
# LIMITS
# ============================================================

class LimitApplier(Applier):
    """Limit proposals and per-block limit snapshots."""

    def create_proposal(self, event: ProposalCreatedEvent) -> ApplyOutcome:
        proposal = LimitProposal(
            id=event.proposal_id,
            block_number=event.block_number,
            proposer_address=event.sender,
            status=ProposalStatus.PENDING,
            **{kind.field_name: value for kind, value in event.limit_values().items()},
        )
        return self._create_once(self.store.limit_proposals, proposal)

    def approve_proposal(self, event: ProposalApprovedEvent) -> ApplyOutcome:
        proposal = self.store.limit_proposals.load(event.proposal_id)
        if proposal is None:
            self.report(unknown_target(
                event, f"ProposalApproved for unknown limit proposal {event.proposal_id}"
            ))
            return ApplyOutcome.IGNORED
        if proposal.status == ProposalStatus.APPROVED:
            return ApplyOutcome.UNCHANGED
        self.store.limit_proposals.save(
            proposal.model_copy(update={"status": ProposalStatus.APPROVED})
        )
        return ApplyOutcome.UPDATED

    def set_limits(self, event: SetNewLimitsEvent) -> ApplyOutcome:
        """
        Write the block's LimitMessage and the ten current Limit rows.

        The LimitMessage id is derived from the block number, so replaying
        the same block updates the same records.
        """
        message_id = limit_message_id(event.block_number)
        values = event.limit_values()

        existing = self.store.limit_messages.load(message_id)
        snapshot = LimitMessage(
            id=message_id,
            block_number=event.block_number,
            **{kind.field_name: value for kind, value in values.items()},
        )
        self.store.limit_messages.save(snapshot)

        for kind, value in values.items():
            self.store.limits.save(Limit(
                id=kind.value,
                block_number=event.block_number,
                value=value,
                message_id=message_id,
            ))

        if existing is None:
            return ApplyOutcome.CREATED
        return ApplyOutcome.UNCHANGED if existing == snapshot else ApplyOutcome.UPDATED


# ============================================================
# VALIDATOR GOVERNANCE
# ============================================================

class CandidateValidatorApplier(Applier):
    """Candidate validator add/remove and validator-list proposals."""

    def apply(self, event: Union[ValidatorAddedEvent, ValidatorRemovedEvent]) -> ApplyOutcome:
        added = event.event_kind == EventKind.VALIDATOR_ADDED

        outcome = self._create_once(self.store.candidate_validator_messages, CandidateValidatorMessage(
            id=event.message_id,
            block_number=event.block_number,
            host_address=event.host_address,
            guest_address=event.guest_address,
            action=ValidatorAction.ADD if added else ValidatorAction.REMOVE,
        ))

        candidate = CandidateValidator(
            id=event.host_address,
            block_number=event.block_number,
            guest_address=event.guest_address,
            active=added,
        )
        existing = self.store.candidate_validators.load(candidate.id)
        self.store.candidate_validators.save(candidate)

        if outcome == ApplyOutcome.CREATED:
            return outcome
        return ApplyOutcome.UNCHANGED if existing == candidate else ApplyOutcome.UPDATED

    def create_list_proposal(self, event: ValidatorsListProposalCreatedEvent) -> ApplyOutcome:
        proposal = CandidatesValidatorsProposal(
            id=event.proposal_id,
            block_number=event.block_number,
            status=ProposalStatus.PENDING,
            host_addresses=list(event.host_addresses),
        )
        return self._create_once(self.store.candidates_validators_proposals, proposal)
