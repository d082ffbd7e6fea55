"""
Bridge Entity Schema

The state the indexer reconstructs from the bridge event stream.

Every entity:
- Is keyed by a lowercase 0x-prefixed hex id (or a limit kind name)
- Remembers the block number it originated in (projections: the block
  of the event that last wrote them; status changes keep the origin)
- Is created on its first relevant event and never deleted

Audit records (AccountMessage, CandidateValidatorMessage, BridgeMessage)
are written once. Projections (Account, Limit, CandidateValidator) are
overwritten by the latest event for their key.
"""

import re
from enum import Enum
from typing import Annotated, ClassVar, Optional

from pydantic import AfterValidator, BaseModel, Field


HEX_PATTERN = re.compile(r"0x[0-9a-f]+")


def normalize_hex(value: str) -> str:
    """
    Normalize a hex id or address to lowercase 0x-prefixed form.

    Raises ValueError if the value is not 0x-prefixed hex.
    """
    normalized = value.strip().lower()
    if not normalized.startswith("0x"):
        raise ValueError(f"hex value must be 0x-prefixed, got {value!r}")
    if normalized == "0x":
        raise ValueError("hex value has no digits")
    if not HEX_PATTERN.fullmatch(normalized):
        raise ValueError(f"hex value contains non-hex characters: {value!r}")
    return normalized


HexString = Annotated[str, AfterValidator(normalize_hex)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class Collection(str, Enum):
    """
    Entity collections. Values double as table names.
    """
    MESSAGES = "messages"
    BRIDGE_MESSAGES = "bridge_messages"
    ACCOUNT_MESSAGES = "account_messages"
    ACCOUNTS = "accounts"
    LIMIT_PROPOSALS = "limit_proposals"
    LIMIT_MESSAGES = "limit_messages"
    LIMITS = "limits"
    CANDIDATE_VALIDATORS = "candidate_validators"
    CANDIDATE_VALIDATOR_MESSAGES = "candidate_validator_messages"
    CANDIDATES_VALIDATORS_PROPOSALS = "candidates_validators_proposals"
    VALIDATORS_LIST_MESSAGES = "validators_list_messages"


# ============================================================
# Enumerations
# ============================================================

class Direction(str, Enum):
    """Which way a message crosses the bridge."""
    ETH2SUB = "ETH2SUB"
    SUB2ETH = "SUB2ETH"


class MessageStatus(str, Enum):
    """
    Transfer message lifecycle.

    PENDING -> APPROVED -> CONFIRMED | CONFIRMED_WITHDRAW
    PENDING | APPROVED -> CANCELED
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CONFIRMED = "CONFIRMED"
    CONFIRMED_WITHDRAW = "CONFIRMED_WITHDRAW"
    CANCELED = "CANCELED"


class BridgeAction(str, Enum):
    START = "START"
    STOP = "STOP"
    PAUSE = "PAUSE"
    RESUME = "RESUME"


class BridgeMessageStatus(str, Enum):
    # Bridge control records are single-shot; nothing moves them on.
    PENDING = "PENDING"


class AccountAction(str, Enum):
    PAUSE = "PAUSE"
    RESUME = "RESUME"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"


class ChainKind(str, Enum):
    """ETH is the host chain, SUB the guest chain."""
    ETH = "ETH"
    SUB = "SUB"


class ProposalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class ValidatorAction(str, Enum):
    ADD = "ADD"
    REMOVE = "REMOVE"


class ValidatorState(str, Enum):
    """Filterable form of CandidateValidator.active."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class LimitKind(str, Enum):
    """
    Named limit categories. The value of each kind is the key of its
    Limit row; the matching snake_case field carries its value.
    """
    MIN_HOST_TRANSACTION_VALUE = "MIN_HOST_TRANSACTION_VALUE"
    MAX_HOST_TRANSACTION_VALUE = "MAX_HOST_TRANSACTION_VALUE"
    DAY_HOST_MAX_LIMIT = "DAY_HOST_MAX_LIMIT"
    DAY_HOST_MAX_LIMIT_FOR_ONE_ADDRESS = "DAY_HOST_MAX_LIMIT_FOR_ONE_ADDRESS"
    MAX_HOST_PENDING_TRANSACTION_LIMIT = "MAX_HOST_PENDING_TRANSACTION_LIMIT"
    MIN_GUEST_TRANSACTION_VALUE = "MIN_GUEST_TRANSACTION_VALUE"
    MAX_GUEST_TRANSACTION_VALUE = "MAX_GUEST_TRANSACTION_VALUE"
    DAY_GUEST_MAX_LIMIT = "DAY_GUEST_MAX_LIMIT"
    DAY_GUEST_MAX_LIMIT_FOR_ONE_ADDRESS = "DAY_GUEST_MAX_LIMIT_FOR_ONE_ADDRESS"
    MAX_GUEST_PENDING_TRANSACTION_LIMIT = "MAX_GUEST_PENDING_TRANSACTION_LIMIT"

    @property
    def field_name(self) -> str:
        """Name of the LimitValues field holding this kind's value."""
        return self.value.lower()


# ============================================================
# Entities
# ============================================================

class Entity(BaseModel):
    """
    Base for every stored record.

    Subclasses set `collection` and may set `status_field` when they carry
    a status the store can filter on.
    """
    collection: ClassVar[Collection]
    status_field: ClassVar[Optional[str]] = None

    id: str
    block_number: NonNegativeInt

    @property
    def status_value(self) -> Optional[str]:
        if self.status_field is None:
            return None
        value = getattr(self, self.status_field)
        return value.value if isinstance(value, Enum) else value


class LimitValues(BaseModel):
    """The ten limit values, five per chain side."""
    min_host_transaction_value: NonNegativeInt
    max_host_transaction_value: NonNegativeInt
    day_host_max_limit: NonNegativeInt
    day_host_max_limit_for_one_address: NonNegativeInt
    max_host_pending_transaction_limit: NonNegativeInt
    min_guest_transaction_value: NonNegativeInt
    max_guest_transaction_value: NonNegativeInt
    day_guest_max_limit: NonNegativeInt
    day_guest_max_limit_for_one_address: NonNegativeInt
    max_guest_pending_transaction_limit: NonNegativeInt

    def limit_values(self) -> dict[LimitKind, int]:
        """Values keyed by LimitKind, in declaration order."""
        return {kind: getattr(self, kind.field_name) for kind in LimitKind}


class Message(Entity):
    """A cross-chain transfer message."""
    collection: ClassVar[Collection] = Collection.MESSAGES
    status_field: ClassVar[Optional[str]] = "status"

    origin_address: HexString
    destination_address: HexString
    amount: NonNegativeInt
    token: Optional[str] = None
    status: MessageStatus = MessageStatus.PENDING
    direction: Direction


class BridgeMessage(Entity):
    collection: ClassVar[Collection] = Collection.BRIDGE_MESSAGES
    status_field: ClassVar[Optional[str]] = "status"

    action: BridgeAction
    status: BridgeMessageStatus = BridgeMessageStatus.PENDING


class AccountMessage(Entity):
    """Immutable record of one account pause/resume event."""
    collection: ClassVar[Collection] = Collection.ACCOUNT_MESSAGES

    action: AccountAction
    direction: Direction
    address: HexString
    timestamp: NonNegativeInt


class Account(Entity):
    """Current pause state of one chain address."""
    collection: ClassVar[Collection] = Collection.ACCOUNTS
    status_field: ClassVar[Optional[str]] = "status"

    message_id: HexString
    kind: ChainKind
    status: AccountStatus
    timestamp: NonNegativeInt


class LimitProposal(Entity, LimitValues):
    collection: ClassVar[Collection] = Collection.LIMIT_PROPOSALS
    status_field: ClassVar[Optional[str]] = "status"

    proposer_address: HexString
    status: ProposalStatus = ProposalStatus.PENDING


class LimitMessage(Entity, LimitValues):
    """Per-block limit snapshot; id comes from derive_message_id."""
    collection: ClassVar[Collection] = Collection.LIMIT_MESSAGES


class Limit(Entity):
    """
    Current value of one limit kind.

    `id` is the LimitKind name; `message_id` points at the LimitMessage
    that last set it.
    """
    collection: ClassVar[Collection] = Collection.LIMITS

    value: NonNegativeInt
    message_id: HexString


class CandidateValidator(Entity):
    """Host -> guest address mapping gated by an active flag."""
    collection: ClassVar[Collection] = Collection.CANDIDATE_VALIDATORS
    status_field: ClassVar[Optional[str]] = "state"

    guest_address: HexString
    active: bool

    @property
    def state(self) -> ValidatorState:
        return ValidatorState.ACTIVE if self.active else ValidatorState.INACTIVE


class CandidateValidatorMessage(Entity):
    collection: ClassVar[Collection] = Collection.CANDIDATE_VALIDATOR_MESSAGES

    host_address: HexString
    guest_address: HexString
    action: ValidatorAction


class CandidatesValidatorsProposal(Entity):
    collection: ClassVar[Collection] = Collection.CANDIDATES_VALIDATORS_PROPOSALS
    status_field: ClassVar[Optional[str]] = "status"

    status: ProposalStatus = ProposalStatus.PENDING
    host_addresses: list[HexString] = Field(default_factory=list)


class ValidatorsListMessage(Entity):
    """
    A fully translated guest-chain validator list.

    Only ever written when every host address resolved.
    """
    collection: ClassVar[Collection] = Collection.VALIDATORS_LIST_MESSAGES

    proposal_id: HexString
    guest_addresses: list[HexString]
    threshold: NonNegativeInt


ENTITY_TYPES: dict[Collection, type[Entity]] = {
    Collection.MESSAGES: Message,
    Collection.BRIDGE_MESSAGES: BridgeMessage,
    Collection.ACCOUNT_MESSAGES: AccountMessage,
    Collection.ACCOUNTS: Account,
    Collection.LIMIT_PROPOSALS: LimitProposal,
    Collection.LIMIT_MESSAGES: LimitMessage,
    Collection.LIMITS: Limit,
    Collection.CANDIDATE_VALIDATORS: CandidateValidator,
    Collection.CANDIDATE_VALIDATOR_MESSAGES: CandidateValidatorMessage,
    Collection.CANDIDATES_VALIDATORS_PROPOSALS: CandidatesValidatorsProposal,
    Collection.VALIDATORS_LIST_MESSAGES: ValidatorsListMessage,
}
