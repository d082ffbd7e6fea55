"""
Validator List Reconciliation

A ValidatorsListMessage names the next validator set by host-chain
address. The guest chain needs the same set by guest-chain address, so
every host address is translated through the CandidateValidator registry.

ALL-OR-NOTHING:
- Every host address must resolve to an active candidate
- The whole translation is computed before anything is written
- One unresolved address means no ValidatorsListMessage and no proposal
  approval; the failure is reported with every offending address
"""

from dataclasses import dataclass, field
from enum import Enum

from ..db.store import Repository
from ..observability import get_logger
from ..schemas import (
    CandidateValidator,
    ProposalStatus,
    ValidatorsListMessage,
    ValidatorsListMessageEvent,
)
from .appliers import Applier
from .outcomes import (
    ApplyOutcome,
    Diagnostic,
    DiagnosticKind,
    Severity,
    unknown_target,
)


logger = get_logger(__name__)


class ReconciliationErrorReason(str, Enum):
    UNKNOWN = "unknown"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class ReconciliationError:
    """One host address that could not be translated."""
    host_address: str
    reason: ReconciliationErrorReason


@dataclass
class ReconciliationResult:
    """Outcome of translating a host-address list."""
    guest_addresses: list[str] = field(default_factory=list)
    errors: list[ReconciliationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def failed_addresses(self) -> list[str]:
        return [error.host_address for error in self.errors]


def translate_validator_list(
    host_addresses: list[str],
    candidates: Repository[CandidateValidator],
) -> ReconciliationResult:
    """
    Translate host addresses to guest addresses, preserving order.

    Reads only. Duplicate host addresses are translated independently.
    """
    result = ReconciliationResult()
    for host_address in host_addresses:
        candidate = candidates.load(host_address)
        if candidate is None:
            result.errors.append(
                ReconciliationError(host_address, ReconciliationErrorReason.UNKNOWN)
            )
        elif not candidate.active:
            result.errors.append(
                ReconciliationError(host_address, ReconciliationErrorReason.INACTIVE)
            )
        else:
            result.guest_addresses.append(candidate.guest_address)
    return result


class ValidatorListReconciler(Applier):
    """Applies ValidatorsListMessage events."""

    def apply(self, event: ValidatorsListMessageEvent) -> ApplyOutcome:
        result = translate_validator_list(event.host_addresses, self.store.candidate_validators)

        if not result.ok:
            details = ", ".join(
                f"{error.host_address} ({error.reason.value})" for error in result.errors
            )
            self.report(Diagnostic(
                kind=DiagnosticKind.RECONCILIATION_FAILED,
                severity=Severity.ERROR,
                event_kind=event.kind,
                block_number=event.block_number,
                target_id=event.proposal_id,
                addresses=tuple(result.failed_addresses),
                message=(
                    f"Validator list {event.message_id} for proposal {event.proposal_id} "
                    f"not reconciled: {details}"
                ),
            ))
            return ApplyOutcome.REJECTED

        outcome = ApplyOutcome.CREATED
        list_message = ValidatorsListMessage(
            id=event.message_id,
            block_number=event.block_number,
            proposal_id=event.proposal_id,
            guest_addresses=result.guest_addresses,
            threshold=event.threshold,
        )
        existing = self.store.validators_list_messages.load(list_message.id)
        if existing is not None:
            outcome = ApplyOutcome.UNCHANGED if existing == list_message else ApplyOutcome.UPDATED
        self.store.validators_list_messages.save(list_message)

        proposal = self.store.candidates_validators_proposals.load(event.proposal_id)
        if proposal is None:
            self.report(unknown_target(
                event,
                f"Validator list {event.message_id} references unknown proposal {event.proposal_id}",
                target_id=event.proposal_id,
            ))
        elif proposal.status != ProposalStatus.APPROVED:
            self.store.candidates_validators_proposals.save(
                proposal.model_copy(update={"status": ProposalStatus.APPROVED})
            )
            if outcome == ApplyOutcome.UNCHANGED:
                outcome = ApplyOutcome.UPDATED

        logger.info(
            "Validator list reconciled",
            message_id=event.message_id,
            proposal_id=event.proposal_id,
            validators=len(result.guest_addresses),
            threshold=event.threshold,
        )
        return outcome
