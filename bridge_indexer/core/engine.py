"""
Reconciliation Engine

Turns the ordered bridge event stream into entity state.

    engine = ReconciliationEngine(InMemoryEntityStore())
    engine.apply(event)            # one parsed event
    engine.apply_raw({...})        # parse + apply
    engine.apply_all(events)       # replay, returns a ReplaySummary

Events must be applied one at a time in chain order. Unknown targets,
disallowed transitions and failed reconciliations never raise: they are
recorded in `engine.diagnostics`, logged, and counted. Malformed input
raises MalformedEventError; store failures propagate as EntityStoreError.
"""

import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from ..db.store import EntityStore
from ..observability import MetricsCollector, get_logger
from ..schemas import BaseEvent, BridgeEvent, EventKind
from .appliers import (
    AccountApplier,
    BridgeMessageApplier,
    CandidateValidatorApplier,
    LimitApplier,
    MessageApplier,
)
from .outcomes import ApplyOutcome, Diagnostic, Severity
from .reconciler import ValidatorListReconciler


logger = get_logger(__name__)


# ============================================================
# EXCEPTIONS
# ============================================================

class EngineError(Exception):
    """Base exception for engine errors."""
    pass


class MalformedEventError(EngineError):
    """
    Raised when input cannot be parsed into a known event.

    `index` is the event's position in the batch when raised from
    apply_all (and so the number of events applied before it).
    """

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []
        self.index: Optional[int] = None


# ============================================================
# PARSING
# ============================================================

_event_adapter = TypeAdapter(BridgeEvent)


def parse_event(data: Mapping[str, Any]) -> BaseEvent:
    """
    Validate a raw mapping into a typed event.

    The `kind` field selects the event model. Fields the model does not
    know are ignored.

    Raises:
        MalformedEventError: If the kind is unknown or a field is invalid
    """
    if not isinstance(data, Mapping):
        raise MalformedEventError(
            f"event must be a JSON object, got {type(data).__name__}"
        )
    try:
        return _event_adapter.validate_python(dict(data))
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        kind = data.get("kind", "<missing>")
        raise MalformedEventError(
            f"malformed {kind} event: {e.error_count()} validation error(s)",
            errors=errors,
        ) from e


# ============================================================
# SUMMARY
# ============================================================

@dataclass
class ReplaySummary:
    """Result of applying a batch of events."""
    event_count: int = 0
    outcomes: Counter = field(default_factory=Counter)
    last_block_number: Optional[int] = None
    diagnostic_count: int = 0

    def to_dict(self) -> dict:
        return {
            "event_count": self.event_count,
            "outcomes": {outcome.value: n for outcome, n in self.outcomes.items()},
            "last_block_number": self.last_block_number,
            "diagnostic_count": self.diagnostic_count,
        }


# ============================================================
# ENGINE
# ============================================================

class ReconciliationEngine:
    """
    Dispatches events to the applier for their kind.

    Single-threaded: callers must not apply events concurrently against
    the same store.
    """

    def __init__(self, store: EntityStore, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.diagnostics: list[Diagnostic] = []

        self.messages = MessageApplier(store, self._report)
        self.bridge_messages = BridgeMessageApplier(store, self._report)
        self.accounts = AccountApplier(store, self._report)
        self.limits = LimitApplier(store, self._report)
        self.validators = CandidateValidatorApplier(store, self._report)
        self.reconciler = ValidatorListReconciler(store, self._report)

        self._handlers: dict[EventKind, Callable[[Any], ApplyOutcome]] = {
            EventKind.RELAY_MESSAGE: self.messages.create,
            EventKind.WITHDRAW_MESSAGE: self.messages.create,
            EventKind.APPROVED_RELAY_MESSAGE: self.messages.change_status,
            EventKind.CONFIRM_MESSAGE: self.messages.change_status,
            EventKind.CONFIRM_WITHDRAW_MESSAGE: self.messages.change_status,
            EventKind.CONFIRM_CANCEL_MESSAGE: self.messages.change_status,
            EventKind.REVERT_MESSAGE: self.messages.change_status,
            EventKind.BRIDGE_STARTED: self.bridge_messages.create,
            EventKind.BRIDGE_STOPPED: self.bridge_messages.create,
            EventKind.BRIDGE_PAUSED: self.bridge_messages.create,
            EventKind.BRIDGE_RESUMED: self.bridge_messages.create,
            EventKind.BRIDGE_PAUSED_BY_VOLUME: self.bridge_messages.create,
            EventKind.BRIDGE_STARTED_BY_VOLUME: self.bridge_messages.create,
            EventKind.HOST_ACCOUNT_PAUSED: self.accounts.apply,
            EventKind.HOST_ACCOUNT_RESUMED: self.accounts.apply,
            EventKind.GUEST_ACCOUNT_PAUSED: self.accounts.apply,
            EventKind.GUEST_ACCOUNT_RESUMED: self.accounts.apply,
            EventKind.SET_NEW_LIMITS: self.limits.set_limits,
            EventKind.PROPOSAL_CREATED: self.limits.create_proposal,
            EventKind.PROPOSAL_APPROVED: self.limits.approve_proposal,
            EventKind.VALIDATOR_ADDED: self.validators.apply,
            EventKind.VALIDATOR_REMOVED: self.validators.apply,
            EventKind.VALIDATORS_LIST_PROPOSAL_CREATED: self.validators.create_list_proposal,
            EventKind.VALIDATORS_LIST_MESSAGE: self.reconciler.apply,
        }

    def _report(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

        log = logger.error if diagnostic.severity == Severity.ERROR else logger.warning
        log(
            diagnostic.message,
            diagnostic=diagnostic.kind.value,
            event_kind=diagnostic.event_kind,
            block_number=diagnostic.block_number,
            target_id=diagnostic.target_id,
            addresses=list(diagnostic.addresses),
        )

        if self.metrics is not None:
            self.metrics.record_diagnostic(diagnostic.kind.value)

    def apply(self, event: BaseEvent) -> ApplyOutcome:
        """
        Apply one parsed event.

        Returns:
            The ApplyOutcome of the event's applier

        Raises:
            EngineError: If the object is not a known event type
            EntityStoreError: On storage failure
        """
        kind = getattr(event, "kind", None)
        try:
            handler = self._handlers[EventKind(kind)]
        except ValueError:
            raise EngineError(f"no handler for event kind {kind!r}") from None

        start = time.perf_counter()
        outcome = handler(event)
        latency_ms = (time.perf_counter() - start) * 1000

        logger.debug(
            f"Applied {kind}",
            event_kind=kind,
            block_number=event.block_number,
            target_id=event.target_id,
            outcome=outcome.value,
        )

        if self.metrics is not None:
            self.metrics.record_apply(kind, outcome.value, event.block_number, latency_ms)

        return outcome

    def apply_raw(self, data: Mapping[str, Any]) -> ApplyOutcome:
        """Parse a raw mapping and apply it. Raises MalformedEventError."""
        return self.apply(parse_event(data))

    def apply_all(self, events: Iterable[Any]) -> ReplaySummary:
        """
        Apply events in order.

        Accepts parsed events or raw mappings. Stops at the first malformed
        event (the exception propagates); earlier events stay applied.
        """
        summary = ReplaySummary()
        diagnostics_before = len(self.diagnostics)

        for index, event in enumerate(events):
            if not isinstance(event, BaseEvent):
                try:
                    event = parse_event(event)
                except MalformedEventError as e:
                    e.index = index
                    raise
            outcome = self.apply(event)
            summary.event_count += 1
            summary.outcomes[outcome] += 1
            summary.last_block_number = event.block_number

        summary.diagnostic_count = len(self.diagnostics) - diagnostics_before

        logger.info(
            "Replay finished",
            event_count=summary.event_count,
            last_block_number=summary.last_block_number,
            diagnostic_count=summary.diagnostic_count,
        )
        return summary
