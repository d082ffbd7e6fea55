
# Core reconciliation services
from .identity import (
    LIMIT_MESSAGE_SALT,
    IdentifierError,
    derive_message_id,
    limit_message_id,
    normalize_length,
)
from .outcomes import ApplyOutcome, Diagnostic, DiagnosticKind, Severity
from .appliers import (
    AccountApplier,
    BridgeMessageApplier,
    CandidateValidatorApplier,
    LimitApplier,
    MessageApplier,
    check_message_transition,
)
from .reconciler import (
    ReconciliationError,
    ReconciliationErrorReason,
    ReconciliationResult,
    ValidatorListReconciler,
    translate_validator_list,
)
from .engine import (
    EngineError,
    MalformedEventError,
    ReconciliationEngine,
    ReplaySummary,
    parse_event,
)

__all__ = [
    "LIMIT_MESSAGE_SALT",
    "IdentifierError",
    "derive_message_id",
    "limit_message_id",
    "normalize_length",
    "ApplyOutcome",
    "Diagnostic",
    "DiagnosticKind",
    "Severity",
    "AccountApplier",
    "BridgeMessageApplier",
    "CandidateValidatorApplier",
    "LimitApplier",
    "MessageApplier",
    "check_message_transition",
    "ReconciliationError",
    "ReconciliationErrorReason",
    "ReconciliationResult",
    "ValidatorListReconciler",
    "translate_validator_list",
    "EngineError",
    "MalformedEventError",
    "ReconciliationEngine",
    "ReplaySummary",
    "parse_event",
]
