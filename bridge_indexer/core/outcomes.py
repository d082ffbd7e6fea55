"""
Apply Outcomes and Diagnostics

Every applied event yields exactly one ApplyOutcome. Non-fatal anomalies
(unknown targets, rejected transitions, failed reconciliations) are
reported as Diagnostic records instead of exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional


class ApplyOutcome(str, Enum):
    """What applying one event did to the store."""
    CREATED = "CREATED"      # a new primary record was written
    UPDATED = "UPDATED"      # an existing record changed
    UNCHANGED = "UNCHANGED"  # the record already reflected the event
    IGNORED = "IGNORED"      # target unknown, nothing written
    REJECTED = "REJECTED"    # disallowed by a state machine or reconciliation


class Severity(str, Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"


class DiagnosticKind(str, Enum):
    UNKNOWN_TARGET = "unknown_target"
    TRANSITION_REJECTED = "transition_rejected"
    RECONCILIATION_FAILED = "reconciliation_failed"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal anomaly raised while applying an event."""
    kind: DiagnosticKind
    severity: Severity
    event_kind: str
    block_number: int
    message: str
    target_id: str = ""
    addresses: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "event_kind": self.event_kind,
            "block_number": self.block_number,
            "target_id": self.target_id,
            "addresses": list(self.addresses),
            "message": self.message,
        }


DiagnosticSink = Callable[[Diagnostic], None]


def discard_diagnostic(diagnostic: Diagnostic) -> None:
    """Sink used when an applier runs without an engine."""
    return None


def unknown_target(event, message: str, target_id: Optional[str] = None) -> Diagnostic:
    return Diagnostic(
        kind=DiagnosticKind.UNKNOWN_TARGET,
        severity=Severity.WARNING,
        event_kind=event.kind,
        block_number=event.block_number,
        target_id=target_id if target_id is not None else event.target_id,
        message=message,
    )
