"""
Event Ingest Routes

The event source posts finalized events here in chain order. A batch is
applied event by event; a malformed event stops the batch with a 422 and
the events before it stay applied (the response says how many).
"""

from threading import Lock
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ..core import MalformedEventError, ReconciliationEngine, parse_event
from ..observability import get_logger


router = APIRouter(prefix="/api", tags=["Events"])

logger = get_logger(__name__)

# Events are applied strictly one at a time
_apply_lock = Lock()


# ============================================================
# Request/Response Models
# ============================================================

class EventBatch(BaseModel):
    """Events in chain order, each a JSON object tagged with `kind`."""
    events: list[dict[str, Any]] = Field(..., min_length=1)


class EventResult(BaseModel):
    index: int
    kind: str
    block_number: int
    outcome: str


class IngestResponse(BaseModel):
    applied: int
    results: list[EventResult]
    diagnostics: list[dict[str, Any]]
    last_block_number: Optional[int] = None


def get_engine(request: Request) -> ReconciliationEngine:
    """Get engine from app state."""
    return request.app.state.engine


# ============================================================
# Endpoints
# ============================================================

@router.post("/events", response_model=IngestResponse)
def ingest_events(request: Request, body: EventBatch):
    """
    Apply a batch of events.

    Returns per-event outcomes and the diagnostics raised by this batch.
    """
    engine = get_engine(request)
    results: list[EventResult] = []

    with _apply_lock:
        diagnostics_before = len(engine.diagnostics)

        for index, raw in enumerate(body.events):
            try:
                event = parse_event(raw)
            except MalformedEventError as e:
                logger.warning(
                    "Rejected malformed event",
                    index=index,
                    applied=len(results),
                    error=str(e),
                )
                raise HTTPException(
                    status_code=422,
                    detail={
                        "message": str(e),
                        "index": index,
                        "applied": len(results),
                        "errors": e.errors,
                    },
                )

            outcome = engine.apply(event)
            results.append(EventResult(
                index=index,
                kind=event.kind,
                block_number=event.block_number,
                outcome=outcome.value,
            ))

        new_diagnostics = engine.diagnostics[diagnostics_before:]

    return IngestResponse(
        applied=len(results),
        results=results,
        diagnostics=[d.to_dict() for d in new_diagnostics],
        last_block_number=results[-1].block_number if results else None,
    )
