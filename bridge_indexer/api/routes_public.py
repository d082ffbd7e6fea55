"""
Public API Routes

Read-only endpoints over the reconstructed bridge state.
Every list endpoint pages by origin block: results are ordered by
(block_number, id) and accept since_block / limit / offset.
"""

from typing import Annotated, Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..db.store import DEFAULT_PAGE_SIZE, EntityStore, Repository
from ..schemas import (
    AccountStatus,
    BridgeMessageStatus,
    MessageStatus,
    ProposalStatus,
    ValidatorState,
    normalize_hex,
)


router = APIRouter(prefix="/api/public", tags=["Public API"])


# Default cache for public read endpoints (5 seconds; new blocks arrive often)
CACHE_CONTROL_PUBLIC = "public, max-age=5"

MAX_PAGE_SIZE = 1000


# ============================================================
# Response Models
# ============================================================

class Page(BaseModel):
    """One page of entities."""
    collection: str
    items: list[dict[str, Any]]
    count: int
    limit: int
    offset: int
    since_block: Optional[int] = None


class SyncStatus(BaseModel):
    """
    Highest origin block stored per collection.

    An event source resumes from the max of these.
    """
    collections: dict[str, Optional[int]]
    last_block_number: Optional[int] = None


# ============================================================
# Helper Functions
# ============================================================

def get_store(request: Request) -> EntityStore:
    """Get entity store from app state."""
    return request.app.state.entity_store


def _page(
    repository: Repository,
    status: Optional[str],
    since_block: Optional[int],
    limit: int,
    offset: int,
) -> JSONResponse:
    items = repository.list(
        status=status,
        since_block=since_block,
        limit=limit,
        offset=offset,
    )
    page = Page(
        collection=repository.collection.value,
        items=[item.model_dump(mode="json") for item in items],
        count=len(items),
        limit=limit,
        offset=offset,
        since_block=since_block,
    )
    return JSONResponse(
        content=page.model_dump(),
        headers={"Cache-Control": CACHE_CONTROL_PUBLIC},
    )


def _load_or_404(repository: Repository, entity_id: str, label: str) -> JSONResponse:
    try:
        key = normalize_hex(entity_id)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label}")

    entity = repository.load(key)
    if entity is None:
        raise HTTPException(status_code=404, detail=f"{label.capitalize()} not found")

    return JSONResponse(
        content=entity.model_dump(mode="json"),
        headers={"Cache-Control": CACHE_CONTROL_PUBLIC},
    )


def _status_value(status) -> Optional[str]:
    return status.value if status is not None else None


SinceBlock = Annotated[Optional[int], Query(ge=0, description="Only records from this block on")]
PageLimit = Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)]
PageOffset = Annotated[int, Query(ge=0)]


# ============================================================
# Endpoints
# ============================================================

@router.get("/messages", response_model=Page)
def list_messages(
    request: Request,
    status: Optional[MessageStatus] = None,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    """
    Transfer messages, optionally filtered by status.

    The relayer polls this with status=APPROVED to find work.
    """
    store = get_store(request)
    return _page(store.messages, _status_value(status), since_block, limit, offset)


@router.get("/messages/{message_id}")
def get_message(request: Request, message_id: str):
    return _load_or_404(get_store(request).messages, message_id, "message id")


@router.get("/bridge-messages", response_model=Page)
def list_bridge_messages(
    request: Request,
    status: Optional[BridgeMessageStatus] = None,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    store = get_store(request)
    return _page(store.bridge_messages, _status_value(status), since_block, limit, offset)


@router.get("/accounts", response_model=Page)
def list_accounts(
    request: Request,
    status: Optional[AccountStatus] = None,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    store = get_store(request)
    return _page(store.accounts, _status_value(status), since_block, limit, offset)


@router.get("/accounts/{address}")
def get_account(request: Request, address: str):
    return _load_or_404(get_store(request).accounts, address, "address")


@router.get("/account-messages", response_model=Page)
def list_account_messages(
    request: Request,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    store = get_store(request)
    return _page(store.account_messages, None, since_block, limit, offset)


@router.get("/limits")
def list_limits(request: Request):
    """Current value of every limit kind, keyed by kind name."""
    store = get_store(request)
    limits = store.limits.list(limit=MAX_PAGE_SIZE)
    return JSONResponse(
        content={
            limit.id: {
                "value": limit.value,
                "message_id": limit.message_id,
                "block_number": limit.block_number,
            }
            for limit in limits
        },
        headers={"Cache-Control": CACHE_CONTROL_PUBLIC},
    )


@router.get("/limit-messages", response_model=Page)
def list_limit_messages(
    request: Request,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    store = get_store(request)
    return _page(store.limit_messages, None, since_block, limit, offset)


@router.get("/limit-proposals", response_model=Page)
def list_limit_proposals(
    request: Request,
    status: Optional[ProposalStatus] = None,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    store = get_store(request)
    return _page(store.limit_proposals, _status_value(status), since_block, limit, offset)


@router.get("/validators", response_model=Page)
def list_validators(
    request: Request,
    active: Optional[bool] = None,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    """Candidate validators (host address -> guest address)."""
    store = get_store(request)
    state = None
    if active is not None:
        state = ValidatorState.ACTIVE if active else ValidatorState.INACTIVE
    return _page(store.candidate_validators, _status_value(state), since_block, limit, offset)


@router.get("/validators-proposals", response_model=Page)
def list_validators_proposals(
    request: Request,
    status: Optional[ProposalStatus] = None,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    store = get_store(request)
    return _page(
        store.candidates_validators_proposals,
        _status_value(status),
        since_block,
        limit,
        offset,
    )


@router.get("/validators-lists", response_model=Page)
def list_validators_lists(
    request: Request,
    since_block: SinceBlock = None,
    limit: PageLimit = DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    store = get_store(request)
    return _page(store.validators_list_messages, None, since_block, limit, offset)


@router.get("/sync", response_model=SyncStatus)
def get_sync_status(request: Request):
    """Max origin block per collection."""
    collections = get_store(request).sync_status()
    blocks = [b for b in collections.values() if b is not None]
    return SyncStatus(
        collections=collections,
        last_block_number=max(blocks) if blocks else None,
    )
