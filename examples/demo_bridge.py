"""
Demonstration: Bridge State Reconstruction

Feeds a short bridge history through the engine: a transfer relayed and
confirmed, a host account paused, a limit snapshot, and a validator list
that reconciles only once every host validator is registered.

Run with: python -m examples.demo_bridge
"""

from bridge_indexer.core import ReconciliationEngine, limit_message_id
from bridge_indexer.db import InMemoryEntityStore
from bridge_indexer.schemas import LimitKind


MESSAGE_ID = "0x" + "aa" * 32
ETH_SENDER = "0x" + "11" * 20
SUB_RECIPIENT = "0x" + "22" * 32


def main():
    print("=" * 60)
    print("Bridge Indexer - State Reconstruction Demonstration")
    print("=" * 60)
    print()

    engine = ReconciliationEngine(InMemoryEntityStore())
    store = engine.store

    # ================================================================
    # STEP 1: TRANSFER MESSAGE
    # ================================================================
    print("=" * 60)
    print("STEP 1: RELAY -> APPROVE -> CONFIRM")
    print("=" * 60)

    for event in [
        {
            "kind": "RelayMessage",
            "block_number": 100,
            "message_id": MESSAGE_ID,
            "sender": ETH_SENDER,
            "recipient": SUB_RECIPIENT,
            "amount": 1000,
        },
        {"kind": "ApprovedRelayMessage", "block_number": 101, "message_id": MESSAGE_ID},
        {"kind": "ConfirmMessage", "block_number": 102, "message_id": MESSAGE_ID},
    ]:
        outcome = engine.apply_raw(event)
        status = store.messages.load(MESSAGE_ID).status.value
        print(f"[{outcome.value:9}] {event['kind']:22} -> {status}")
    print()

    # ================================================================
    # STEP 2: ACCOUNT CONTROL
    # ================================================================
    print("=" * 60)
    print("STEP 2: HOST ACCOUNT PAUSED")
    print("=" * 60)

    engine.apply_raw({
        "kind": "HostAccountPausedMessage",
        "block_number": 103,
        "message_id": "0x0a",
        "address": ETH_SENDER,
        "timestamp": 1700000000,
    })
    account = store.accounts.load(ETH_SENDER)
    print(f"Account {account.id}: {account.status.value} ({account.kind.value})")
    print()

    # ================================================================
    # STEP 3: LIMIT SNAPSHOT
    # ================================================================
    print("=" * 60)
    print("STEP 3: SET NEW LIMITS")
    print("=" * 60)

    limits = {kind.field_name: (i + 1) * 10 ** 18 for i, kind in enumerate(LimitKind)}
    engine.apply_raw({"kind": "SetNewLimits", "block_number": 104, **limits})
    engine.apply_raw({"kind": "SetNewLimits", "block_number": 104, **limits})

    print(f"Snapshot id: {limit_message_id(104)}")
    print(f"Snapshots stored after replaying block 104 twice: {store.limit_messages.count()}")
    for limit in store.limits.list():
        print(f"   {limit.id:38} {limit.value}")
    print()

    # ================================================================
    # STEP 4: VALIDATOR LIST RECONCILIATION
    # ================================================================
    print("=" * 60)
    print("STEP 4: VALIDATOR LIST (ALL-OR-NOTHING)")
    print("=" * 60)

    engine.apply_raw({
        "kind": "ValidatorAdded",
        "block_number": 105,
        "message_id": "0xf1",
        "host_address": "0x01",
        "guest_address": "0xa1",
    })
    engine.apply_raw({
        "kind": "ValidatorsListProposalCreated",
        "block_number": 106,
        "proposal_id": "0xcc",
        "host_addresses": ["0x01", "0x02"],
    })

    list_event = {
        "kind": "ValidatorsListMessage",
        "block_number": 107,
        "message_id": "0xee",
        "proposal_id": "0xcc",
        "host_addresses": ["0x01", "0x02"],
        "threshold": 2,
    }
    outcome = engine.apply_raw(list_event)
    print(f"[{outcome.value}] 0x02 is not a candidate yet")
    print(f"   Proposal status: {store.candidates_validators_proposals.load('0xcc').status.value}")

    engine.apply_raw({
        "kind": "ValidatorAdded",
        "block_number": 108,
        "message_id": "0xf2",
        "host_address": "0x02",
        "guest_address": "0xb2",
    })
    outcome = engine.apply_raw({**list_event, "block_number": 109})
    validators_list = store.validators_list_messages.load("0xee")
    print(f"[{outcome.value}] guest list {validators_list.guest_addresses}")
    print(f"   Proposal status: {store.candidates_validators_proposals.load('0xcc').status.value}")
    print()

    print("=" * 60)
    print(f"Diagnostics raised: {len(engine.diagnostics)}")
    for diagnostic in engine.diagnostics:
        print(f"   [{diagnostic.severity.value}] {diagnostic.message}")
    print("=" * 60)


if __name__ == "__main__":
    main()
