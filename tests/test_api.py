"""
Tests for the HTTP API and management CLI

Runs the FastAPI app against an in-memory store: events go in through
POST /api/events and come back out through the public read endpoints.
"""

import json

import pytest
from fastapi.testclient import TestClient

from bridge_indexer.core import derive_message_id
from bridge_indexer.db import InMemoryEntityStore
from bridge_indexer.main import create_app
from bridge_indexer.schemas import LimitKind


MSG_A = "0x" + "aa" * 32
ETH_ADDR = "0x" + "11" * 20
SUB_ADDR = "0x" + "22" * 32


def relay(message_id=MSG_A, block=1):
    return {
        "kind": "RelayMessage",
        "block_number": block,
        "message_id": message_id,
        "sender": ETH_ADDR,
        "recipient": SUB_ADDR,
        "amount": 1000,
    }


class TestSystemEndpoints:

    @pytest.fixture
    def client(self):
        with TestClient(create_app(store=InMemoryEntityStore())) as client:
            yield client

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_detailed(self, client):
        response = client.get("/health/detailed")
        assert response.status_code == 200
        body = response.json()
        assert body["checks"]["entity_store"]["backend"] == "InMemoryEntityStore"

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"

    def test_api_info(self, client):
        body = client.get("/api").json()
        assert body["storage_backend"] == "InMemoryEntityStore"
        assert body["endpoints"]["ingest"]["events"] == "/api/events"

    def test_metrics(self, client):
        body = client.get("/metrics").json()
        assert "events_applied" in body
        assert "apply_latency_p95_ms" in body


class TestEventIngest:

    @pytest.fixture
    def client(self):
        with TestClient(create_app(store=InMemoryEntityStore())) as client:
            yield client

    def test_batch_applied_in_order(self, client):
        response = client.post("/api/events", json={"events": [
            relay(block=1),
            {"kind": "ApprovedRelayMessage", "block_number": 2, "message_id": MSG_A},
        ]})
        assert response.status_code == 200
        body = response.json()
        assert body["applied"] == 2
        assert [r["outcome"] for r in body["results"]] == ["CREATED", "UPDATED"]
        assert body["last_block_number"] == 2
        assert body["diagnostics"] == []

        message = client.get(f"/api/public/messages/{MSG_A}").json()
        assert message["status"] == "APPROVED"

    def test_diagnostics_returned(self, client):
        response = client.post("/api/events", json={"events": [
            {"kind": "ConfirmMessage", "block_number": 2, "message_id": MSG_A},
        ]})
        body = response.json()
        assert body["results"][0]["outcome"] == "IGNORED"
        assert body["diagnostics"][0]["kind"] == "unknown_target"

    def test_malformed_event_is_422(self, client):
        response = client.post("/api/events", json={"events": [
            relay(block=1),
            {"kind": "RelayMessage", "block_number": 2},
        ]})
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["index"] == 1
        assert detail["applied"] == 1
        assert detail["errors"]

        # Events before the malformed one stay applied
        assert client.get(f"/api/public/messages/{MSG_A}").status_code == 200

    def test_empty_batch_is_422(self, client):
        assert client.post("/api/events", json={"events": []}).status_code == 422

    def test_validator_filter_pages_over_matches(self, client):
        def validator(kind, host, message_id, block):
            return {
                "kind": kind,
                "block_number": block,
                "message_id": message_id,
                "host_address": host,
                "guest_address": "0xa1",
            }

        client.post("/api/events", json={"events": [
            validator("ValidatorAdded", "0x01", "0xf1", 1),
            validator("ValidatorRemoved", "0x01", "0xf2", 2),
            validator("ValidatorAdded", "0x02", "0xf3", 3),
        ]})

        body = client.get("/api/public/validators", params={"active": True, "limit": 1}).json()
        assert [item["id"] for item in body["items"]] == ["0x02"]
        assert body["count"] == 1

        body = client.get("/api/public/validators", params={"active": False}).json()
        assert [item["id"] for item in body["items"]] == ["0x01"]


class TestPublicReads:

    @pytest.fixture
    def client(self):
        with TestClient(create_app(store=InMemoryEntityStore())) as client:
            limits = {kind.field_name: i + 1 for i, kind in enumerate(LimitKind)}
            response = client.post("/api/events", json={"events": [
                relay(block=1),
                relay(message_id="0x" + "bb" * 32, block=2),
                {"kind": "ApprovedRelayMessage", "block_number": 3, "message_id": MSG_A},
                {"kind": "BridgePaused", "block_number": 4, "message_id": "0x0b"},
                {
                    "kind": "HostAccountPausedMessage",
                    "block_number": 5,
                    "message_id": "0x0a",
                    "address": ETH_ADDR,
                    "timestamp": 1700000000,
                },
                {"kind": "SetNewLimits", "block_number": 6, **limits},
                {
                    "kind": "ValidatorAdded",
                    "block_number": 7,
                    "message_id": "0xf1",
                    "host_address": "0x01",
                    "guest_address": "0xA1",
                },
                {
                    "kind": "ValidatorsListProposalCreated",
                    "block_number": 8,
                    "proposal_id": "0xcc",
                    "host_addresses": ["0x01"],
                },
                {
                    "kind": "ValidatorsListMessage",
                    "block_number": 9,
                    "message_id": "0xee",
                    "proposal_id": "0xcc",
                    "host_addresses": ["0x01"],
                    "threshold": 1,
                },
            ]})
            assert response.status_code == 200
            yield client

    def test_list_messages_by_status(self, client):
        body = client.get("/api/public/messages", params={"status": "APPROVED"}).json()
        assert body["count"] == 1
        assert body["items"][0]["id"] == MSG_A

    def test_list_messages_since_block(self, client):
        body = client.get("/api/public/messages", params={"since_block": 2}).json()
        assert [item["id"] for item in body["items"]] == ["0x" + "bb" * 32]

    def test_invalid_status_is_422(self, client):
        assert client.get("/api/public/messages", params={"status": "NOPE"}).status_code == 422

    def test_message_lookup_normalizes_id(self, client):
        response = client.get("/api/public/messages/" + "0x" + "AA" * 32)
        assert response.status_code == 200

    def test_message_not_found(self, client):
        assert client.get("/api/public/messages/0x99").status_code == 404

    def test_invalid_id_is_400(self, client):
        assert client.get("/api/public/messages/xyz").status_code == 400

    def test_bridge_messages(self, client):
        body = client.get("/api/public/bridge-messages").json()
        assert body["items"][0]["action"] == "PAUSE"

    def test_accounts(self, client):
        account = client.get(f"/api/public/accounts/{ETH_ADDR}").json()
        assert account["status"] == "BLOCKED"
        assert account["kind"] == "ETH"

        body = client.get("/api/public/accounts", params={"status": "BLOCKED"}).json()
        assert body["count"] == 1
        assert client.get("/api/public/account-messages").json()["count"] == 1

    def test_limits(self, client):
        body = client.get("/api/public/limits").json()
        assert len(body) == 10
        assert body["MIN_HOST_TRANSACTION_VALUE"]["value"] == 1
        assert body["MIN_HOST_TRANSACTION_VALUE"]["message_id"] == derive_message_id("0", 6)
        assert client.get("/api/public/limit-messages").json()["count"] == 1
        assert client.get("/api/public/limit-proposals").json()["count"] == 0

    def test_validators(self, client):
        body = client.get("/api/public/validators", params={"active": True}).json()
        assert body["items"][0]["guest_address"] == "0xa1"

        proposals = client.get("/api/public/validators-proposals", params={"status": "APPROVED"}).json()
        assert proposals["items"][0]["id"] == "0xcc"

        lists = client.get("/api/public/validators-lists").json()
        assert lists["items"][0]["guest_addresses"] == ["0xa1"]

    def test_sync(self, client):
        body = client.get("/api/public/sync").json()
        assert body["last_block_number"] == 9
        assert body["collections"]["messages"] == 2
        assert body["collections"]["limit_proposals"] is None


class TestManageCli:
    """The CLI runs against the in-memory store when no database is configured."""

    @pytest.fixture(autouse=True)
    def memory_store(self, monkeypatch):
        from bridge_indexer import runtime

        monkeypatch.setenv("ENTITYSTORE_DRIVER", "memory")
        runtime.reset()
        yield
        runtime.reset()

    def test_derive_id(self, capsys):
        from tools.manage import main

        assert main(["derive-id", "0", "0"]) == 0
        assert capsys.readouterr().out.strip() == derive_message_id("0", 0)

    def test_derive_id_bad_salt(self, capsys):
        from tools.manage import main

        assert main(["derive-id", "zz", "1"]) == 1
        assert "not a hex string" in capsys.readouterr().err

    def test_replay_and_show(self, tmp_path, capsys):
        from tools.manage import main

        events_file = tmp_path / "events.jsonl"
        events_file.write_text("\n".join([
            json.dumps(relay(block=1)),
            "",
            json.dumps({"kind": "ConfirmMessage", "block_number": 2, "message_id": MSG_A}),
        ]))

        assert main(["replay", str(events_file)]) == 0
        out = capsys.readouterr().out
        assert "Applied 2 events" in out
        assert "Last block: 2" in out

        assert main(["show", "messages", "--status", "CONFIRMED"]) == 0
        shown = json.loads(capsys.readouterr().out.strip())
        assert shown["id"] == MSG_A

    def test_replay_malformed_stops(self, tmp_path, capsys):
        from tools.manage import main

        events_file = tmp_path / "events.jsonl"
        events_file.write_text(json.dumps({"kind": "RelayMessage", "block_number": 1}) + "\n")

        assert main(["replay", str(events_file)]) == 1
        assert "line 1" in capsys.readouterr().err

    def test_replay_reports_line_of_bad_event(self, tmp_path, capsys):
        from tools.manage import main

        events_file = tmp_path / "events.jsonl"
        events_file.write_text(
            json.dumps(relay()) + "\n\n"
            + json.dumps({"kind": "BridgePaused", "block_number": 2, "message_id": "0xa_b"}) + "\n"
        )

        assert main(["replay", str(events_file)]) == 1
        err = capsys.readouterr().err
        assert "line 3" in err
        assert "Stopped after 1 events" in err

    def test_show_unknown_collection(self, capsys):
        from tools.manage import main

        assert main(["show", "nope"]) == 1
        assert "Unknown collection" in capsys.readouterr().err

    def test_init_schema_requires_database(self, monkeypatch, capsys):
        from tools.manage import main

        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DATABASE_HOST", raising=False)
        assert main(["init-schema"]) == 1
        assert "No database configured" in capsys.readouterr().err
