"""
HTTP surface: routing, demo auth, wallet resolution and error mapping
"""
import logging

import pytest
from eth_account import Account
from fastapi.testclient import TestClient

import main
from config import settings


def _auth(username: str) -> dict:
    return {"Authorization": f"Bearer {username}"}


@pytest.fixture
def state_file(tmp_path, monkeypatch):
    path = tmp_path / "ledger_state.json"
    monkeypatch.setattr(settings, "LEDGER_STATE_PATH", str(path))
    monkeypatch.setattr(settings, "DISTRIBUTOR_ADDRESS", None)
    monkeypatch.setattr(settings, "RETAILER_ADDRESS", None)
    monkeypatch.setattr(settings, "LEDGER_ALLOW_TRANSFER", True)
    return path


@pytest.fixture
def client(state_file):
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def wallets():
    return {
        "manufacturer": Account.from_key(settings.MANUFACTURER_PRIVATE_KEY).address,
        "distributor": Account.from_key(settings.DISTRIBUTOR_PRIVATE_KEY).address,
        "retailer": Account.from_key(settings.RETAILER_PRIVATE_KEY).address,
    }


@pytest.fixture
def b1(client):
    response = client.post("/batches", headers=_auth("manufacturer"), json={
        "batchId": "B1",
        "quantity": 100,
        "ownerRef": "u1",
        "label": "L1",
        "location": "Plant A",
    })
    assert response.status_code == 201
    return response.json()


def _advance(client, username, status, location):
    return client.post(
        "/batches/B1/status",
        headers=_auth(username),
        json={"status": status, "location": location},
    )


# =======================
# SERVICE AND AUTH
# =======================

def test_health_reports_roles(client, wallets):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["batches"] == 0
    assert body["roles"] == wallets


def test_login_returns_role_wallet(client, wallets):
    response = client.post("/auth/login", json={"username": "distributor", "password": "demo123"})
    assert response.status_code == 200
    assert response.json()["user"]["wallet_address"] == wallets["distributor"]


def test_login_rejects_bad_password(client):
    response = client.post("/auth/login", json={"username": "retailer", "password": "nope"})
    assert response.status_code == 401


def test_me(client, wallets):
    body = client.get("/auth/me", headers=_auth("retailer")).json()
    assert body["role"] == "retailer"
    assert body["wallet_address"] == wallets["retailer"]


def test_mutations_need_a_token(client):
    response = client.post("/batches", json={"batchId": "X", "quantity": 1, "ownerRef": "u", "location": "A"})
    assert response.status_code == 401


def test_consumers_cannot_mutate(client, b1):
    response = _advance(client, "consumer", "dispatched by manufacturer", "Depot")
    assert response.status_code == 403


# =======================
# BATCH LIFECYCLE
# =======================

def test_created_batch(b1, wallets):
    assert b1["status"] == "Created"
    assert b1["statusLabel"] == "manufactured"
    assert b1["holder"] == wallets["manufacturer"]
    assert b1["location"] == "Plant A"
    assert b1["history"] == ["created by manufacturer at Plant A"]
    assert b1["nextStatuses"] == ["DispatchedByManufacturer"]
    assert b1["isFinalStage"] is False


def test_full_lifecycle(client, b1, wallets):
    steps = [
        ("manufacturer", "dispatched by manufacturer", "Depot"),
        ("distributor", "delivered to distributor", "Depot"),
        ("distributor", "dispatched by distributor", "Road"),
        ("retailer", "delivered to retailer", "Store"),
        ("retailer", "delivered to consumer", "Checkout"),
    ]
    for username, status, location in steps:
        response = _advance(client, username, status, location)
        assert response.status_code == 200, response.json()
        assert response.json()["statusLabel"] == status

    batch = client.get("/batches/B1").json()
    assert batch["holder"] == wallets["retailer"]
    assert batch["isFinalStage"] is True
    assert batch["nextStatuses"] == []
    assert len(client.get("/batches/B1/history").json()["history"]) == 6


def test_distributor_delivery_changes_holder(client, b1, wallets):
    _advance(client, "manufacturer", "DispatchedByManufacturer", "Depot")
    body = _advance(client, "distributor", "DeliveredToDistributor", "Depot").json()
    assert body["holder"] == wallets["distributor"]


def test_list_and_filter_by_owner(client, b1):
    client.post("/batches", headers=_auth("manufacturer"), json={
        "batchId": "B2", "quantity": 3, "ownerRef": "u2", "location": "Plant B",
    })

    everything = client.get("/batches").json()
    assert everything["count"] == 2
    assert [b["batchId"] for b in everything["batches"]] == ["B1", "B2"]

    mine = client.get("/batches", params={"owner": "u2"}).json()
    assert [b["batchId"] for b in mine["batches"]] == ["B2"]


def test_transfer(client, b1):
    target = "0x4444444444444444444444444444444444444444"
    response = client.post(
        "/batches/B1/transfer",
        headers=_auth("manufacturer"),
        json={"newHolder": target, "location": "Warehouse Z"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["holder"] == target
    assert body["status"] == "Created"
    assert body["location"] == "Warehouse Z"


def test_events(client, b1, wallets):
    _advance(client, "manufacturer", "dispatched by manufacturer", "Depot")

    events = client.get("/events").json()
    assert [e["event"] for e in events] == ["BatchCreated", "BatchStatusUpdated"]
    assert events[1]["caller"] == wallets["manufacturer"]
    assert events[1]["newStatusLabel"] == "dispatched by manufacturer"

    later = client.get("/events", params={"since": 1}).json()
    assert [e["sequence"] for e in later] == [2]


# =======================
# ERROR MAPPING
# =======================

def test_wrong_role_is_forbidden(client, b1):
    response = _advance(client, "distributor", "dispatched by manufacturer", "Depot")
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "Unauthorized"


def test_only_manufacturer_creates(client):
    response = client.post("/batches", headers=_auth("retailer"), json={
        "batchId": "B9", "quantity": 1, "ownerRef": "u", "location": "A",
    })
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "Unauthorized"


def test_duplicate_is_conflict(client, b1):
    response = client.post("/batches", headers=_auth("manufacturer"), json={
        "batchId": "B1", "quantity": 1, "ownerRef": "u", "location": "A",
    })
    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "AlreadyExists"


def test_bad_quantity_is_bad_request(client):
    response = client.post("/batches", headers=_auth("manufacturer"), json={
        "batchId": "B9", "quantity": 0, "ownerRef": "u", "location": "A",
    })
    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "InvalidArgument"


def test_premature_step_is_conflict(client, b1):
    before = client.get("/batches/B1").json()
    response = _advance(client, "retailer", "delivered to distributor", "Depot")
    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "InvalidTransition"
    assert client.get("/batches/B1").json() == before


def test_unknown_batch_is_not_found(client):
    assert client.get("/batches/nope").status_code == 404
    assert client.get("/batches/nope/history").status_code == 404
    assert _advance(client, "manufacturer", "dispatched by manufacturer", "X").status_code == 404


# =======================
# ROLE ADMINISTRATION
# =======================

def test_manufacturer_changes_retailer(client):
    target = "0x5555555555555555555555555555555555555555"
    response = client.put("/roles/retailer", headers=_auth("manufacturer"), json={"address": target})
    assert response.status_code == 200
    assert response.json()["retailer"] == target
    assert client.get("/roles").json()["retailer"] == target


def test_role_change_requires_manufacturer(client):
    response = client.put(
        "/roles/distributor",
        headers=_auth("distributor"),
        json={"address": "0x5555555555555555555555555555555555555555"},
    )
    assert response.status_code == 403


def test_role_change_rejects_zero_address(client):
    response = client.put(
        "/roles/distributor",
        headers=_auth("manufacturer"),
        json={"address": "0x0000000000000000000000000000000000000000"},
    )
    assert response.status_code == 400


def test_state_survives_restart(state_file):
    with TestClient(main.app) as first:
        first.post("/batches", headers=_auth("manufacturer"), json={
            "batchId": "B1", "quantity": 1, "ownerRef": "u1", "location": "Plant A",
        })

    assert state_file.exists()
    with TestClient(main.app) as restarted:
        assert restarted.get("/batches/B1").json()["batchId"] == "B1"
        assert restarted.get("/health").json()["batches"] == 1


# =======================
# WALLET DRIFT
# =======================

def _drift_warnings(caplog):
    return [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING and "cannot advance" in r.getMessage()]


def test_matching_wallets_start_quietly(state_file, caplog):
    with caplog.at_level(logging.WARNING, logger="supplychain.backend"):
        with TestClient(main.app):
            pass
    assert _drift_warnings(caplog) == []


def test_configured_distributor_elsewhere_is_reported(state_file, monkeypatch, caplog):
    outsider = "0x4444444444444444444444444444444444444444"
    monkeypatch.setattr(settings, "DISTRIBUTOR_ADDRESS", outsider)

    with caplog.at_level(logging.WARNING, logger="supplychain.backend"):
        with TestClient(main.app) as test_client:
            assert test_client.get("/roles").json()["distributor"] == outsider

    warnings = _drift_warnings(caplog)
    assert len(warnings) == 1
    assert warnings[0].startswith("distributor wallet")


def test_reassigned_retailer_is_locked_out(client, b1, caplog):
    target = "0x5555555555555555555555555555555555555555"
    with caplog.at_level(logging.WARNING, logger="supplychain.backend"):
        client.put("/roles/retailer", headers=_auth("manufacturer"), json={"address": target})
    assert any(w.startswith("retailer wallet") for w in _drift_warnings(caplog))

    _advance(client, "manufacturer", "dispatched by manufacturer", "Depot")
    _advance(client, "distributor", "delivered to distributor", "Depot")
    _advance(client, "distributor", "dispatched by distributor", "Road")
    response = _advance(client, "retailer", "delivered to retailer", "Store")
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "Unauthorized"
