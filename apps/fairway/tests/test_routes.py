"""
Tests for the operator API: HTTP-level tests with the persistence gateway
replaced by the in-memory store.
"""

import pytest
from fastapi.testclient import TestClient

from fairway.api.auth_dependencies import get_settings, get_settlement_gateway
from fairway.api.main import app
from fairway.database.models import TournamentStatus
from fairway.services.settings_service import SettlementSettings

from fakes import minutes_ago

TOKEN = "s3cret-admin-token"
AUTH = {"X-Admin-Token": TOKEN}


@pytest.fixture
def admin_token():
    return TOKEN


@pytest.fixture
def client(gateway, admin_token):
    """TestClient wired to the in-memory gateway."""
    app.dependency_overrides[get_settlement_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: SettlementSettings(admin_token=admin_token)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ============================================================================
# Authentication
# ============================================================================


@pytest.mark.parametrize("admin_token", [None])
def test_admin_disabled_without_configured_token(client):
    response = client.post("/api/admin/settlement/run", headers=AUTH)
    assert response.status_code == 503


def test_missing_token_rejected(client):
    response = client.post("/api/admin/settlement/run")
    assert response.status_code == 401


def test_wrong_token_rejected(client, store):
    store.add_tournament("t1")
    response = client.post("/api/admin/settlement/run", headers={"X-Admin-Token": "nope"})
    assert response.status_code == 401
    assert store.tournaments["t1"].status == TournamentStatus.ACTIVE


# ============================================================================
# Settlement
# ============================================================================


def test_run_settlement(client, store):
    store.add_tournament("t1")
    store.add_league("l1", "t1", entry_fee=1000)
    store.add_team("a", "l1", "u1", scores=[-2])
    store.add_team("b", "l1", "u2", scores=[3])

    response = client.post("/api/admin/settlement/run", headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["tournaments_found"] == 1
    assert data["succeeded"] == 1
    assert data["tournaments"][0]["status"] == "settled"
    assert data["tournaments"][0]["leagues"][0]["distribution"]["total_pot"] == 1800
    assert store.balance("u1") == 1080
    assert store.tournaments["t1"].status == TournamentStatus.FINISHED


def test_list_stuck_tournaments(client, store):
    store.add_tournament("stuck", status=TournamentStatus.PROCESSING, updated_at=minutes_ago(240))
    store.add_tournament("active")

    response = client.get("/api/admin/settlement/stuck", headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert [t["id"] for t in data] == ["stuck"]
    assert data[0]["status"] == "processing"


# ============================================================================
# Manual transitions
# ============================================================================


def test_requeue_processing_tournament(client, store):
    store.add_tournament("t1", status=TournamentStatus.PROCESSING)

    response = client.post("/api/admin/tournaments/t1/requeue", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"tournament_id": "t1", "status": "active", "changed": True}
    assert store.tournaments["t1"].status == TournamentStatus.ACTIVE


def test_requeue_conflict_when_not_processing(client, store):
    store.add_tournament("t1", status=TournamentStatus.FINISHED)

    response = client.post("/api/admin/tournaments/t1/requeue", headers=AUTH)

    assert response.status_code == 409
    assert store.tournaments["t1"].status == TournamentStatus.FINISHED


def test_requeue_unknown_tournament(client):
    response = client.post("/api/admin/tournaments/missing/requeue", headers=AUTH)
    assert response.status_code == 404


def test_finish_processing_tournament(client, store):
    store.add_tournament("t1", status=TournamentStatus.PROCESSING)

    response = client.post("/api/admin/tournaments/t1/finish", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["status"] == "finished"
    assert store.tournaments["t1"].status == TournamentStatus.FINISHED
