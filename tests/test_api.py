"""
HTTP-level tests. The startup hook is not run: each test wires an orchestrator
with mocked stores onto app.state and points get_db at in-memory sqlite.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from crowdnav.database import get_db
from crowdnav.main import app
from crowdnav.services.sync_orchestrator import SyncOrchestrator

GATE_A = [{"lat": 0, "lng": 0}, {"lat": 0, "lng": 10}, {"lat": 10, "lng": 10}, {"lat": 10, "lng": 0}]
HALL_B = [{"lat": 20, "lng": 20}, {"lat": 20, "lng": 30}, {"lat": 30, "lng": 30}, {"lat": 30, "lng": 20}]


@pytest.fixture
def client(session_factory):
    zone_store = MagicMock()
    zone_store.list_zones.return_value = []
    position_store = MagicMock()
    position_store.list_positions.return_value = []
    orchestrator = SyncOrchestrator(zone_store, position_store)
    orchestrator.load()
    app.state.orchestrator = orchestrator

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    del app.state.orchestrator


@pytest.fixture
def two_zones(client):
    client.post("/api/v1/zones", json={"id": "zone-a", "name": "Gate A", "capacity": 10,
                                       "coordinates": GATE_A, "adjacent_zone_ids": ["zone-b"]})
    client.post("/api/v1/zones", json={"id": "zone-b", "name": "Hall B", "capacity": 4,
                                       "coordinates": HALL_B})
    return client


class TestZones:
    def test_create_zone(self, client):
        r = client.post("/api/v1/zones", json={"name": "Gate A", "capacity": 10, "coordinates": GATE_A})
        assert r.status_code == 201
        data = r.json()
        assert data["id"].startswith("zone-")
        assert data["density"] == "free"
        assert data["occupant_count"] == 0
        assert len(data["coordinates"]) == 4

    @pytest.mark.parametrize("body", [
        {"name": "Gate A", "capacity": 10, "coordinates": GATE_A[:2]},
        {"name": "Gate A", "capacity": 0, "coordinates": GATE_A},
        {"name": "G", "capacity": 10, "coordinates": GATE_A},
    ])
    def test_create_zone_rejects_invalid(self, client, body):
        assert client.post("/api/v1/zones", json=body).status_code == 422

    def test_update_missing_zone_is_404(self, client):
        r = client.put("/api/v1/zones/zone-x", json={"name": "Gate X", "capacity": 5, "coordinates": GATE_A})
        assert r.status_code == 404
        assert r.json()["error"] == "ZoneNotFound"

    def test_update_and_delete(self, two_zones):
        r = two_zones.put("/api/v1/zones/zone-b", json={"name": "Main Hall", "capacity": 8, "coordinates": HALL_B})
        assert r.status_code == 200
        assert r.json()["name"] == "Main Hall"
        assert two_zones.delete("/api/v1/zones/zone-b").status_code == 204
        assert two_zones.get("/api/v1/zones/zone-b").status_code == 404
        assert [z["id"] for z in two_zones.get("/api/v1/zones").json()] == ["zone-a"]

    def test_density_override_and_overcrowded_listing(self, two_zones):
        r = two_zones.put("/api/v1/zones/zone-a/density", json={"density": "over-crowded"})
        assert r.status_code == 200
        assert r.json()["manual_override"]["density"] == "over-crowded"
        assert [z["id"] for z in two_zones.get("/api/v1/zones/overcrowded").json()] == ["zone-a"]

        r = two_zones.delete("/api/v1/zones/zone-a/density")
        assert r.json()["density"] == "free"
        assert r.json()["manual_override"] is None

    def test_invalid_density_value(self, two_zones):
        r = two_zones.put("/api/v1/zones/zone-a/density", json={"density": "packed"})
        assert r.status_code == 422

    def test_create_with_taken_id_is_409(self, two_zones):
        r = two_zones.post("/api/v1/zones", json={"id": "zone-b", "name": "Other Hall", "capacity": 99,
                                                "coordinates": GATE_A})
        assert r.status_code == 409
        assert r.json()["error"] == "ZoneAlreadyExists"
        zone = two_zones.get("/api/v1/zones/zone-b").json()
        assert (zone["name"], zone["capacity"]) == ("Hall B", 4)


class TestZoneNotes:
    def test_add_list_and_delete(self, two_zones):
        r = two_zones.post("/api/v1/zones/zone-a/notes", json={"text": "Slippery floor near exit 3"})
        assert r.status_code == 201
        visible = r.json()
        assert visible["id"].startswith("note-")
        assert visible["visible_to_user"] is True
        two_zones.post("/api/v1/zones/zone-a/notes", json={"text": "Staff only", "visible_to_user": False})

        assert len(two_zones.get("/api/v1/zones/zone-a/notes").json()) == 2
        user_view = two_zones.get("/api/v1/zones/zone-a/notes", params={"visible_only": True}).json()
        assert [n["text"] for n in user_view] == ["Slippery floor near exit 3"]
        assert len(two_zones.get("/api/v1/zones/zone-a").json()["notes"]) == 2

        assert two_zones.delete(f"/api/v1/zones/zone-a/notes/{visible['id']}").status_code == 204
        r = two_zones.delete(f"/api/v1/zones/zone-a/notes/{visible['id']}")
        assert r.status_code == 404
        assert r.json()["error"] == "NoteNotFound"

    def test_blank_note_rejected(self, two_zones):
        assert two_zones.post("/api/v1/zones/zone-a/notes", json={"text": "   "}).status_code == 422

    def test_note_on_missing_zone(self, client):
        assert client.post("/api/v1/zones/zone-x/notes", json={"text": "hello"}).status_code == 404


class TestPositions:
    def test_report_position_updates_zone(self, two_zones):
        r = two_zones.post("/api/v1/positions", json={"user_id": "u1", "lat": 25, "lng": 25, "group_size": 3})
        assert r.status_code == 200
        assert r.json()["assigned_zone_id"] == "zone-b"
        zone = two_zones.get("/api/v1/zones/zone-b").json()
        assert zone["occupant_count"] == 3
        assert zone["density"] == "crowded"
        assert zone["occupancy_percent"] == 75.0

    def test_outside_and_filters(self, two_zones):
        two_zones.post("/api/v1/positions", json={"user_id": "u1", "lat": 15, "lng": 15})
        two_zones.post("/api/v1/positions", json={"user_id": "u2", "lat": 5, "lng": 5})
        assert two_zones.get("/api/v1/positions/u1").json()["assigned_zone_id"] == "outside"
        in_a = two_zones.get("/api/v1/positions", params={"zone_id": "zone-a"}).json()
        assert [p["user_id"] for p in in_a] == ["u2"]

    def test_utc_timestamp_from_client(self, two_zones):
        r = two_zones.post("/api/v1/positions", json={"user_id": "u1", "lat": 5, "lng": 5,
                                                    "observed_at": "2026-03-01T12:00:00Z"})
        assert r.status_code == 200
        assert r.json()["observed_at"] == "2026-03-01T12:00:00"
        asyncio.run(app.state.orchestrator.sync_once())
        assert two_zones.get("/api/v1/positions/u1").json()["status"] == "offline"

    def test_out_of_range_coordinates(self, client):
        r = client.post("/api/v1/positions", json={"user_id": "u1", "lat": 120, "lng": 0})
        assert r.status_code == 422

    def test_sos_and_removal(self, two_zones):
        two_zones.post("/api/v1/positions", json={"user_id": "u1", "lat": 5, "lng": 5})
        r = two_zones.put("/api/v1/positions/u1/sos", json={"sos": True})
        assert r.json()["sos"] is True
        assert [p["user_id"] for p in two_zones.get("/api/v1/positions/sos").json()] == ["u1"]

        assert two_zones.delete("/api/v1/positions/u1").status_code == 204
        r = two_zones.get("/api/v1/positions/u1")
        assert r.status_code == 404
        assert r.json()["error"] == "UserNotFound"


class TestRoutes:
    def test_route_over_adjacency(self, two_zones):
        r = two_zones.get("/api/v1/routes", params={"source": "zone-a", "destination": "zone-b"})
        assert r.status_code == 200
        assert r.json() == {
            "route": ["zone-a", "zone-b"],
            "congestion_level": "low",
            "alternative_route_available": False,
            "alternative_route": None,
            "congestion_unavoidable": False,
        }

    def test_congested_destination_is_unavoidable(self, two_zones):
        two_zones.post("/api/v1/positions", json={"user_id": "u1", "lat": 25, "lng": 25, "group_size": 4})
        data = two_zones.get("/api/v1/routes", params={"source": "zone-a", "destination": "zone-b"}).json()
        assert data["congestion_level"] == "high"
        assert data["congestion_unavoidable"] is True

    @pytest.mark.parametrize("source,destination", [("zone-a", "zone-a"), ("zone-a", "zone-z")])
    def test_invalid_endpoints(self, two_zones, source, destination):
        r = two_zones.get("/api/v1/routes", params={"source": source, "destination": destination})
        assert r.status_code == 422
        assert r.json()["error"] == "InvalidEndpoints"

    def test_alternatives_for_clear_route(self, two_zones):
        r = two_zones.post("/api/v1/routes/alternatives", json={"current_route": ["zone-a", "zone-b"]})
        assert r.status_code == 200
        assert r.json()["alternative_route_available"] is False


class TestAlerts:
    def test_broadcast_and_list(self, two_zones):
        r = two_zones.post("/api/v1/alerts", json={"message": "Gate A closing", "zone_id": "zone-a"})
        assert r.status_code == 201
        assert r.json()["alert_type"] == "broadcast"
        two_zones.post("/api/v1/alerts", json={"message": "Welcome"})

        alerts = two_zones.get("/api/v1/alerts", params={"zone_id": "zone-a"}).json()
        assert {a["message"] for a in alerts} == {"Gate A closing", "Welcome"}

        r = two_zones.put(f"/api/v1/alerts/{alerts[0]['id']}/resolve")
        assert r.json()["is_resolved"] == 1

    def test_broadcast_to_unknown_zone(self, client):
        r = client.post("/api/v1/alerts", json={"message": "hello", "zone_id": "zone-x"})
        assert r.status_code == 404

    def test_resolve_missing_alert(self, client):
        assert client.put("/api/v1/alerts/999/resolve").status_code == 404


def test_health(client):
    data = client.get("/api/v1/health").json()
    assert data["status"] == "ok"
    assert data["database"] == "ok"
    assert data["advisory"] == "disabled"
