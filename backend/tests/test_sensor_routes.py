from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient

from app.dependencies import get_telemetry
from app.main import app
from app.schemas.auth import VILLAGER_ROLE, SessionClaims
from app.services.telemetry_service import TelemetryService


def _register(client, admin_headers, dev_eui, name, phone=None):
    payload = {"devEUI": dev_eui, "deviceName": name, "village": "Rampur", "panchayat": "Rampur GP"}
    if phone:
        payload["phone"] = phone
    r = client.post("/api/sensors", headers=admin_headers, json=payload)
    assert r.status_code == 201, r.json()
    return r.json()


def test_sensor_writes_require_admin(client, villager_headers):
    r = client.post("/api/sensors", json={"devEUI": "A1", "deviceName": "Soil 1"})
    assert r.status_code == 401
    r = client.post("/api/sensors", headers=villager_headers, json={"devEUI": "A1", "deviceName": "Soil 1"})
    assert r.status_code == 403


def test_register_and_map_to_villager(client, admin_headers, villager):
    body = _register(client, admin_headers, "A1", "Soil 1", phone=villager.phone)
    assert body["message"] == "Sensor registered and mapped to villager"
    assert body["sensor"]["phone"] == villager.phone
    assert body["sensor"]["villager_name"] == villager.name


def test_register_with_unknown_phone(client, admin_headers):
    r = client.post("/api/sensors", headers=admin_headers, json={"devEUI": "A1", "deviceName": "Soil 1", "phone": "9000000000"})
    assert r.status_code == 404
    assert client.get("/api/sensors/A1").status_code == 404


def test_duplicate_sensor_conflicts(client, admin_headers):
    _register(client, admin_headers, "A1", "Soil 1")
    r = client.post("/api/sensors", headers=admin_headers, json={"devEUI": "A1", "deviceName": "Again"})
    assert r.status_code == 409


def test_required_sensor_fields(client, admin_headers):
    r = client.post("/api/sensors", headers=admin_headers, json={"devEUI": "", "deviceName": "Soil"})
    assert r.status_code == 400
    assert r.json()["error"] == "devEUI and deviceName are required"


def test_public_listing_decorates_status(client, admin_headers, telemetry):
    _register(client, admin_headers, "A1", "Soil 1")
    _register(client, admin_headers, "B2", "Water 1")
    _register(client, admin_headers, "C3", "Air 1")
    telemetry.record("A1", seconds_ago=5, field="moisture", value=40)
    telemetry.record("B2", seconds_ago=120, field="level", value=3.2)

    r = client.get("/api/sensors")
    assert r.status_code == 200
    body = r.json()
    assert body["role"] == "guest"
    assert body["count"] == 3
    by_id = {s["devEUI"]: s for s in body["sensors"]}
    assert by_id["A1"]["status"] == "Live"
    assert by_id["A1"]["measurement"] == "moisture: 40"
    assert by_id["B2"]["status"] == "Offline"
    assert by_id["C3"]["status"] == "Offline"
    assert by_id["C3"]["measurement"] == "No data"
    assert by_id["C3"]["time"] is None
    # One telemetry lookup per sensor
    assert sorted(telemetry.queries) == ["A1", "B2", "C3"]


def test_bad_token_is_not_treated_as_guest(client):
    r = client.get("/api/sensors", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


def test_villager_sees_only_own_sensors(client, admin_headers, villager, villager_headers):
    _register(client, admin_headers, "A1", "Soil 1", phone=villager.phone)
    _register(client, admin_headers, "B2", "Water 1")

    r = client.get("/api/sensors", headers=villager_headers)
    body = r.json()
    assert body["role"] == "villager"
    assert [s["devEUI"] for s in body["sensors"]] == ["A1"]
    assert body["sensors"][0]["isMine"] is True

    assert client.get("/api/sensors/A1", headers=villager_headers).status_code == 200
    other = client.get("/api/sensors/B2", headers=villager_headers)
    assert other.status_code == 404
    assert other.json()["error"] == "Sensor not found or not mapped to you"


def test_my_sensors(client, admin_headers, villager, villager_headers, telemetry):
    _register(client, admin_headers, "A1", "Soil 1", phone=villager.phone)
    telemetry.record("A1", seconds_ago=1, field="temperature", value=31)

    r = client.get("/api/my-sensors", headers=villager_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["villager"]["aadhaar"] == villager.aadhaar
    assert body["count"] == 1
    sensor = body["sensors"][0]
    assert (sensor["field"], sensor["value"], sensor["status"]) == ("temperature", 31, "Live")
    assert body["message"] == "You have 1 sensor(s)"


def test_my_sensors_is_villager_only(client, admin_headers):
    assert client.get("/api/my-sensors").status_code == 401
    assert client.get("/api/my-sensors", headers=admin_headers).status_code == 403


def test_get_single_sensor_with_owner(client, admin_headers, villager):
    _register(client, admin_headers, "A1", "Soil 1", phone=villager.phone)
    r = client.get("/api/sensors/A1")
    assert r.status_code == 200
    sensor = r.json()["sensor"]
    assert sensor["devEUI"] == "A1"
    assert sensor["aadhaar"] == villager.aadhaar
    assert sensor["status"] == "Offline"


def test_update_remaps_and_delete(client, admin_headers, villager):
    _register(client, admin_headers, "A1", "Soil 1", phone=villager.phone)

    r = client.put("/api/sensors/A1", headers=admin_headers, json={"deviceName": "Soil North", "village": "Rampur"})
    assert r.status_code == 200
    sensor = r.json()["sensor"]
    assert sensor["name"] == "Soil North"
    assert sensor["phone"] is None

    r = client.put("/api/sensors/A1", headers=admin_headers, json={"deviceName": "Soil North", "phone": villager.phone})
    assert r.json()["sensor"]["phone"] == villager.phone

    assert client.delete("/api/sensors/A1", headers=admin_headers).status_code == 200
    assert client.delete("/api/sensors/A1", headers=admin_headers).status_code == 404
    assert client.put("/api/sensors/A1", headers=admin_headers, json={"deviceName": "X"}).status_code == 404


def test_dashboard(client, admin_headers, villager, villager_headers, telemetry):
    _register(client, admin_headers, "A1", "Soil 1", phone=villager.phone)
    _register(client, admin_headers, "B2", "Water 1")
    telemetry.record("A1", seconds_ago=2)
    telemetry.record("B2", seconds_ago=90)

    assert client.get("/api/admin/dashboard", headers=villager_headers).status_code == 403

    r = client.get("/api/admin/dashboard", headers=admin_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["statistics"] == {
        "totalVillagers": 1,
        "totalSensors": 2,
        "activeSensors": 1,
        "totalVillages": 1,
    }
    assert data["recentVillagers"][0]["aadhaar_number"] == villager.aadhaar
    statuses = {s["devEUI"]: s["status"] for s in data["recentSensors"]}
    assert statuses == {"A1": "Live", "B2": "Offline"}


def test_debug_routes_are_admin_only(client, admin_headers, villager, villager_headers, telemetry):
    _register(client, admin_headers, "A1", "Soil 1", phone=villager.phone)
    telemetry.record("A1", seconds_ago=1)

    assert client.get("/api/debug/telemetry", headers=villager_headers).status_code == 403
    raw = client.get("/api/debug/telemetry", headers=admin_headers).json()
    assert raw["count"] == 1

    mappings = client.get(f"/api/debug/sensor-mappings/{villager.id}", headers=admin_headers).json()
    assert mappings["mappings"][0]["devEUI"] == "A1"


class _UnreachableInflux:
    def query_api(self):
        return self

    def query(self, flux, org=None, params=None):
        raise ConnectionError("connection refused: influx.internal:8086")


def test_telemetry_outage_is_upstream_error(client, admin_headers):
    _register(client, admin_headers, "A1", "Soil 1")
    app.dependency_overrides[get_telemetry] = lambda: TelemetryService(_UnreachableInflux(), org="org", bucket="sensors")

    r = client.get("/api/sensors")
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Telemetry store unavailable", "code": "upstream_error"}
    assert "influx.internal" not in r.text


class _CrashingTelemetry:
    async def latest_sample(self, dev_eui):
        raise RuntimeError("unexpected reading format")


def test_unexpected_error_is_internal_error(client, admin_headers):
    _register(client, admin_headers, "A1", "Soil 1")
    app.dependency_overrides[get_telemetry] = lambda: _CrashingTelemetry()

    r = TestClient(app, raise_server_exceptions=False).get("/api/sensors")
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Internal server error", "code": "internal_error"}


def test_villager_token_without_villager_id_is_invalid(client, sessions, clock):
    token = sessions.codec.encode(SessionClaims(
        role=VILLAGER_ROLE,
        subject="9876543210",
        issued_at=clock(),
        expires_at=clock() + timedelta(hours=1),
    ))
    r = client.get("/api/my-sensors", headers={"Authorization": token})
    assert r.status_code == 401
    assert r.json()["code"] == "invalid_token"
