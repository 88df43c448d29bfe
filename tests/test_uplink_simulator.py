"""
Tests for the uplink simulator, the TTN client, and the TTN routes.

TTN is replaced by an httpx.MockTransport so requests can be inspected.
"""

import json
import random
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy import func, select

from lorasim.core.exceptions import ExternalApiError
from lorasim.dependencies import get_ttn_client
from lorasim.models.device import Device
from lorasim.models.profile import Role
from lorasim.models.telemetry import Telemetry
from lorasim.models.ttn_settings import TTNSettings
from lorasim.schemas.reading import SensorReading
from lorasim.schemas.ttn import RadioOptions
from lorasim.services import payload_codec
from lorasim.services.ttn_client import TTNClient
from lorasim.services.uplink_simulator import UplinkSimulator
from main import app

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeTTN:
    """Records requests and answers with a canned status and body."""

    def __init__(self, status_code: int = 200, body: dict | None = None) -> None:
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> TTNClient:
        return TTNClient(url_template="https://{region}.cloud.thethings.network/api/v3", transport=self.transport)


def _simulator(ttn: FakeTTN, seed: int = 7) -> UplinkSimulator:
    return UplinkSimulator(ttn.client(), rng=random.Random(seed), clock=lambda: FIXED_NOW)


async def _seed(session_factory, organization_id: str = "org-1") -> tuple[Device, TTNSettings]:
    async with session_factory() as db:
        device = Device(
            organization_id=organization_id,
            dev_eui="70B3D57ED0000001",
            name="cold-room-1",
            device_type="temperature",
            simulation_params={"interval": 60, "min_value": 35, "max_value": 45},
        )
        settings = TTNSettings(
            organization_id=organization_id,
            app_id="acme-sensors",
            api_key="NNSXS.SECRETKEY1234",
            region="eu1",
        )
        db.add_all([device, settings])
        await db.commit()
        return device, settings


async def _telemetry(session_factory) -> list[Telemetry]:
    async with session_factory() as db:
        return list((await db.execute(select(Telemetry))).scalars().all())


# ── Envelope ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_envelope_is_deterministic_for_a_seed(session_factory):
    device, _ = await _seed(session_factory)
    reading = SensorReading(temperature=4.5, humidity=60.0, battery=2.4)

    first = _simulator(FakeTTN()).build_envelope(device, "acme-sensors", reading, RadioOptions())
    second = _simulator(FakeTTN()).build_envelope(device, "acme-sensors", reading, RadioOptions())

    assert first == second
    metadata = first["uplink_message"]["rx_metadata"][0]
    assert -90 <= metadata["rssi"] <= -60
    assert 5 <= metadata["snr"] <= 15
    assert metadata["gateway_ids"]["gateway_id"] == "simulated-gateway"
    assert first["end_device_ids"]["dev_eui"] == "70B3D57ED0000001"
    assert first["end_device_ids"]["application_ids"] == {"application_id": "acme-sensors"}
    assert first["uplink_message"]["received_at"] == FIXED_NOW.isoformat()


@pytest.mark.asyncio
async def test_envelope_frame_matches_decoded_payload(session_factory):
    device, _ = await _seed(session_factory)
    reading = SensorReading(temperature=-12.34, humidity=45.5, battery=2.5, door_open=True)

    envelope = _simulator(FakeTTN()).build_envelope(device, "acme-sensors", reading, RadioOptions())

    uplink = envelope["uplink_message"]
    assert uplink["decoded_payload"] == {
        "temperature": -12.34,
        "humidity": 45.5,
        "battery": 2.5,
        "door_open": True,
    }
    assert payload_codec.decode_base64(uplink["frm_payload"]) == reading


@pytest.mark.asyncio
async def test_radio_options_override_generated_metadata(session_factory):
    device, _ = await _seed(session_factory)
    options = RadioOptions.model_validate(
        {"fPort": 2, "fCnt": 41, "rssi": -101.5, "snr": -3.0, "spreadingFactor": 12, "frequency": "867.5"}
    )

    envelope = _simulator(FakeTTN()).build_envelope(device, "acme-sensors", SensorReading(), options)

    uplink = envelope["uplink_message"]
    assert uplink["f_port"] == 2
    assert uplink["f_cnt"] == 41
    assert uplink["rx_metadata"][0]["rssi"] == -101.5
    assert uplink["rx_metadata"][0]["snr"] == -3.0
    assert uplink["settings"]["data_rate"]["lora"]["spreading_factor"] == 12
    assert uplink["settings"]["frequency"] == "867.5"


@pytest.mark.asyncio
async def test_falsy_radio_overrides_are_kept(session_factory):
    device, _ = await _seed(session_factory)
    options = RadioOptions.model_validate({"bandwidth": 0, "frequency": ""})

    envelope = _simulator(FakeTTN()).build_envelope(device, "acme-sensors", SensorReading(), options)

    uplink = envelope["uplink_message"]
    assert uplink["settings"]["data_rate"]["lora"]["bandwidth"] == 0
    assert uplink["settings"]["frequency"] == ""
    assert uplink["f_port"] == 1


# ── simulate() ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_simulate_pushes_uplink_and_stores_telemetry(session_factory):
    device, ttn_settings = await _seed(session_factory)
    ttn = FakeTTN()

    async with session_factory() as db:
        result = await _simulator(ttn).simulate(db, device, ttn_settings)
        await db.commit()

    assert result.success is True
    assert result.message == "Uplink sent to TTN successfully"

    [request] = ttn.requests
    assert request.method == "POST"
    assert str(request.url) == (
        "https://eu1.cloud.thethings.network/api/v3/as/applications/acme-sensors"
        "/webhooks/emulator/devices/cold-room-1/up"
    )
    assert request.headers["Authorization"] == "Bearer NNSXS.SECRETKEY1234"
    sent = json.loads(request.content)
    uplink = sent["uplink_message"]
    decoded = payload_codec.decode_base64(uplink["frm_payload"])
    assert 35 <= decoded.temperature <= 45
    assert decoded.humidity is not None
    assert uplink["decoded_payload"] == result.payload

    [row] = await _telemetry(session_factory)
    assert row.device_id == device.id
    assert row.payload == result.payload
    assert row.frm_payload == uplink["frm_payload"]
    assert row.rssi == uplink["rx_metadata"][0]["rssi"]
    assert row.snr == uplink["rx_metadata"][0]["snr"]
    assert row.f_cnt == uplink["f_cnt"]


@pytest.mark.asyncio
async def test_simulate_uses_supplied_payload(session_factory):
    device, ttn_settings = await _seed(session_factory)
    reading = SensorReading(temperature=2.0, door_open=False)

    async with session_factory() as db:
        result = await _simulator(FakeTTN()).simulate(db, device, ttn_settings, payload=reading)

    assert result.payload == {"temperature": 2.0, "door_open": False}


@pytest.mark.asyncio
async def test_ttn_rejection_is_a_structured_failure(session_factory):
    device, ttn_settings = await _seed(session_factory)
    ttn = FakeTTN(status_code=403, body={"message": "insufficient rights"})

    async with session_factory() as db:
        result = await _simulator(ttn).simulate(db, device, ttn_settings)
        await db.commit()

    assert result.success is False
    assert result.error == "Failed to send uplink to TTN"
    assert result.details == "insufficient rights"
    assert result.status == 403
    assert await _telemetry(session_factory) == []


@pytest.mark.asyncio
async def test_transport_error_is_a_structured_failure(session_factory):
    device, ttn_settings = await _seed(session_factory)

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = TTNClient(transport=httpx.MockTransport(refuse))
    simulator = UplinkSimulator(client, rng=random.Random(1), clock=lambda: FIXED_NOW)

    async with session_factory() as db:
        result = await simulator.simulate(db, device, ttn_settings)

    assert result.success is False
    assert result.status is None
    assert "connection refused" in result.details
    assert await _telemetry(session_factory) == []


@pytest.mark.asyncio
async def test_client_raises_with_status_and_message():
    ttn = FakeTTN(status_code=401, body={"error": "token expired"})

    with pytest.raises(ExternalApiError) as excinfo:
        await ttn.client().get_application("eu1", "acme-sensors", "bad-key")

    assert excinfo.value.status_code == 401
    assert excinfo.value.details == "token expired"
    assert str(ttn.requests[0].url) == (
        "https://eu1.cloud.thethings.network/api/v3/applications/acme-sensors"
    )


# ── Routes ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_simulate_route(client, session_factory, login_as):
    device, _ = await _seed(session_factory)
    ttn = FakeTTN()
    app.dependency_overrides[get_ttn_client] = ttn.client
    login_as(Role.manager)

    response = await client.post(
        f"/api/ttn/simulate/{device.id}",
        json={"options": {"fCnt": 9, "rssi": -70}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "error" not in body
    [row] = await _telemetry(session_factory)
    assert row.f_cnt == 9
    assert row.rssi == -70


@pytest.mark.asyncio
async def test_simulate_route_without_body(client, session_factory, login_as):
    device, _ = await _seed(session_factory)
    app.dependency_overrides[get_ttn_client] = FakeTTN().client
    login_as(Role.admin)

    response = await client.post(f"/api/ttn/simulate/{device.id}")

    assert response.status_code == 200
    assert response.json()["success"] is True


@pytest.mark.asyncio
async def test_simulate_route_ttn_failure_is_200(client, session_factory, login_as):
    device, _ = await _seed(session_factory)
    app.dependency_overrides[get_ttn_client] = FakeTTN(status_code=404, body={"message": "no such app"}).client
    login_as(Role.admin)

    response = await client.post(f"/api/ttn/simulate/{device.id}", json={})

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "error": "Failed to send uplink to TTN",
        "details": "no such app",
        "status": 404,
    }


@pytest.mark.asyncio
async def test_simulate_route_other_org_device_not_found(client, session_factory, login_as):
    device, _ = await _seed(session_factory, organization_id="org-2")
    app.dependency_overrides[get_ttn_client] = FakeTTN().client
    login_as(Role.admin, organization_id="org-1")

    response = await client.post(f"/api/ttn/simulate/{device.id}", json={})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_simulate_route_requires_ttn_settings(client, session_factory, login_as):
    async with session_factory() as db:
        device = Device(organization_id="org-1", dev_eui="70B3D57ED0000002", name="d", device_type="door")
        db.add(device)
        await db.commit()
    app.dependency_overrides[get_ttn_client] = FakeTTN().client
    login_as(Role.admin)

    response = await client.post(f"/api/ttn/simulate/{device.id}", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "TTN settings not configured"


@pytest.mark.asyncio
async def test_connection_test_success(client, login_as):
    ttn = FakeTTN(body={"ids": {"application_id": "acme-sensors"}, "name": "Acme", "description": "EU"})
    app.dependency_overrides[get_ttn_client] = ttn.client
    login_as(Role.viewer)

    response = await client.post(
        "/api/ttn-settings/test",
        json={"app_id": "acme-sensors", "api_key": "NNSXS.KEY", "region": "eu1"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "application": {"id": "acme-sensors", "name": "Acme", "description": "EU"},
    }


@pytest.mark.asyncio
async def test_connection_test_failure_is_200(client, login_as):
    app.dependency_overrides[get_ttn_client] = FakeTTN(status_code=401, body={"message": "bad key"}).client
    login_as(Role.viewer)

    response = await client.post(
        "/api/ttn-settings/test",
        json={"app_id": "acme-sensors", "api_key": "wrong", "region": "eu1"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "error": "Authentication failed",
        "details": "bad key",
        "status": 401,
    }


@pytest.mark.asyncio
async def test_connection_test_rejects_unknown_region(client, login_as):
    login_as(Role.admin)

    response = await client.post(
        "/api/ttn-settings/test",
        json={"app_id": "acme-sensors", "api_key": "k", "region": "mars1"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_settings_round_trip_hides_api_key(client, session_factory, login_as):
    login_as(Role.manager)

    saved = await client.post(
        "/api/ttn-settings",
        json={"app_id": "acme-sensors", "api_key": "NNSXS.ABCDWXYZ", "region": "nam1"},
    )
    fetched = await client.get("/api/ttn-settings")

    assert saved.status_code == 200
    assert fetched.json()["api_key_last4"] == "WXYZ"
    assert "api_key" not in fetched.json()
    assert fetched.json()["region"] == "nam1"
    async with session_factory() as db:
        assert (await db.execute(select(func.count(TTNSettings.id)))).scalar_one() == 1
