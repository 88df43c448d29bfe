"""Tests for device CRUD scoping and the typed update patch."""

from datetime import datetime, timedelta, timezone

import pytest

from lorasim.models.profile import Role
from lorasim.models.telemetry import Telemetry

DEVICE_BODY = {
    "name": "cold-room-1",
    "dev_eui": "70b3d57ed0000001",
    "device_type": "temperature",
    "simulation_params": {"interval": 30, "min_value": 2, "max_value": 8},
}


async def _create(client, **overrides):
    response = await client.post("/api/devices", json={**DEVICE_BODY, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_normalises_dev_eui_and_hides_app_key(client, login_as):
    login_as(Role.admin)

    device = await _create(client, app_key="00112233445566778899aabbccddeeff")

    assert device["dev_eui"] == "70B3D57ED0000001"
    assert device["organization_id"] == "org-1"
    assert device["status"] == "active"
    assert device["simulation_params"] == {"interval": 30, "min_value": 2.0, "max_value": 8.0}
    assert "app_key" not in device


@pytest.mark.asyncio
@pytest.mark.parametrize("dev_eui", ["70B3D57ED000000", "70B3D57ED000000G", ""])
async def test_invalid_dev_eui_rejected(client, login_as, dev_eui):
    login_as(Role.admin)

    response = await client.post("/api/devices", json={**DEVICE_BODY, "dev_eui": dev_eui})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_dev_eui_conflicts_across_organisations(client, login_as):
    login_as(Role.admin, organization_id="org-1")
    await _create(client)

    login_as(Role.admin, organization_id="org-2")
    response = await client.post("/api/devices", json=DEVICE_BODY)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_devices_are_scoped_to_organisation(client, login_as):
    login_as(Role.admin, organization_id="org-1")
    device = await _create(client)

    login_as(Role.admin, organization_id="org-2")
    assert (await client.get("/api/devices")).json() == []
    assert (await client.put(f"/api/devices/{device['id']}", json={"name": "x"})).status_code == 404
    assert (await client.delete(f"/api/devices/{device['id']}")).status_code == 404
    assert (await client.get(f"/api/devices/{device['id']}/telemetry")).status_code == 404

    login_as(Role.admin, organization_id="org-1")
    assert [d["id"] for d in (await client.get("/api/devices")).json()] == [device["id"]]


@pytest.mark.asyncio
async def test_update_applies_only_sent_fields(client, login_as):
    login_as(Role.manager)
    device = await _create(client)

    response = await client.put(
        f"/api/devices/{device['id']}",
        json={"status": "error", "simulation_params": {"min_value": 30, "max_value": 40}},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "error"
    assert body["name"] == "cold-room-1"
    assert body["simulation_params"]["min_value"] == 30


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "patch",
    [
        {"organization_id": "org-2"},
        {"dev_eui": "70B3D57ED0000009"},
        {"status": "exploded"},
        {"id": "other"},
    ],
)
async def test_update_rejects_fields_outside_allow_list(client, login_as, patch):
    login_as(Role.admin)
    device = await _create(client)

    response = await client.put(f"/api/devices/{device['id']}", json=patch)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_telemetry_listed_newest_first(client, login_as, session_factory):
    login_as(Role.admin)
    device = await _create(client)
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    async with session_factory() as db:
        for minutes in (0, 10, 5):
            db.add(
                Telemetry(
                    device_id=device["id"],
                    payload={"temperature": float(minutes)},
                    rssi=-70,
                    snr=9.0,
                    timestamp=base + timedelta(minutes=minutes),
                )
            )
        await db.commit()

    response = await client.get(f"/api/devices/{device['id']}/telemetry", params={"limit": 2})

    temperatures = [row["payload"]["temperature"] for row in response.json()]
    assert response.status_code == 200
    assert temperatures == [10.0, 5.0]
