"""
Tests for request authentication and role gating.

The first group drives the real token pipeline (JWKS served by
httpx.MockTransport); the second overrides get_auth_context to check the
role matrix on every mutating device endpoint.
"""

import json

import httpx
import pytest
import pytest_asyncio

from lorasim.core.jwks import JWKSCache
from lorasim.dependencies import get_jwks_cache
from lorasim.models.device import Device
from lorasim.models.profile import Profile, Role
from main import app

DEVICE_BODY = {
    "name": "cold-room-1",
    "dev_eui": "70B3D57ED0000001",
    "device_type": "temperature",
    "simulation_params": {"min_value": 35, "max_value": 45},
}


@pytest.fixture
def real_auth(jwks_server):
    cache = JWKSCache("https://idp.test/jwks.json", transport=jwks_server.transport)
    app.dependency_overrides[get_jwks_cache] = lambda: cache
    return cache


# ── Token pipeline ────────────────────────────────────────────────────────────

def _serve_jwks(handler) -> None:
    cache = JWKSCache("https://idp.test/jwks.json", transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_jwks_cache] = lambda: cache


@pytest.mark.asyncio
async def test_unreachable_key_set_is_service_unavailable(client, make_token):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    _serve_jwks(refuse)

    response = await client.get("/api/devices", headers={"Authorization": f"Bearer {make_token()}"})

    assert response.status_code == 503
    assert response.json() == {"detail": "Authentication service unavailable"}


@pytest.mark.asyncio
async def test_key_set_without_keys_is_service_unavailable(client, make_token):
    _serve_jwks(lambda request: httpx.Response(200, json={"error": "maintenance"}))

    response = await client.get("/api/devices", headers={"Authorization": f"Bearer {make_token()}"})

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client, real_auth):
    response = await client.get("/api/devices")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_bearer_token_accepted(client, real_auth, make_token):
    response = await client.get(
        "/api/devices", headers={"Authorization": f"Bearer {make_token()}"}
    )

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_stack_auth_header_fallback(client, real_auth, make_token):
    header = json.dumps({"accessToken": make_token()})

    response = await client.get("/api/devices", headers={"x-stack-auth": header})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_malformed_stack_auth_header_is_unauthorized(client, real_auth):
    response = await client.get("/api/devices", headers={"x-stack-auth": "{not json"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_audience_is_unauthorized(client, real_auth, make_token):
    token = make_token(audience="someone-else")

    response = await client.get("/api/devices", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"detail": "Could not validate credentials"}


@pytest.mark.asyncio
async def test_key_set_fetched_once_across_requests(client, real_auth, make_token, jwks_server):
    headers = {"Authorization": f"Bearer {make_token()}"}

    for _ in range(3):
        assert (await client.get("/api/devices", headers=headers)).status_code == 200

    assert jwks_server.calls == 1


@pytest.mark.asyncio
async def test_missing_profile_defaults_to_admin(client, real_auth, make_token, session_factory):
    token = make_token(sub="owner-1", organization_id=None)
    headers = {"Authorization": f"Bearer {token}"}

    created = await client.post("/api/devices", json=DEVICE_BODY, headers=headers)
    assert created.status_code == 201
    assert created.json()["organization_id"] == "owner-1"

    deleted = await client.delete(f"/api/devices/{created.json()['id']}", headers=headers)
    assert deleted.status_code == 200


@pytest.mark.asyncio
async def test_profile_role_is_used(client, real_auth, make_token, session_factory):
    async with session_factory() as db:
        db.add(Profile(id="viewer-1", role=Role.viewer.value))
        await db.commit()
    headers = {"Authorization": f"Bearer {make_token(sub='viewer-1')}"}

    listed = await client.get("/api/devices", headers=headers)
    created = await client.post("/api/devices", json=DEVICE_BODY, headers=headers)

    assert listed.status_code == 200
    assert created.status_code == 403


# ── Role matrix ───────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def device_id(session_factory):
    async with session_factory() as db:
        device = Device(
            organization_id="org-1",
            dev_eui="70B3D57ED0000002",
            name="freezer",
            device_type="temperature",
            simulation_params={},
        )
        db.add(device)
        await db.commit()
        return device.id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "role, create, update, delete",
    [
        (Role.viewer, 403, 403, 403),
        (Role.manager, 201, 200, 403),
        (Role.admin, 201, 200, 200),
    ],
)
async def test_role_matrix(client, login_as, device_id, role, create, update, delete):
    login_as(role)

    created = await client.post("/api/devices", json=DEVICE_BODY)
    updated = await client.put(f"/api/devices/{device_id}", json={"status": "inactive"})
    deleted = await client.delete(f"/api/devices/{device_id}")

    assert created.status_code == create
    assert updated.status_code == update
    assert deleted.status_code == delete


@pytest.mark.asyncio
async def test_viewer_cannot_simulate_or_save_settings(client, login_as, device_id):
    login_as(Role.viewer)

    simulate = await client.post(f"/api/ttn/simulate/{device_id}", json={})
    settings = await client.post(
        "/api/ttn-settings",
        json={"app_id": "my-app", "api_key": "NNSXS.KEY", "region": "eu1"},
    )

    assert simulate.status_code == 403
    assert settings.status_code == 403
