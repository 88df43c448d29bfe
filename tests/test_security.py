"""Tests for webhook signatures, the JWKS cache and identity-token decoding."""

import hashlib
import hmac

import httpx
import pytest
from jose import JWTError

from lorasim.core.config import get_settings
from lorasim.core.exceptions import KeySetUnavailableError
from lorasim.core.jwks import JWKSCache
from lorasim.core.security import (
    compute_signature,
    decode_identity_token,
    extract_organization_id,
    verify_signature,
)

SECRET = "whsec_unit"
BODY = b'{"event_type": "organization.updated", "event_id": "evt_1", "data": {}}'


# ── Signatures ────────────────────────────────────────────────────────────────

def test_signature_matches_hmac_sha256_hex():
    expected = "sha256=" + hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()

    assert compute_signature(BODY, SECRET) == expected
    assert verify_signature(expected, BODY, SECRET) is True


def test_any_body_byte_mutation_fails():
    signature = compute_signature(BODY, SECRET)

    for i in range(len(BODY)):
        mutated = BODY[:i] + bytes([BODY[i] ^ 0x01]) + BODY[i + 1:]
        assert verify_signature(signature, mutated, SECRET) is False


def test_any_secret_byte_mutation_fails():
    signature = compute_signature(BODY, SECRET)
    secret = SECRET.encode()

    for i in range(len(secret)):
        mutated = secret[:i] + bytes([secret[i] ^ 0x01]) + secret[i + 1:]
        assert verify_signature(signature, BODY, mutated) is False


def test_reserialised_body_fails():
    signature = compute_signature(BODY, SECRET)
    compact = BODY.replace(b": ", b":").replace(b", ", b",")

    assert verify_signature(signature, compact, SECRET) is False


@pytest.mark.parametrize(
    "header",
    [None, "", "sha1=abc", hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()],
)
def test_missing_or_unprefixed_header_fails_closed(header):
    assert verify_signature(header, BODY, SECRET) is False


def test_empty_secret_fails_closed():
    assert verify_signature(compute_signature(BODY, ""), BODY, "") is False


# ── JWKS cache ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_jwks_fetched_lazily_and_cached(jwks_server):
    cache = JWKSCache("https://idp.test/jwks.json", transport=jwks_server.transport)
    assert jwks_server.calls == 0

    first = await cache.get_key_set()
    second = await cache.get_key_set()

    assert first is second
    assert jwks_server.calls == 1


@pytest.mark.asyncio
async def test_jwks_refetched_after_ttl(jwks_server):
    now = [1000.0]
    cache = JWKSCache(
        "https://idp.test/jwks.json",
        ttl_seconds=60,
        transport=jwks_server.transport,
        clock=lambda: now[0],
    )

    await cache.get_key_set()
    now[0] += 59
    await cache.get_key_set()
    assert jwks_server.calls == 1

    now[0] += 1
    await cache.get_key_set()
    assert jwks_server.calls == 2


@pytest.mark.asyncio
async def test_jwks_invalidate_forces_refetch(jwks_server):
    cache = JWKSCache("https://idp.test/jwks.json", transport=jwks_server.transport)
    await cache.get_key_set()

    cache.invalidate()
    await cache.get_key_set()

    assert jwks_server.calls == 2


@pytest.mark.asyncio
async def test_jwks_fetch_failure_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    cache = JWKSCache("https://idp.test/jwks.json", transport=transport)

    with pytest.raises(KeySetUnavailableError):
        await cache.get_key_set()


# ── Identity tokens ───────────────────────────────────────────────────────────

def _decode(token, cache):
    settings = get_settings()
    return decode_identity_token(
        token,
        cache,
        issuer=settings.token_issuer,
        audience=settings.token_audience,
        algorithms=["RS256"],
    )


@pytest.mark.asyncio
async def test_valid_token_decodes(make_token, jwks_server):
    cache = JWKSCache("https://idp.test/jwks.json", transport=jwks_server.transport)

    claims = await _decode(make_token(sub="user-42", organization_id="org-9"), cache)

    assert claims["sub"] == "user-42"
    assert extract_organization_id(claims) == "org-9"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"issuer": "https://evil.example/projects/test-project"},
        {"audience": "another-project"},
        {"expires_in": -60},
    ],
)
async def test_wrong_issuer_audience_or_expired_token_rejected(make_token, jwks_server, overrides):
    cache = JWKSCache("https://idp.test/jwks.json", transport=jwks_server.transport)

    with pytest.raises(JWTError):
        await _decode(make_token(**overrides), cache)


@pytest.mark.asyncio
async def test_unknown_kid_refreshes_once_then_fails(make_token, jwks_server):
    cache = JWKSCache("https://idp.test/jwks.json", transport=jwks_server.transport)

    with pytest.raises(JWTError):
        await _decode(make_token(kid="rotated-away"), cache)

    assert jwks_server.calls == 2


@pytest.mark.asyncio
async def test_tampered_token_rejected(make_token, jwks_server):
    cache = JWKSCache("https://idp.test/jwks.json", transport=jwks_server.transport)
    header, payload, signature = make_token().split(".")
    tampered = ".".join([header, payload, signature[:-4] + ("AAAA" if signature[-4:] != "AAAA" else "BBBB")])

    with pytest.raises(JWTError):
        await _decode(tampered, cache)


def test_organization_defaults_to_subject():
    assert extract_organization_id({"sub": "solo-user"}) == "solo-user"
    assert extract_organization_id({"sub": "u", "client_metadata": {}}) == "u"
    assert extract_organization_id({"sub": "u", "client_metadata": {"organizationId": "o"}}) == "o"
