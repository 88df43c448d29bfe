"""
core/security.py
----------------
Identity-token verification and webhook signature utilities.

Design decisions:
  - Tokens are issued by Stack Auth and verified against its published JWKS
    (asymmetric keys), checking issuer and audience. No shared secret is held.
  - Webhook signatures are HMAC-SHA256 over the exact raw request bytes.
    Never verify against a re-serialised body: whitespace or key order
    changes break the MAC.
  - Signature comparison is constant-time (hmac.compare_digest).
"""

import hashlib
import hmac
from typing import Any, Dict, Iterable, Optional, Union

from jose import JWTError, jwt

from lorasim.core.jwks import JWKSCache

SIGNATURE_PREFIX = "sha256="


# ── Webhook Signatures ────────────────────────────────────────────────────────

def _as_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compute_signature(raw_body: bytes, secret: Union[str, bytes]) -> str:
    """Return the header value a sender would attach to raw_body."""
    digest = hmac.new(_as_bytes(secret), raw_body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(
    signature_header: Optional[str],
    raw_body: bytes,
    secret: Union[str, bytes],
) -> bool:
    """
    Check an `X-FrostGuard-Signature: sha256=<hex>` header against raw_body.

    Fails closed: a missing header, a header without the sha256= prefix or an
    empty secret all return False.
    """
    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False
    if not secret:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(
        signature_header.encode("utf-8"), expected.encode("utf-8")
    )


# ── Identity Tokens ───────────────────────────────────────────────────────────

def _select_keys(key_set: Dict[str, Any], kid: Optional[str]) -> Optional[Dict[str, Any]]:
    """Narrow a JWKS to the key named by kid. None means kid is unknown."""
    if kid is None:
        return key_set
    matching = [k for k in key_set.get("keys", []) if k.get("kid") == kid]
    if not matching:
        return None
    return {"keys": matching}


async def decode_identity_token(
    token: str,
    jwks: JWKSCache,
    *,
    issuer: str,
    audience: str,
    algorithms: Iterable[str],
) -> Dict[str, Any]:
    """
    Verify a bearer token's signature, issuer and audience.

    A kid missing from the cached key set triggers one forced refresh so
    rotated keys are picked up without waiting for the TTL.

    Raises:
        JWTError: If the token is malformed, expired, signed by an unknown
            key, or carries the wrong issuer / audience.
        KeySetUnavailableError: If the key set cannot be fetched.
    """
    kid = jwt.get_unverified_header(token).get("kid")

    keys = _select_keys(await jwks.get_key_set(), kid)
    if keys is None:
        keys = _select_keys(await jwks.refresh(), kid)
    if keys is None:
        raise JWTError(f"No signing key matches kid '{kid}'")

    return jwt.decode(
        token,
        keys,
        algorithms=list(algorithms),
        audience=audience,
        issuer=issuer,
    )


def extract_organization_id(claims: Dict[str, Any]) -> str:
    """
    Organisation of the caller: client_metadata.organizationId, or the
    subject itself for users not affiliated with any organisation.
    """
    metadata = claims.get("client_metadata") or {}
    if isinstance(metadata, dict) and metadata.get("organizationId"):
        return str(metadata["organizationId"])
    return str(claims["sub"])
