"""
dependencies.py
---------------
FastAPI dependency injection functions for authentication and authorisation.

Flow:
  1. extract_access_token reads `Authorization: Bearer <token>`, falling back
     to Stack Auth's `x-stack-auth: {"accessToken": "..."}` header.
  2. decode_identity_token verifies the token against the cached JWKS,
     checking issuer and audience.
  3. get_auth_context derives the organisation from the token and loads the
     caller's role from their profile row.
  4. require_editor / require_admin layer role checks on top.

Failures return minimal detail: 401 for anything wrong with the token,
403 for an insufficient role.
"""

import json
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.config import Settings, get_settings
from lorasim.core.exceptions import KeySetUnavailableError
from lorasim.core.jwks import JWKSCache
from lorasim.core.logging import bind_context, get_logger
from lorasim.core.security import decode_identity_token, extract_organization_id
from lorasim.db.session import get_db
from lorasim.models.profile import Profile, Role
from lorasim.schemas.auth import AuthContext
from lorasim.services.ttn_client import TTNClient

logger = get_logger(__name__)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


# ── Shared collaborators ──────────────────────────────────────────────────────

@lru_cache()
def get_jwks_cache() -> JWKSCache:
    """Process-wide key-set cache. Override in tests."""
    settings = get_settings()
    return JWKSCache(settings.jwks_url, ttl_seconds=settings.JWKS_CACHE_TTL_SECONDS)


def get_ttn_client() -> TTNClient:
    return TTNClient()


# ── Authentication ────────────────────────────────────────────────────────────

def extract_access_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return token

    stack_header = request.headers.get("x-stack-auth")
    if stack_header:
        try:
            token = json.loads(stack_header).get("accessToken")
        except (ValueError, AttributeError):
            logger.warning("Malformed x-stack-auth header")
            return None
        if isinstance(token, str) and token:
            return token
    return None


async def lookup_role(db: AsyncSession, user_id: str, default: Role) -> Role:
    result = await db.execute(select(Profile.role).where(Profile.id == user_id))
    role = result.scalar_one_or_none()
    if not role:
        logger.warning("No profile row, applying default role", user_id=user_id, role=default.value)
        return default
    return Role(role)


async def get_auth_context(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    jwks: Annotated[JWKSCache, Depends(get_jwks_cache)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthContext:
    """
    Verify the caller's identity token and build their AuthContext.
    Raises 401 if the token is missing or invalid, 503 if the key set
    cannot be fetched.
    """
    token = extract_access_token(request)
    if token is None:
        raise _CREDENTIALS_EXCEPTION

    try:
        claims = await decode_identity_token(
            token,
            jwks,
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            algorithms=settings.JWT_ALGORITHMS,
        )
    except JWTError as exc:
        logger.warning("Token verification failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION
    except KeySetUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        )

    user_id = claims.get("sub")
    if not user_id:
        logger.warning("Token has no subject")
        raise _CREDENTIALS_EXCEPTION

    organization_id = extract_organization_id(claims)
    bind_context(user_id=user_id, organization_id=organization_id)
    role = await lookup_role(db, user_id, Role(settings.AUTH_MISSING_PROFILE_ROLE))
    return AuthContext(user_id=user_id, organization_id=organization_id, role=role)


# ── Authorisation ─────────────────────────────────────────────────────────────

async def require_editor(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    """Any mutating operation: admin or manager."""
    if not auth.can_write:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return auth


async def require_admin(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    """Destructive operations."""
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return auth
