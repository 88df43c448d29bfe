"""
core/jwks.py
------------
Cache for the identity provider's published JSON Web Key Set.

The key set is fetched lazily on first use and kept for ttl_seconds. Two
refresh paths exist:
  - expiry: the next lookup after the TTL refetches the set
  - rotation: a token whose `kid` is not in the cached set forces one
    refetch via refresh(), see core/security.py

Concurrent first requests may each trigger a fetch; the result is the same
key set either way, so no lock is taken.
"""

import time
from typing import Any, Callable, Dict, Optional

import httpx

from lorasim.core.exceptions import KeySetUnavailableError
from lorasim.core.logging import get_logger

logger = get_logger(__name__)


class JWKSCache:

    def __init__(
        self,
        url: str,
        ttl_seconds: int = 3600,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.ttl_seconds = ttl_seconds
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._key_set: Optional[Dict[str, Any]] = None
        self._fetched_at: float = 0.0

    @property
    def is_stale(self) -> bool:
        if self._key_set is None:
            return True
        return self._clock() - self._fetched_at >= self.ttl_seconds

    async def get_key_set(self) -> Dict[str, Any]:
        """Return the cached key set, fetching it if absent or expired."""
        if self.is_stale:
            return await self.refresh()
        return self._key_set  # type: ignore[return-value]

    async def refresh(self) -> Dict[str, Any]:
        """
        Fetch the key set unconditionally and replace the cached copy.

        Raises:
            KeySetUnavailableError: on transport failure, non-2xx status or a
                body that is not a JWKS document.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
                key_set = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("JWKS fetch failed", url=self.url, error=str(exc))
            raise KeySetUnavailableError(f"Could not fetch JWKS: {exc}") from exc

        if not isinstance(key_set, dict) or not isinstance(key_set.get("keys"), list):
            raise KeySetUnavailableError("JWKS response has no 'keys' array")

        self._key_set = key_set
        self._fetched_at = self._clock()
        logger.info("JWKS refreshed", url=self.url, keys=len(key_set["keys"]))
        return key_set

    def invalidate(self) -> None:
        """Drop the cached key set; the next lookup refetches it."""
        self._key_set = None
        self._fetched_at = 0.0
