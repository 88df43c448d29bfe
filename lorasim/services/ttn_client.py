"""
services/ttn_client.py
----------------------
Thin async client for The Things Network v3 HTTP API.

Only two calls are needed: fetching an application (connection test) and
pushing a simulated uplink. Any non-2xx response or transport error is raised
as ExternalApiError carrying TTN's own message; callers decide whether to
surface it as an exception or as a structured result.
"""

import json
from typing import Any, Dict, Optional

import httpx

from lorasim.core.config import settings
from lorasim.core.exceptions import ExternalApiError
from lorasim.core.logging import get_logger

logger = get_logger(__name__)


def _error_details(response: httpx.Response) -> str:
    """Prefer TTN's JSON `message` / `error`, fall back to the raw text."""
    text = response.text
    try:
        body = json.loads(text)
    except ValueError:
        return text or "TTN API request failed"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or text)
    return text


class TTNClient:

    def __init__(
        self,
        url_template: str = settings.TTN_API_URL_TEMPLATE,
        timeout: float = settings.TTN_API_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url_template = url_template
        self.timeout = timeout
        self._transport = transport

    def base_url(self, region: str) -> str:
        return self.url_template.format(region=region)

    def uplink_url(self, region: str, app_id: str, device_id: str) -> str:
        return (
            f"{self.base_url(region)}/as/applications/{app_id}"
            f"/webhooks/emulator/devices/{device_id}/up"
        )

    async def _request(
        self,
        method: str,
        url: str,
        api_key: str,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=headers, json=json_body)
        except httpx.RequestError as exc:
            logger.error("TTN request failed", url=url, error=str(exc))
            raise ExternalApiError("Connection failed", details=str(exc)) from exc

        if response.is_error:
            details = _error_details(response)
            logger.warning(
                "TTN returned an error",
                url=url,
                status=response.status_code,
                details=details,
            )
            raise ExternalApiError(
                "TTN API request failed",
                status_code=response.status_code,
                details=details,
            )
        return response

    async def get_application(self, region: str, app_id: str, api_key: str) -> Dict[str, Any]:
        url = f"{self.base_url(region)}/applications/{app_id}"
        response = await self._request("GET", url, api_key)
        return response.json()

    async def send_uplink(
        self,
        region: str,
        app_id: str,
        device_id: str,
        api_key: str,
        envelope: Dict[str, Any],
    ) -> None:
        url = self.uplink_url(region, app_id, device_id)
        await self._request("POST", url, api_key, json_body=envelope)
        logger.info("Uplink submitted to TTN", app_id=app_id, device_id=device_id)
