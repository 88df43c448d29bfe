"""
schemas/telemetry.py
--------------------
Telemetry responses and the inbound TTN uplink webhook body.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class TelemetryRead(BaseModel):
    id: str
    device_id: str
    payload: Dict[str, Any]
    frm_payload: Optional[str]
    rssi: Optional[float]
    snr: Optional[float]
    f_cnt: Optional[int]
    timestamp: datetime

    model_config = {"from_attributes": True}


# ── TTN v3 uplink (only the fields this service reads) ────────────────────────

class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow")


class EndDeviceIds(_Lenient):
    device_id: Optional[str] = None
    dev_eui: Optional[str] = None


class RxMetadata(_Lenient):
    rssi: Optional[float] = None
    snr: Optional[float] = None


class UplinkMessage(_Lenient):
    f_port: Optional[int] = None
    f_cnt: Optional[int] = None
    frm_payload: Optional[str] = None
    decoded_payload: Optional[Dict[str, Any]] = None
    rx_metadata: List[RxMetadata] = []


class TTNUplinkWebhook(_Lenient):
    end_device_ids: EndDeviceIds
    uplink_message: UplinkMessage
