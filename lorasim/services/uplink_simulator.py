"""
services/uplink_simulator.py
----------------------------
Simulated uplinks: generate (or accept) a reading, wrap it in a TTN v3
uplink envelope, push it to TTN, and on success store it as telemetry.

TTN failures never escape simulate(): ExternalApiError is converted to a
SimulationResult with success=False here, at the boundary, so the route can
return it as-is.
"""

import random
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.exceptions import ExternalApiError
from lorasim.core.logging import get_logger
from lorasim.db.base import utcnow
from lorasim.models.device import Device
from lorasim.models.telemetry import Telemetry
from lorasim.models.ttn_settings import TTNSettings
from lorasim.schemas.device import SimulationParams
from lorasim.schemas.reading import SensorReading
from lorasim.schemas.ttn import RadioOptions, SimulationResult
from lorasim.services import payload_codec
from lorasim.services.reading_generator import ReadingGenerator
from lorasim.services.ttn_client import TTNClient

logger = get_logger(__name__)

SIMULATED_GATEWAY_ID = "simulated-gateway"
SIMULATED_GATEWAY_EUI = "AA555A0000000000"

RSSI_RANGE = (-90.0, -60.0)
SNR_RANGE = (5.0, 15.0)
DEFAULT_FREQUENCY = "868.1"
DEFAULT_SPREADING_FACTOR = 7
DEFAULT_BANDWIDTH = 125000


class UplinkSimulator:

    def __init__(
        self,
        client: TTNClient,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self._rng = rng or random.Random()
        self._clock = clock
        self.generator = ReadingGenerator(
            rng=self._rng, clock=lambda: self._clock().timestamp()
        )

    def build_envelope(
        self,
        device: Device,
        app_id: str,
        reading: SensorReading,
        options: RadioOptions,
    ) -> Dict[str, Any]:
        """Format a TTN v3 uplink message for device carrying reading."""
        rng = self._rng
        now = self._clock()
        rssi = options.rssi if options.rssi is not None else rng.uniform(*RSSI_RANGE)
        snr = options.snr if options.snr is not None else rng.uniform(*SNR_RANGE)
        f_cnt = options.f_cnt if options.f_cnt is not None else rng.randrange(1000)
        f_port = options.f_port if options.f_port is not None else 1
        bandwidth = options.bandwidth if options.bandwidth is not None else DEFAULT_BANDWIDTH
        spreading_factor = (
            options.spreading_factor
            if options.spreading_factor is not None
            else DEFAULT_SPREADING_FACTOR
        )
        frequency = options.frequency if options.frequency is not None else DEFAULT_FREQUENCY

        return {
            "end_device_ids": {
                "device_id": device.name,
                "dev_eui": device.dev_eui,
                "application_ids": {"application_id": app_id},
            },
            "uplink_message": {
                "f_port": f_port,
                "f_cnt": f_cnt,
                "frm_payload": payload_codec.encode_base64(reading),
                "decoded_payload": reading.to_payload(),
                "rx_metadata": [
                    {
                        "gateway_ids": {
                            "gateway_id": SIMULATED_GATEWAY_ID,
                            "eui": SIMULATED_GATEWAY_EUI,
                        },
                        "rssi": rssi,
                        "snr": snr,
                        "time": now.isoformat(),
                        "timestamp": int(now.timestamp() * 1000),
                    }
                ],
                "settings": {
                    "data_rate": {
                        "lora": {
                            "bandwidth": bandwidth,
                            "spreading_factor": spreading_factor,
                        }
                    },
                    "frequency": frequency,
                },
                "received_at": now.isoformat(),
            },
        }

    async def simulate(
        self,
        db: AsyncSession,
        device: Device,
        ttn: TTNSettings,
        payload: Optional[SensorReading] = None,
        options: Optional[RadioOptions] = None,
    ) -> SimulationResult:
        options = options or RadioOptions()
        reading = payload or self.generator.generate(
            device.device_type,
            SimulationParams.model_validate(device.simulation_params or {}),
        )
        envelope = self.build_envelope(device, ttn.app_id, reading, options)

        try:
            await self.client.send_uplink(
                region=ttn.region,
                app_id=ttn.app_id,
                device_id=device.name,
                api_key=ttn.api_key,
                envelope=envelope,
            )
        except ExternalApiError as exc:
            return SimulationResult(
                success=False,
                error="Failed to send uplink to TTN",
                details=exc.details or exc.message,
                status=exc.status_code,
            )

        uplink = envelope["uplink_message"]
        metadata = uplink["rx_metadata"][0]
        db.add(
            Telemetry(
                device_id=device.id,
                payload=uplink["decoded_payload"],
                frm_payload=uplink["frm_payload"],
                rssi=metadata["rssi"],
                snr=metadata["snr"],
                f_cnt=uplink["f_cnt"],
                timestamp=self._clock(),
            )
        )
        await db.flush()
        logger.info(
            "Simulated uplink stored",
            device_id=device.id,
            dev_eui=device.dev_eui,
            rssi=metadata["rssi"],
            snr=metadata["snr"],
        )

        return SimulationResult(
            success=True,
            message="Uplink sent to TTN successfully",
            payload=uplink["decoded_payload"],
        )
