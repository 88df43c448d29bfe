"""
schemas/reading.py
------------------
SensorReading: the transient value exchanged between the reading generator,
the payload codec, the uplink envelope (`decoded_payload`) and telemetry
storage. Only its JSON form and its binary encoding are ever persisted.

Units: temperature °C, humidity %RH, battery volts, timestamp Unix seconds.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SensorReading(BaseModel):
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    door_open: Optional[bool] = Field(default=None, alias="doorOpen")
    battery: Optional[float] = None
    timestamp: Optional[int] = None

    model_config = {"populate_by_name": True}

    def to_payload(self) -> Dict[str, Any]:
        """JSON mirror used for decoded_payload and telemetry rows."""
        return self.model_dump(exclude_none=True)
