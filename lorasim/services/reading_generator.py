"""
services/reading_generator.py
-----------------------------
Synthetic sensor readings within a device's configured bounds.

Primary measurement per device type:
  temperature → temperature in [min_value, max_value], humidity secondary
  humidity    → humidity in [min_value, max_value], temperature secondary
  door        → temperature in [min_value, max_value], door state drawn
                with a 30% chance of being open

Secondary measurements use min_humidity / max_humidity when set, otherwise
the defaults below. Battery is always 3.0–3.6 V.

Pass a seeded random.Random for reproducible output.
"""

import random
import time
from typing import Callable, Optional, Tuple

from lorasim.models.device import DeviceType
from lorasim.schemas.device import SimulationParams
from lorasim.schemas.reading import SensorReading

DEFAULT_TEMPERATURE_RANGE = (-20.0, 40.0)
DEFAULT_HUMIDITY_RANGE = (20.0, 90.0)
BATTERY_RANGE = (3.0, 3.6)
DOOR_OPEN_PROBABILITY = 0.3


def _bounds(
    low: Optional[float], high: Optional[float], default: Tuple[float, float]
) -> Tuple[float, float]:
    return (
        default[0] if low is None else low,
        default[1] if high is None else high,
    )


class ReadingGenerator:

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    def generate(
        self,
        device_type: DeviceType | str,
        params: Optional[SimulationParams] = None,
    ) -> SensorReading:
        params = params or SimulationParams()
        device_type = DeviceType(device_type)
        rng = self._rng

        reading = SensorReading(
            battery=rng.uniform(*BATTERY_RANGE),
            timestamp=int(self._clock()),
        )

        if device_type == DeviceType.humidity:
            humidity_range = _bounds(
                params.min_value if params.min_value is not None else params.min_humidity,
                params.max_value if params.max_value is not None else params.max_humidity,
                DEFAULT_HUMIDITY_RANGE,
            )
            reading.humidity = rng.uniform(*humidity_range)
            reading.temperature = rng.uniform(*DEFAULT_TEMPERATURE_RANGE)
            return reading

        temperature_range = _bounds(
            params.min_value, params.max_value, DEFAULT_TEMPERATURE_RANGE
        )
        reading.temperature = rng.uniform(*temperature_range)

        if device_type == DeviceType.temperature:
            humidity_range = _bounds(
                params.min_humidity, params.max_humidity, DEFAULT_HUMIDITY_RANGE
            )
            reading.humidity = rng.uniform(*humidity_range)
        else:
            reading.door_open = rng.random() < DOOR_OPEN_PROBABILITY

        return reading
