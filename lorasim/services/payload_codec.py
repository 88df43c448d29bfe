"""
services/payload_codec.py
-------------------------
Binary frame exchanged with The Things Network as `frm_payload`.

Layout (big-endian, 5 bytes):

    byte 0-1  temperature  int16   0.01 °C   0xFFFF = absent
    byte 2    humidity     uint8   0.5 %RH   0xFF   = absent
    byte 3    battery      uint8   0.01 V    0xFF   = absent
    byte 4    flags        uint8   bit 0 = door open

This is a closed two-party format shared with the FrostGuard decoder, so the
field order and frame length must not change.

Encoding never fails. Values are rounded half-up and then truncated to the
field width; range enforcement belongs to whoever produced the reading.
Decoding is tolerant of short frames: missing trailing bytes decode as
absent fields.
"""

import base64
import math
import struct

from lorasim.schemas.reading import SensorReading

FRAME_LENGTH = 5

TEMPERATURE_SCALE = 100
HUMIDITY_SCALE = 2
BATTERY_SCALE = 100

TEMPERATURE_ABSENT = 0xFFFF
BYTE_ABSENT = 0xFF
FLAG_DOOR_OPEN = 0x01


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def encode(reading: SensorReading) -> bytes:
    if reading.temperature is None:
        temperature = TEMPERATURE_ABSENT
    else:
        temperature = _round_half_up(reading.temperature * TEMPERATURE_SCALE) & 0xFFFF

    if reading.humidity is None:
        humidity = BYTE_ABSENT
    else:
        humidity = _round_half_up(reading.humidity * HUMIDITY_SCALE) & 0xFF

    if reading.battery is None:
        battery = BYTE_ABSENT
    else:
        battery = _round_half_up(reading.battery * BATTERY_SCALE) & 0xFF

    flags = FLAG_DOOR_OPEN if reading.door_open else 0

    return struct.pack(">HBBB", temperature, humidity, battery, flags)


def decode(frame: bytes) -> SensorReading:
    reading = SensorReading()

    if len(frame) >= 2:
        (raw,) = struct.unpack_from(">H", frame, 0)
        if raw != TEMPERATURE_ABSENT:
            (signed,) = struct.unpack_from(">h", frame, 0)
            reading.temperature = signed / TEMPERATURE_SCALE

    if len(frame) >= 3 and frame[2] != BYTE_ABSENT:
        reading.humidity = frame[2] / HUMIDITY_SCALE

    if len(frame) >= 4 and frame[3] != BYTE_ABSENT:
        reading.battery = frame[3] / BATTERY_SCALE

    if len(frame) >= 5:
        reading.door_open = bool(frame[4] & FLAG_DOOR_OPEN)

    return reading


def encode_base64(reading: SensorReading) -> str:
    return base64.b64encode(encode(reading)).decode("ascii")


def decode_base64(frm_payload: str) -> SensorReading:
    """
    Raises:
        ValueError: If frm_payload is not valid base64.
    """
    return decode(base64.b64decode(frm_payload, validate=True))
