"""Decode rules shared by the link and bus channels.

Both channels see the same controller words; keeping the transforms here
guarantees a temperature or flag decoded from MQTT matches the one decoded
from a Modbus read.
"""

from __future__ import annotations

import math
from typing import Any

from pyaircond import _constants as c
from pyaircond.models.device import DeviceErrors, OperatingMode


def _bit(word: int, position: int) -> bool:
    return (word & (1 << position)) != 0


def raw_to_celsius(raw: int) -> float:
    """Convert a raw temperature word to °C (``raw * 0.5 - 20``)."""
    return raw * c.TEMPERATURE_SCALE + c.TEMPERATURE_OFFSET


def decode_mode(raw: int) -> OperatingMode:
    return OperatingMode(raw)


def decode_pump(word: int) -> bool:
    return _bit(word, c.PUMP_BIT)


def decode_valve(word: int) -> bool:
    return _bit(word, c.VALVE_BIT)


def decode_errors(word: int) -> DeviceErrors:
    """Decode the fault bits of the error/protection word."""
    return DeviceErrors(
        temp_sensor_error=_bit(word, c.TEMP_SENSOR_ERROR_BIT),
        water_temp_sensor1_error=_bit(word, c.WATER_TEMP_SENSOR1_ERROR_BIT),
        water_temp_sensor2_error=_bit(word, c.WATER_TEMP_SENSOR2_ERROR_BIT),
        fan_speed_error=_bit(word, c.FAN_SPEED_ERROR_BIT),
        pump_error=_bit(word, c.PUMP_ERROR_BIT),
    )


def _parse_int(text: str) -> int:
    value = float(text.strip())
    if not value.is_integer():
        raise ValueError(f"expected an integer, got {text!r}")
    return int(value)


def decode_bus_value(field: str, text: str, *, temperatures_raw: bool = True) -> dict[str, Any]:
    """Turn one MQTT payload into a partial :class:`DeviceState` update.

    Parameters
    ----------
    field : str
        State field the topic maps to (see ``BUS_READ_SUFFIXES``).
    text : str
        Payload as published by the field gateway.
    temperatures_raw : bool
        Treat temperature payloads as raw words instead of °C.

    Returns
    -------
    dict
        Field updates ready for ``model_copy(update=...)``.

    Raises
    ------
    ValueError
        The payload is not a number or the field is unknown.
    """
    if field == "mode":
        raw = _parse_int(text)
        return {"mode": decode_mode(raw), "raw_mode": raw}
    if field in ("set_temperature", "fan_speed"):
        return {field: _parse_int(text)}
    if field in ("temperature", "water_temperature"):
        if temperatures_raw:
            return {field: raw_to_celsius(_parse_int(text))}
        number = float(text.strip())
        if not math.isfinite(number):
            raise ValueError(f"expected a finite number, got {text!r}")
        return {field: number}
    if field == "pump_status":
        return {"pump_status": _parse_int(text) == 1}
    if field == "valve_status":
        return {"valve_status": decode_valve(_parse_int(text))}
    raise ValueError(f"unknown bus field {field!r}")
