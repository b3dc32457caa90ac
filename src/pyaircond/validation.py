"""Domain checks for values written to a controller."""

from __future__ import annotations

from typing import Any

from pyaircond import _constants as c
from pyaircond.exceptions import AircondValidationError


def _as_int(field: str, value: Any) -> int:
    if isinstance(value, bool):
        raise AircondValidationError(f"{field} must be a number, got {value!r}", field=field, value=value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise AircondValidationError(f"{field} must be an integer, got {value!r}", field=field, value=value)


def validate_setpoint(value: Any) -> int:
    setpoint = _as_int("setpoint", value)
    if not c.SETPOINT_MIN <= setpoint <= c.SETPOINT_MAX:
        raise AircondValidationError(
            f"setpoint must be between {c.SETPOINT_MIN} and {c.SETPOINT_MAX}, got {setpoint}",
            field="setpoint",
            value=value,
        )
    return setpoint


def validate_fan_speed(value: Any) -> int:
    speed = _as_int("fan speed", value)
    if speed not in c.FAN_SPEEDS:
        raise AircondValidationError(
            f"fan speed must be one of {sorted(c.FAN_SPEEDS)}, got {speed}",
            field="fan_speed",
            value=value,
        )
    return speed


def validate_mode(value: Any) -> int:
    mode = _as_int("mode", value)
    if mode not in c.MODES:
        raise AircondValidationError(
            f"mode must be one of {sorted(c.MODES)}, got {mode}",
            field="mode",
            value=value,
        )
    return mode


def validate_power(value: Any) -> bool:
    if not isinstance(value, bool):
        raise AircondValidationError(f"power must be true or false, got {value!r}", field="power", value=value)
    return value
