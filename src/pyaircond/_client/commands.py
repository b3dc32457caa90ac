"""Internal confirmed setters for :class:`pyaircond.client.AircondLinkClient`.

Each setter validates its value before any I/O, writes through the
executor, confirms by reading back, and refreshes the device state so
subscribers see the change without waiting for the next poll cycle.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pyaircond._constants import POWER_ON_MODE
from pyaircond.exceptions import AircondValidationError
from pyaircond.models.device import OperatingMode
from pyaircond.validation import validate_fan_speed, validate_mode, validate_setpoint

if TYPE_CHECKING:
    from collections.abc import Callable

    from pyaircond.client import AircondLinkClient

_logger = logging.getLogger(__name__)


async def _confirmed_write(
    client: AircondLinkClient,
    device_id: int,
    register: int,
    value: Any,
    validator: Callable[[Any], int],
    label: str,
) -> bool:
    try:
        checked = validator(value)
    except AircondValidationError as exc:
        _logger.error("Device %s: %s rejected: %s", device_id, label, exc)
        return False

    _logger.info("Device %s: %s -> %s", device_id, label, checked)
    if not await client.executor.write_confirmed(device_id, register, checked, label):
        return False
    await client.refresh_device(device_id)
    return True


async def set_operating_mode(client: AircondLinkClient, device_id: int, mode: int | OperatingMode) -> bool:
    return await _confirmed_write(client, device_id, client.registers.mode, mode, validate_mode, "set operating mode")


async def set_temperature_setpoint(client: AircondLinkClient, device_id: int, temperature: int) -> bool:
    return await _confirmed_write(
        client,
        device_id,
        client.registers.setpoint,
        temperature,
        validate_setpoint,
        "set temperature setpoint",
    )


async def set_fan_speed(client: AircondLinkClient, device_id: int, speed: int) -> bool:
    return await _confirmed_write(client, device_id, client.registers.fan_speed, speed, validate_fan_speed, "set fan speed")


async def set_power_state(client: AircondLinkClient, device_id: int, is_on: bool) -> bool:
    mode = POWER_ON_MODE if is_on else int(OperatingMode.OFF)
    _logger.info("Device %s: power %s (mode %s)", device_id, "on" if is_on else "off", mode)
    return await set_operating_mode(client, device_id, mode)
