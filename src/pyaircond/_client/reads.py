"""Internal register readers for :class:`pyaircond.client.AircondLinkClient`.

Every reader goes through :class:`pyaircond.executor.RequestExecutor` and
returns ``None`` when the read could not be completed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from pyaircond.ingestion.decode import decode_errors, decode_mode, decode_pump, decode_valve, raw_to_celsius
from pyaircond.models.device import DeviceErrors, DeviceState, OperatingMode

if TYPE_CHECKING:
    from pyaircond.client import AircondLinkClient

_logger = logging.getLogger(__name__)


async def _read(client: AircondLinkClient, device_id: int, register: int, label: str) -> int | None:
    return await client.executor.read_register(device_id, register, label)


async def get_operating_mode(client: AircondLinkClient, device_id: int) -> OperatingMode | None:
    raw = await _read(client, device_id, client.registers.mode, "read operating mode")
    return None if raw is None else decode_mode(raw)


async def get_temperature_setpoint(client: AircondLinkClient, device_id: int) -> int | None:
    return await _read(client, device_id, client.registers.setpoint, "read temperature setpoint")


async def get_fan_speed(client: AircondLinkClient, device_id: int) -> int | None:
    return await _read(client, device_id, client.registers.fan_speed, "read fan speed")


async def get_air_temperature(client: AircondLinkClient, device_id: int) -> float | None:
    raw = await _read(client, device_id, client.registers.air_temperature, "read air temperature")
    return None if raw is None else raw_to_celsius(raw)


async def get_water_temperature(client: AircondLinkClient, device_id: int) -> float | None:
    raw = await _read(client, device_id, client.registers.water_temperature, "read water temperature")
    return None if raw is None else raw_to_celsius(raw)


async def get_pump_status(client: AircondLinkClient, device_id: int) -> bool | None:
    raw = await _read(client, device_id, client.registers.pump, "read pump status")
    return None if raw is None else decode_pump(raw)


async def get_valve_status(client: AircondLinkClient, device_id: int) -> bool | None:
    raw = await _read(client, device_id, client.registers.valve, "read valve status")
    return None if raw is None else decode_valve(raw)


async def get_errors(client: AircondLinkClient, device_id: int) -> DeviceErrors | None:
    raw = await _read(client, device_id, client.registers.errors, "read errors")
    return None if raw is None else decode_errors(raw)


async def get_protection_state(client: AircondLinkClient, device_id: int) -> int | None:
    return await _read(client, device_id, client.registers.protection, "read protection state")


async def probe(client: AircondLinkClient, device_id: int) -> bool:
    """Single bounded read of the mode register, outside the retry path.

    Not counted in the link statistics.
    """
    if not await client.arbiter.acquire(device_id):
        _logger.warning("Probe of device %s skipped: link busy switching", device_id)
        return False
    try:
        await asyncio.wait_for(
            client.link.read_holding_registers(client.registers.mode, 1),
            timeout=client.config.probe_timeout,
        )
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        _logger.warning("Device %s did not answer probe: %s", device_id, exc)
        return False
    _logger.debug("Device %s answered probe", device_id)
    return True


async def read_device_state(client: AircondLinkClient, device_id: int, previous: DeviceState) -> DeviceState:
    """Read every parameter in order and assemble a fresh online state.

    Failed reads fall back to ``0``/``False``; failed error reads keep the
    previous error flags.
    """
    delay = client.config.inter_request_delay

    raw_mode = await _read(client, device_id, client.registers.mode, "read operating mode")
    await asyncio.sleep(delay)
    setpoint = await get_temperature_setpoint(client, device_id)
    await asyncio.sleep(delay)
    fan_speed = await get_fan_speed(client, device_id)
    await asyncio.sleep(delay)
    air_temperature = await get_air_temperature(client, device_id)
    await asyncio.sleep(delay)
    water_temperature = await get_water_temperature(client, device_id)
    await asyncio.sleep(delay)
    pump = await get_pump_status(client, device_id)
    await asyncio.sleep(delay)
    valve = await get_valve_status(client, device_id)
    await asyncio.sleep(delay)
    errors = await get_errors(client, device_id)
    await asyncio.sleep(delay)
    protection = await get_protection_state(client, device_id)
    await asyncio.sleep(delay)

    return previous.model_copy(
        update={
            "is_online": True,
            "mode": OperatingMode.UNKNOWN if raw_mode is None else decode_mode(raw_mode),
            "raw_mode": raw_mode,
            "set_temperature": setpoint or 0,
            "fan_speed": fan_speed or 0,
            "temperature": air_temperature or 0.0,
            "water_temperature": water_temperature or 0.0,
            "pump_status": pump or False,
            "valve_status": valve or False,
            "errors": errors if errors is not None else previous.errors,
            "protection_state": protection or 0,
        }
    )


def _group_consecutive(registers: Iterable[int]) -> list[list[int]]:
    groups: list[list[int]] = []
    for register in sorted(set(registers)):
        if groups and register == groups[-1][-1] + 1:
            groups[-1].append(register)
        else:
            groups.append([register])
    return groups


async def read_registers_batch(client: AircondLinkClient, device_id: int, registers: Iterable[int]) -> dict[int, int]:
    """Read *registers* using one request per run of consecutive addresses.

    Registers of failed runs are missing from the result.
    """
    results: dict[int, int] = {}
    for group in _group_consecutive(registers):
        start, count = group[0], len(group)

        async def _read_group(start: int = start, count: int = count) -> list[int]:
            return await client.link.read_holding_registers(start, count)

        values = await client.executor.execute(device_id, _read_group, f"batch read {start}-{start + count - 1}")
        if values is None:
            continue
        results.update(zip(group, values, strict=False))
    return results
