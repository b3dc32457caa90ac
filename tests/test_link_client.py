from __future__ import annotations

import dataclasses

import pytest

from conftest import FakeLink, RecordingBroadcaster
from pyaircond.client import AircondLinkClient
from pyaircond.config import AircondConfig
from pyaircond.exceptions import LinkTimeoutError
from pyaircond.models.device import OperatingMode
from pyaircond.models.request import RequestKind, RequestPriority


def _client(config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster) -> AircondLinkClient:
    return AircondLinkClient(config, broadcaster=broadcaster, link=link)


@pytest.mark.asyncio
async def test_readers_decode_registers(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)

    assert await client.get_operating_mode(5) is OperatingMode.COOL
    assert await client.get_temperature_setpoint(5) == 22
    assert await client.get_air_temperature(5) == 24.5
    assert await client.get_water_temperature(5) == 12.0
    assert await client.get_pump_status(5) is True
    assert await client.get_valve_status(5) is True
    errors = await client.get_errors(5)
    assert errors is not None
    assert errors.temp_sensor_error and errors.pump_error
    assert not errors.fan_speed_error


@pytest.mark.asyncio
async def test_read_device_state_substitutes_failed_reads(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    config = dataclasses.replace(fast_config, max_retries=0)
    client = _client(config, link, broadcaster)
    link.read_failures[(5, 1601)] = [LinkTimeoutError("no response")]
    link.read_failures[(5, 1606)] = [LinkTimeoutError("no response")]

    state = await client.read_device_state(5, client.registry.get(5))

    assert state.is_online
    assert state.mode is OperatingMode.UNKNOWN
    assert state.is_on is False
    assert state.temperature == 0.0
    assert state.set_temperature == 22
    assert state.fan_speed == 3


@pytest.mark.asyncio
async def test_read_device_state_keeps_unlisted_mode_word(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)
    link.registers[5][1601] = 5

    state = await client.read_device_state(5, client.registry.get(5))

    assert state.mode is OperatingMode.UNKNOWN
    assert state.raw_mode == 5
    assert state.is_on is True

    link.registers[5][1601] = 0
    state = await client.read_device_state(5, state)
    assert state.is_on is False


@pytest.mark.asyncio
async def test_setpoint_round_trip_refreshes_subscribers(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)

    assert await client.set_temperature_setpoint(5, 22) is True

    assert link.writes == [(5, 1602, 22)]
    assert client.registry.get(5).set_temperature == 22
    assert client.registry.get(5).is_online
    assert [state.device_id for state in broadcaster.device_calls] == [5]


@pytest.mark.asyncio
async def test_setpoint_not_confirmed(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    link.registers[5][1602] = 20
    link.sticky[(5, 1602)] = 20
    client = _client(fast_config, link, broadcaster)

    assert await client.set_temperature_setpoint(5, 22) is False
    assert broadcaster.device_calls == []


@pytest.mark.parametrize("temperature", [15, 31])
@pytest.mark.asyncio
async def test_out_of_range_setpoint_does_no_io(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster, temperature: int
) -> None:
    client = _client(fast_config, link, broadcaster)

    assert await client.set_temperature_setpoint(5, temperature) is False

    assert link.reads == []
    assert link.writes == []
    assert client.stats.total_requests == 0


@pytest.mark.asyncio
async def test_invalid_fan_speed_and_mode_rejected(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)

    assert await client.set_fan_speed(5, 5) is False
    assert await client.set_operating_mode(5, 7) is False
    assert link.writes == []


@pytest.mark.asyncio
async def test_power_writes_mode(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)

    assert await client.set_power_state(6, True)
    assert await client.set_power_state(6, False)

    assert [write for write in link.writes if write[1] == 1601] == [(6, 1601, 2), (6, 1601, 0)]
    assert client.registry.get(6).is_on is False


@pytest.mark.asyncio
async def test_refresh_skips_unreachable_device(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    link.unreachable.add(7)
    client = _client(fast_config, link, broadcaster)

    assert await client.refresh_device(7) is None
    assert broadcaster.device_calls == []
    assert client.stats.total_requests == 0


@pytest.mark.asyncio
async def test_batch_read_groups_consecutive_registers(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)

    values = await client.read_registers_batch(5, [1607, 1601, 1602, 1603, 1606])

    assert link.reads == [(5, 1601, 3), (5, 1606, 2)]
    assert values == {1601: 1, 1602: 22, 1603: 3, 1606: 89, 1607: 64}


@pytest.mark.asyncio
async def test_priority_facade_uses_queue(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)
    client.queue.start()
    try:
        assert await client.read_register_with_priority(5, 1603, RequestPriority.HIGH) == 3
        assert await client.write_register_with_priority(5, 1603, 1) is True
    finally:
        await client.queue.stop()
    assert link.registers[5][1603] == 1


@pytest.mark.asyncio
async def test_priority_facade_times_out_without_drain(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    config = dataclasses.replace(fast_config, priority_wait_timeout=0.01)
    client = _client(config, link, broadcaster)

    assert await client.read_register_with_priority(5, 1603) is None
    assert await client.write_register_with_priority(5, 1603, 1) is False
    assert len(client.queue) == 2


@pytest.mark.asyncio
async def test_connect_failure_is_counted(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    link.connect_ok = False
    client = _client(fast_config, link, broadcaster)

    assert await client.connect() is False
    assert client.stats.connection_errors == 1


@pytest.mark.asyncio
async def test_stats_and_diagnostics(
    fast_config: AircondConfig, link: FakeLink, broadcaster: RecordingBroadcaster
) -> None:
    client = _client(fast_config, link, broadcaster)
    await client.get_fan_speed(5)
    client.queue.enqueue(6, RequestKind.READ, 1601)

    stats = client.get_master_stats()
    assert stats.total_requests == 1
    assert stats.success_rate == 100.0
    assert stats.current_device == 5
    assert stats.queue_length == 1
    assert stats.connection_status is True

    diagnostics = client.get_network_diagnostics().to_payload()
    assert diagnostics["connection"]["currentDevice"] == 5
    assert diagnostics["queue"]["nextRequest"]["deviceId"] == 6
    assert diagnostics["errors"]["totalErrors"] == 0

    client.reset_stats()
    assert client.get_master_stats().total_requests == 0
    assert len(client.queue) == 0
    assert client.arbiter.active_device is None
