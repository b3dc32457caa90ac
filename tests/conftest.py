from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from pyaircond._mqtt import MessageHandler
from pyaircond.config import AircondConfig
from pyaircond.exceptions import BusError, LinkConnectionError, LinkTimeoutError
from pyaircond.models.device import DeviceState


class FakeLink:
    """In-memory register banks addressed by the active unit id."""

    def __init__(self, registers: dict[int, dict[int, int]] | None = None) -> None:
        self.registers: dict[int, dict[int, int]] = registers or {}
        self.connected = True
        self.connect_ok = True
        self.connect_calls = 0
        self.active: int | None = None
        self.switches: list[int] = []
        self.reads: list[tuple[int | None, int, int]] = []
        self.writes: list[tuple[int | None, int, int]] = []
        self.unreachable: set[int] = set()
        self.read_failures: dict[tuple[int, int], list[BaseException]] = {}
        self.sticky: dict[tuple[int, int], int] = {}

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self, host: str, port: int) -> None:
        self.connect_calls += 1
        if not self.connect_ok:
            raise LinkConnectionError(f"Cannot connect to {host}:{port}")
        self.connected = True

    def close(self) -> None:
        self.connected = False

    def set_active_address(self, device_id: int) -> None:
        if not self.connected:
            raise LinkConnectionError("Modbus link is not connected")
        self.active = device_id
        self.switches.append(device_id)

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        device = self.active
        self.reads.append((device, address, count))
        if device in self.unreachable:
            raise LinkTimeoutError("Timed out waiting for response", device_id=device)
        failures = self.read_failures.get((device, address))  # type: ignore[arg-type]
        if failures:
            raise failures.pop(0)
        bank = self.registers.get(device, {})  # type: ignore[arg-type]
        return [bank.get(address + offset, 0) for offset in range(count)]

    async def write_register(self, address: int, value: int) -> None:
        device = self.active
        self.writes.append((device, address, value))
        if device in self.unreachable:
            raise LinkTimeoutError("Timed out waiting for response", device_id=device)
        if (device, address) in self.sticky:  # type: ignore[operator]
            return
        self.registers.setdefault(device, {})[address] = value  # type: ignore[index]


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.devices_calls: list[list[DeviceState]] = []
        self.device_calls: list[DeviceState] = []
        self.errors: list[str] = []

    async def broadcast_devices_state(self, devices: Sequence[DeviceState]) -> None:
        self.devices_calls.append(list(devices))

    async def broadcast_device_state(self, device: DeviceState) -> None:
        self.device_calls.append(device)

    async def broadcast_error(self, message: str) -> None:
        self.errors.append(message)


class FakeBus:
    def __init__(self) -> None:
        self.handlers: dict[str, MessageHandler] = {}
        self.published: list[tuple[str, Any]] = []
        self.connected = True
        self.fail_publish = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.connected = True

    def subscribe(self, topic: str, handler: MessageHandler) -> bool:
        if topic in self.handlers:
            return False
        self.handlers[topic] = handler
        return True

    def unsubscribe(self, topic: str) -> bool:
        return self.handlers.pop(topic, None) is not None

    def publish(self, topic: str, value: Any) -> None:
        if self.fail_publish:
            raise BusError("MQTT client is not connected", topic=topic)
        self.published.append((topic, value))

    def connection_info(self) -> dict[str, Any]:
        return {"isConnected": self.connected, "handlersCount": len(self.handlers), "reconnectAttempts": 0}

    def deliver(self, topic: str, payload: str) -> None:
        self.handlers[topic](topic, payload)


def sample_registers() -> dict[int, int]:
    """Unit in cooling mode, 22 °C setpoint, fan 3, 24.5 °C air, 12 °C water."""
    return {
        1601: 1,
        1602: 22,
        1603: 3,
        1606: 89,
        1607: 64,
        1613: 0b1,
        1614: (1 << 2) | (1 << 14),
        1619: 1 << 9,
    }


@pytest.fixture
def fast_config() -> AircondConfig:
    return AircondConfig(
        device_switch_delay=0,
        request_delay=0,
        inter_request_delay=0,
        inter_device_delay=0,
        confirm_delay=0,
        probe_timeout=0.5,
        poll_interval=0.01,
        queue_tick_interval=0.005,
        priority_wait_timeout=1.0,
        debounce_delay=0.05,
        command_settle_delay=0,
    )


@pytest.fixture
def link() -> FakeLink:
    return FakeLink({5: sample_registers(), 6: sample_registers(), 7: sample_registers()})


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()
