from __future__ import annotations

from typing import Any

import pytest

from pyaircond.commands import CommandHandler, parse_device_id
from pyaircond.exceptions import CommandRejectedError


class _FakeController:
    def __init__(self, *, result: bool = True, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, int, Any]] = []
        self.result = result
        self.error = error

    async def _record(self, name: str, device_id: int, value: Any) -> bool:
        self.calls.append((name, device_id, value))
        if self.error is not None:
            raise self.error
        return self.result

    async def set_power_state(self, device_id: int, is_on: bool) -> bool:
        return await self._record("power", device_id, is_on)

    async def set_temperature_setpoint(self, device_id: int, temperature: int) -> bool:
        return await self._record("setpoint", device_id, temperature)

    async def set_fan_speed(self, device_id: int, speed: int) -> bool:
        return await self._record("fan", device_id, speed)


@pytest.mark.parametrize(("label", "expected"), [("AC_5", 5), ("6", 6), (7, 7), (" AC_12 ", 12)])
def test_parse_device_id(label: Any, expected: int) -> None:
    assert parse_device_id(label) == expected


@pytest.mark.parametrize("label", ["AC_x", "", True, "AC_"])
def test_parse_device_id_rejects(label: Any) -> None:
    with pytest.raises(CommandRejectedError):
        parse_device_id(label)


@pytest.mark.asyncio
async def test_command_success_frame() -> None:
    controller = _FakeController()
    handler = CommandHandler(controller, [5, 6, 7])

    result = await handler.handle({"deviceId": "AC_5", "command": "SET_TEMPERATURE", "value": 22})

    assert result.ok
    assert controller.calls == [("setpoint", 5, 22)]
    assert result.to_frame() == {
        "event": "commandSuccess",
        "data": {"deviceId": "AC_5", "command": "SET_TEMPERATURE", "value": 22},
    }


@pytest.mark.asyncio
async def test_power_and_fan_commands_route() -> None:
    controller = _FakeController()
    handler = CommandHandler(controller, [5, 6, 7])

    assert (await handler.handle({"deviceId": "AC_6", "command": "POWER", "value": True})).ok
    assert (await handler.handle({"deviceId": 7, "command": "SET_FAN_SPEED", "value": 4})).ok
    assert controller.calls == [("power", 6, True), ("fan", 7, 4)]


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ("not a command", "Command rejected: malformed command"),
        ({"deviceId": "AC_5"}, "Command rejected: malformed command"),
        ({"deviceId": "AC_9", "command": "POWER", "value": True}, "Command rejected: unknown device AC_9"),
        ({"deviceId": "AC_x", "command": "POWER", "value": True}, "Command rejected: invalid device id 'AC_x'"),
        ({"deviceId": "AC_5", "command": "REBOOT", "value": 1}, "Command rejected: unknown command REBOOT"),
    ],
)
@pytest.mark.asyncio
async def test_rejected_commands(payload: Any, message: str) -> None:
    controller = _FakeController()
    handler = CommandHandler(controller, [5, 6, 7])

    result = await handler.handle(payload)

    assert not result.ok
    assert result.message == message
    assert controller.calls == []


@pytest.mark.parametrize(
    "payload",
    [
        {"deviceId": "AC_5", "command": "SET_TEMPERATURE", "value": 31},
        {"deviceId": "AC_5", "command": "SET_TEMPERATURE", "value": "22"},
        {"deviceId": "AC_5", "command": "SET_FAN_SPEED", "value": 5},
        {"deviceId": "AC_5", "command": "POWER", "value": 1},
    ],
)
@pytest.mark.asyncio
async def test_invalid_values_are_rejected_before_dispatch(payload: dict[str, Any]) -> None:
    controller = _FakeController()
    handler = CommandHandler(controller, [5])

    result = await handler.handle(payload)

    assert result.message is not None and result.message.startswith("Command rejected: ")
    assert controller.calls == []


@pytest.mark.asyncio
async def test_controller_failure_and_crash() -> None:
    failing = CommandHandler(_FakeController(result=False), [5])
    crashing = CommandHandler(_FakeController(error=RuntimeError("boom")), [5])
    payload = {"deviceId": "AC_5", "command": "POWER", "value": False}

    assert (await failing.handle(payload)).message == "Command failed: POWER"
    crash = await crashing.handle(payload)
    assert crash.message == "Internal server error"
    assert crash.to_frame() == {"event": "commandError", "data": {"message": "Internal server error"}}
