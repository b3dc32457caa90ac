"""Command intake from downstream clients."""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Any, Protocol

from pydantic import ValidationError

from pyaircond._constants import DEVICE_ID_PREFIX
from pyaircond.exceptions import AircondValidationError, CommandRejectedError
from pyaircond.models.command import CommandResult, CommandType, DeviceCommand
from pyaircond.validation import validate_fan_speed, validate_power, validate_setpoint

_logger = logging.getLogger(__name__)


class DeviceController(Protocol):
    """Setters shared by the link client and the bus aggregator."""

    async def set_power_state(self, device_id: int, is_on: bool) -> bool: ...

    async def set_temperature_setpoint(self, device_id: int, temperature: int) -> bool: ...

    async def set_fan_speed(self, device_id: int, speed: int) -> bool: ...


def parse_device_id(label: Any) -> int:
    """Parse ``"AC_5"`` (or ``"5"``) into ``5``.

    Raises
    ------
    CommandRejectedError
        The label is not a device id.
    """
    if isinstance(label, bool):
        raise CommandRejectedError(f"invalid device id {label!r}")
    if isinstance(label, int):
        return label
    text = str(label).strip()
    if text.startswith(DEVICE_ID_PREFIX):
        text = text[len(DEVICE_ID_PREFIX) :]
    try:
        return int(text)
    except ValueError:
        raise CommandRejectedError(f"invalid device id {label!r}") from None


class CommandHandler:
    """Validate a client command and route it to a :class:`DeviceController`."""

    def __init__(self, controller: DeviceController, device_ids: Collection[int]) -> None:
        self._controller = controller
        self._device_ids = frozenset(device_ids)

    async def handle(self, payload: Any) -> CommandResult:
        try:
            command = DeviceCommand.model_validate(payload)
        except ValidationError:
            _logger.warning("Malformed command payload: %r", payload)
            return CommandResult.error("Command rejected: malformed command")

        _logger.info("Command received: %s %s=%r", command.device_id, command.command, command.value)
        try:
            ok = await self._dispatch(command)
        except CommandRejectedError as exc:
            _logger.warning("%s", exc)
            return CommandResult.error(str(exc))
        except Exception:
            _logger.exception("Command %s for %s failed unexpectedly", command.command, command.device_id)
            return CommandResult.error("Internal server error")

        if not ok:
            return CommandResult.error(f"Command failed: {command.command}")
        _logger.info("Command %s for %s succeeded", command.command, command.device_id)
        return CommandResult.success(command.device_id, command.command, command.value)

    async def _dispatch(self, command: DeviceCommand) -> bool:
        device_id = parse_device_id(command.device_id)
        if device_id not in self._device_ids:
            raise CommandRejectedError(f"unknown device {command.device_id}")
        try:
            kind = CommandType(command.command)
        except ValueError:
            raise CommandRejectedError(f"unknown command {command.command}") from None

        try:
            if kind is CommandType.POWER:
                return await self._controller.set_power_state(device_id, validate_power(command.value))
            if kind is CommandType.SET_TEMPERATURE:
                return await self._controller.set_temperature_setpoint(device_id, validate_setpoint(command.value))
            return await self._controller.set_fan_speed(device_id, validate_fan_speed(command.value))
        except AircondValidationError as exc:
            raise CommandRejectedError(str(exc)) from exc
