"""Downstream command models."""

from __future__ import annotations

import enum
from typing import Any

from pyaircond.models._base import AircondBaseModel


class CommandType(enum.StrEnum):
    POWER = "POWER"
    SET_TEMPERATURE = "SET_TEMPERATURE"
    SET_FAN_SPEED = "SET_FAN_SPEED"


class DeviceCommand(AircondBaseModel):
    """Raw command as received from a WebSocket client."""

    device_id: str | int
    command: str
    value: Any = None


class CommandResult(AircondBaseModel):
    """Reply frame for a command: ``commandSuccess`` or ``commandError``."""

    event: str
    device_id: str | int | None = None
    command: str | None = None
    value: Any = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.event == "commandSuccess"

    def to_frame(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"event"}, exclude_none=True)
        return {"event": self.event, "data": data}

    @classmethod
    def success(cls, device_id: str | int, command: str, value: Any) -> CommandResult:
        return cls(event="commandSuccess", device_id=device_id, command=command, value=value)

    @classmethod
    def error(cls, message: str) -> CommandResult:
        return cls(event="commandError", message=message)
