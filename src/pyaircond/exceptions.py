"""Custom exception hierarchy for pyaircond."""

from __future__ import annotations

from typing import Any


class AircondError(Exception):
    """Base exception for all pyaircond errors."""


class AircondConfigError(AircondError):
    """Invalid or missing configuration."""


class LinkError(AircondError):
    """Failure on the shared Modbus link."""

    def __init__(
        self,
        message: str,
        *,
        device_id: int | None = None,
    ) -> None:
        self.device_id = device_id
        super().__init__(message)


class LinkConnectionError(LinkError):
    """Gateway unreachable or connection dropped."""


class LinkTimeoutError(LinkError):
    """No response within the request window."""


class DeviceConflictError(LinkError):
    """A response arrived from a device other than the addressed one.

    Seen when a previous request's reply lands after the link was switched
    to another unit.  Counted separately from generic failures.
    """


class LinkProtocolError(LinkError):
    """Device answered with a Modbus exception response."""

    def __init__(
        self,
        message: str,
        *,
        device_id: int | None = None,
        exception_code: int | None = None,
    ) -> None:
        self.exception_code = exception_code
        super().__init__(message, device_id=device_id)


class AircondValidationError(AircondError, ValueError):
    """Value outside the domain accepted by the controller."""

    def __init__(
        self,
        message: str,
        *,
        field: str = "",
        value: Any = None,
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(message)


class WriteConfirmationMismatch(AircondError):
    """Read-back after a write did not match the written value."""

    def __init__(
        self,
        message: str,
        *,
        expected: int,
        actual: int | None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class CommandRejectedError(AircondError):
    """Downstream command refused before reaching a device."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Command rejected: {reason}")


class BusError(AircondError):
    """MQTT publish or subscribe failure."""

    def __init__(
        self,
        message: str,
        *,
        topic: str = "",
    ) -> None:
        self.topic = topic
        super().__init__(message)
