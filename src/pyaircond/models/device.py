"""Per-device state models."""

from __future__ import annotations

from pydantic import Field, computed_field

from pyaircond._constants import DEVICE_ID_PREFIX
from pyaircond.models._base import AircondBaseModel, AircondEnum


class OperatingMode(AircondEnum):
    """Controller operating mode (register 1601)."""

    UNKNOWN = -1
    OFF = 0
    COOL = 1
    HEAT = 2
    FAN = 3
    AUTO = 4


class DeviceErrors(AircondBaseModel):
    """Fault flags decoded from the error word."""

    temp_sensor_error: bool = False
    water_temp_sensor1_error: bool = False
    water_temp_sensor2_error: bool = False
    fan_speed_error: bool = False
    pump_error: bool = False

    @property
    def has_fault(self) -> bool:
        return (
            self.temp_sensor_error
            or self.water_temp_sensor1_error
            or self.water_temp_sensor2_error
            or self.fan_speed_error
            or self.pump_error
        )


def device_label(device_id: int) -> str:
    """Return the external ``AC_<n>`` label for *device_id*."""
    return f"{DEVICE_ID_PREFIX}{device_id}"


class DeviceState(AircondBaseModel):
    """Last known state of one controller.

    ``is_online=False`` only flags the device as unreachable; the other
    fields keep their last observed values.
    """

    device_id: int
    id: str
    name: str
    is_online: bool = False
    mode: OperatingMode = OperatingMode.OFF
    # Last mode word as read; None until read or after a failed read.
    raw_mode: int | None = Field(default=None, exclude=True)
    set_temperature: int = 0
    fan_speed: int = 0
    temperature: float = 0.0
    water_temperature: float = 0.0
    pump_status: bool = False
    valve_status: bool = False
    errors: DeviceErrors = Field(default_factory=DeviceErrors)
    protection_state: int = 0
    raw_bus: dict[str, str] = Field(default_factory=dict)

    @computed_field(alias="isOn")  # type: ignore[prop-decorator]
    @property
    def is_on(self) -> bool:
        """Powered whenever the raw mode word is non-zero, including modes outside :class:`OperatingMode`."""
        return self.raw_mode is not None and self.raw_mode != 0

    @classmethod
    def initial(cls, device_id: int) -> DeviceState:
        """All-off placeholder used until the first observation."""
        return cls(
            device_id=device_id,
            id=device_label(device_id),
            name=f"Air conditioner 5{device_id}",
        )


class DevicesState(AircondBaseModel):
    """Collection pushed to subscribers after a poll cycle or bus burst."""

    devices: list[DeviceState]
    client_count: int = 0
