"""Data models for pyaircond."""

from pyaircond.models._base import AircondBaseModel, AircondEnum
from pyaircond.models.command import CommandResult, CommandType, DeviceCommand
from pyaircond.models.device import DeviceErrors, DevicesState, DeviceState, OperatingMode, device_label
from pyaircond.models.request import Request, RequestKind, RequestPriority, new_request_id
from pyaircond.models.stats import LinkStats, MasterStats, NetworkDiagnostics

__all__ = [
    "AircondBaseModel",
    "AircondEnum",
    "CommandResult",
    "CommandType",
    "DeviceCommand",
    "DeviceErrors",
    "DeviceState",
    "DevicesState",
    "LinkStats",
    "MasterStats",
    "NetworkDiagnostics",
    "OperatingMode",
    "Request",
    "RequestKind",
    "RequestPriority",
    "device_label",
    "new_request_id",
]
