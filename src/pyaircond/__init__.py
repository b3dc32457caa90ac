"""pyaircond - Async state coordination for Modbus/MQTT HVAC controller fleets."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyaircond")
except PackageNotFoundError:
    __version__ = "0+local"
from pyaircond.arbiter import LinkArbiter
from pyaircond.broadcast import Broadcaster, WebSocketBroadcaster
from pyaircond.client import AircondLinkClient
from pyaircond.commands import CommandHandler
from pyaircond.config import AircondConfig, BusDeviceConfig, MqttSettings, RegisterMap
from pyaircond.exceptions import (
    AircondConfigError,
    AircondError,
    AircondValidationError,
    BusError,
    CommandRejectedError,
    DeviceConflictError,
    LinkConnectionError,
    LinkError,
    LinkProtocolError,
    LinkTimeoutError,
    WriteConfirmationMismatch,
)
from pyaircond.executor import RequestExecutor
from pyaircond.ingestion.bus import BusStateAggregator
from pyaircond.models import (
    DeviceErrors,
    DevicesState,
    DeviceState,
    LinkStats,
    OperatingMode,
    Request,
    RequestKind,
    RequestPriority,
)
from pyaircond.poller import PollCycleOrchestrator
from pyaircond.queue import RequestQueue
from pyaircond.state import DeviceRegistry
from pyaircond.stats import StatsCollector

__all__ = [
    "__version__",
    "AircondConfig",
    "AircondConfigError",
    "AircondError",
    "AircondLinkClient",
    "AircondValidationError",
    "Broadcaster",
    "BusDeviceConfig",
    "BusError",
    "BusStateAggregator",
    "CommandHandler",
    "CommandRejectedError",
    "DeviceConflictError",
    "DeviceErrors",
    "DeviceRegistry",
    "DeviceState",
    "DevicesState",
    "LinkArbiter",
    "LinkConnectionError",
    "LinkError",
    "LinkProtocolError",
    "LinkStats",
    "LinkTimeoutError",
    "MqttSettings",
    "OperatingMode",
    "PollCycleOrchestrator",
    "RegisterMap",
    "Request",
    "RequestExecutor",
    "RequestKind",
    "RequestPriority",
    "RequestQueue",
    "StatsCollector",
    "WebSocketBroadcaster",
    "WriteConfirmationMismatch",
]
