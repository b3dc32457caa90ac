"""Service configuration for pyaircond."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pyaircond import _constants as c
from pyaircond.exceptions import AircondConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value.strip())
    except ValueError as exc:
        raise AircondConfigError(f"{env_key} must be {kind.__name__}, got {value!r}") from exc


def _env_device_ids(value: str) -> tuple[int, ...]:
    ids: list[int] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        ids.append(int(_env_number("AIRCOND_DEVICE_IDS", part, int)))
    if not ids:
        raise AircondConfigError("AIRCOND_DEVICE_IDS must list at least one device id")
    return tuple(ids)


def _env_bus_devices(value: str) -> dict[int, str]:
    """Parse ``"5=wb-modbus-8-0,6=wb-modbus-8-1"``."""
    brokers: dict[int, str] = {}
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, broker = part.partition("=")
        if not sep or not broker.strip():
            raise AircondConfigError(f"AIRCOND_BUS_DEVICES entry {part!r} must look like <id>=<broker>")
        brokers[int(_env_number("AIRCOND_BUS_DEVICES", key, int))] = broker.strip()
    return brokers


@dataclasses.dataclass(frozen=True)
class RegisterMap:
    """Holding register addresses of one controller model."""

    mode: int = c.REG_MODE
    setpoint: int = c.REG_SETPOINT
    fan_speed: int = c.REG_FAN_SPEED
    air_temperature: int = c.REG_AIR_TEMPERATURE
    water_temperature: int = c.REG_WATER_TEMPERATURE
    pump: int = c.REG_PUMP
    errors: int = c.REG_ERRORS
    valve: int = c.REG_VALVE

    @property
    def protection(self) -> int:
        """Protection state shares the error word."""
        return self.errors


@dataclasses.dataclass(frozen=True)
class BusDeviceConfig:
    """Topic table of one device on the field gateway."""

    device_id: int
    broker: str

    def _topic(self, suffix: str) -> str:
        return f"/devices/{self.broker}/controls/5{self.device_id}_{suffix}"

    def read_topics(self) -> dict[str, str]:
        """Map state field name to its telemetry topic."""
        return {field: self._topic(suffix) for field, suffix in c.BUS_READ_SUFFIXES.items()}

    def command_topic(self, field: str) -> str:
        """Return the ``.../on`` topic used to write *field*."""
        try:
            suffix = c.BUS_COMMAND_SUFFIXES[field]
        except KeyError:
            raise AircondConfigError(f"Field {field!r} is not writable over the bus") from None
        return self._topic(suffix) + c.BUS_COMMAND_ON_SUFFIX


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker connection settings.

    Parameters
    ----------
    host : str
        Broker hostname or address.
    port : int
        Broker TCP port.
    client_id : str
        MQTT client identifier.  Empty lets paho generate one.
    username, password : str or None
        Optional broker credentials.
    keepalive : int
        MQTT keepalive in seconds.
    reconnect_attempts : int
        Reconnect attempts after an unexpected disconnect before giving up.
    reconnect_delay : float
        Seconds between reconnect attempts.
    """

    host: str = "192.168.1.12"
    port: int = 1883
    client_id: str = "pyaircond"
    username: str | None = None
    password: str | None = None
    keepalive: int = 60
    reconnect_attempts: int = 5
    reconnect_delay: float = 5.0


def _default_bus_devices() -> dict[int, str]:
    return {5: "wb-modbus-8-0", 6: "wb-modbus-8-1", 7: "wb-modbus-8-2"}


@dataclasses.dataclass(frozen=True)
class AircondConfig:
    """Service configuration.

    Parameters
    ----------
    host : str
        Modbus TCP gateway address.
    port : int
        Modbus TCP gateway port.
    connect_timeout : float
        Seconds allowed for establishing the TCP connection.
    request_timeout : float
        Per-request response window handed to the Modbus client.
    device_ids : tuple of int
        Unit ids of the controllers behind the gateway, in polling order.
    max_retries : int
        Extra attempts after the first one for each link operation.
    device_switch_delay : float
        Settle delay applied whenever the link changes its target unit.
    request_delay : float
        Base of the linear retry backoff.
    inter_request_delay : float
        Pause between consecutive register reads of one device.
    inter_device_delay : float
        Pause between devices within a poll cycle.
    confirm_delay : float
        Pause between a write and its confirmation read.
    probe_timeout : float
        Upper bound on the availability probe.
    poll_interval : float
        Seconds between poll cycles.
    queue_tick_interval : float
        Period of the priority queue drain task.
    priority_wait_timeout : float
        How long the priority read/write facade waits for its request.
    debounce_delay : float
        Quiet period on the bus before a merged snapshot is pushed.
    command_settle_delay : float
        Pause after a bus command before the forced snapshot push.
    bus_temperatures_raw : bool
        Whether bus temperature topics carry raw register words (converted
        with the same linear transform as the link) or engineering units.
    registers : RegisterMap
        Register addresses.
    mqtt : MqttSettings
        Broker settings.
    bus_devices : mapping of int to str
        Device id to gateway broker name.
    server_host, server_port
        Bind address of the WebSocket/HTTP server.
    """

    host: str = "192.168.1.162"
    port: int = 502
    connect_timeout: float = 10.0
    request_timeout: float = 5.0
    device_ids: tuple[int, ...] = (5, 6, 7)
    max_retries: int = 3
    device_switch_delay: float = 0.2
    request_delay: float = 0.1
    inter_request_delay: float = 0.2
    inter_device_delay: float = 0.5
    confirm_delay: float = 0.1
    probe_timeout: float = 3.0
    poll_interval: float = 10.0
    queue_tick_interval: float = 0.1
    priority_wait_timeout: float = 10.0
    debounce_delay: float = 1.0
    command_settle_delay: float = 0.3
    bus_temperatures_raw: bool = True
    registers: RegisterMap = dataclasses.field(default_factory=RegisterMap)
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)
    bus_devices: Mapping[int, str] = dataclasses.field(default_factory=_default_bus_devices)
    server_host: str = "0.0.0.0"
    server_port: int = 3001

    def __post_init__(self) -> None:
        if not self.device_ids:
            raise AircondConfigError("device_ids must not be empty")
        if len(set(self.device_ids)) != len(self.device_ids):
            raise AircondConfigError(f"device_ids contains duplicates: {self.device_ids}")
        if self.max_retries < 0:
            raise AircondConfigError("max_retries must be >= 0")

    def bus_device(self, device_id: int) -> BusDeviceConfig:
        """Return the topic table for *device_id*."""
        try:
            return BusDeviceConfig(device_id=device_id, broker=self.bus_devices[device_id])
        except KeyError:
            raise AircondConfigError(f"No bus broker configured for device {device_id}") from None

    @classmethod
    def from_env(cls, **overrides: Any) -> AircondConfig:
        """Create configuration from environment variables.

        Reads optional ``AIRCOND_*`` variables.  Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        AircondConfig
            Populated configuration.

        Raises
        ------
        AircondConfigError
            A numeric variable could not be parsed.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP: dict[str, tuple[str, type[Any]]] = {
            "AIRCOND_MQTT_HOST": ("host", str),
            "AIRCOND_MQTT_PORT": ("port", int),
            "AIRCOND_MQTT_CLIENT_ID": ("client_id", str),
            "AIRCOND_MQTT_USERNAME": ("username", str),
            "AIRCOND_MQTT_PASSWORD": ("password", str),
            "AIRCOND_MQTT_KEEPALIVE": ("keepalive", int),
            "AIRCOND_MQTT_RECONNECT_ATTEMPTS": ("reconnect_attempts", int),
            "AIRCOND_MQTT_RECONNECT_DELAY": ("reconnect_delay", float),
        }
        for env_key, (field_name, kind) in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is None:
                continue
            mqtt_kwargs[field_name] = val if kind is str else _env_number(env_key, val, kind)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        _ENV_CONFIG_MAP: dict[str, tuple[str, type[Any]]] = {
            "AIRCOND_HOST": ("host", str),
            "AIRCOND_PORT": ("port", int),
            "AIRCOND_CONNECT_TIMEOUT": ("connect_timeout", float),
            "AIRCOND_REQUEST_TIMEOUT": ("request_timeout", float),
            "AIRCOND_MAX_RETRIES": ("max_retries", int),
            "AIRCOND_DEVICE_SWITCH_DELAY": ("device_switch_delay", float),
            "AIRCOND_REQUEST_DELAY": ("request_delay", float),
            "AIRCOND_INTER_REQUEST_DELAY": ("inter_request_delay", float),
            "AIRCOND_INTER_DEVICE_DELAY": ("inter_device_delay", float),
            "AIRCOND_CONFIRM_DELAY": ("confirm_delay", float),
            "AIRCOND_PROBE_TIMEOUT": ("probe_timeout", float),
            "AIRCOND_POLL_INTERVAL": ("poll_interval", float),
            "AIRCOND_QUEUE_TICK_INTERVAL": ("queue_tick_interval", float),
            "AIRCOND_PRIORITY_WAIT_TIMEOUT": ("priority_wait_timeout", float),
            "AIRCOND_DEBOUNCE_DELAY": ("debounce_delay", float),
            "AIRCOND_COMMAND_SETTLE_DELAY": ("command_settle_delay", float),
            "AIRCOND_SERVER_HOST": ("server_host", str),
            "AIRCOND_SERVER_PORT": ("server_port", int),
        }
        for env_key, (field_name, kind) in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            config_kwargs[field_name] = val if kind is str else _env_number(env_key, val, kind)

        ids_env = env.get("AIRCOND_DEVICE_IDS")
        if ids_env is not None and "device_ids" not in overrides:
            config_kwargs["device_ids"] = _env_device_ids(ids_env)

        brokers_env = env.get("AIRCOND_BUS_DEVICES")
        if brokers_env is not None and "bus_devices" not in overrides:
            config_kwargs["bus_devices"] = _env_bus_devices(brokers_env)

        if "bus_temperatures_raw" not in overrides:
            config_kwargs["bus_temperatures_raw"] = _env_bool(env.get("AIRCOND_BUS_TEMPERATURES_RAW"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
