"""Device state assembled from field gateway MQTT telemetry.

Every topic carries one field of one device.  Messages update the registry
immediately, but subscribers only see a merged snapshot once the bus has
been quiet for ``debounce_delay`` seconds.  Commands published by this
process force an early push so the operator sees the effect promptly.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import UTC, datetime
from typing import Any

from pyaircond._constants import POWER_ON_MODE
from pyaircond._mqtt import BusClient
from pyaircond.broadcast import Broadcaster
from pyaircond.config import AircondConfig
from pyaircond.exceptions import AircondConfigError, AircondValidationError, BusError
from pyaircond.ingestion.decode import decode_bus_value
from pyaircond.models.device import DeviceState, OperatingMode
from pyaircond.state.registry import DeviceRegistry
from pyaircond.validation import validate_fan_speed, validate_setpoint

_logger = logging.getLogger(__name__)


class BusStateAggregator:
    """Debounced merge of per-topic telemetry into device snapshots."""

    def __init__(
        self,
        config: AircondConfig,
        bus: BusClient,
        broadcaster: Broadcaster,
        *,
        registry: DeviceRegistry | None = None,
    ) -> None:
        self._config = config
        self._bus = bus
        self._broadcaster = broadcaster
        self.registry = registry or DeviceRegistry(config.device_ids)
        self._topic_fields: dict[str, tuple[int, str]] = {}
        self._debounce_task: asyncio.Task[None] | None = None
        self._messages_received = 0
        self._messages_dropped = 0
        self._pushes = 0

    @property
    def bus(self) -> BusClient:
        return self._bus

    @property
    def flush_pending(self) -> bool:
        return self._debounce_task is not None and not self._debounce_task.done()

    def start(self) -> int:
        """Subscribe every configured device's topics; returns the topic count."""
        for device_id in self.registry.device_ids:
            topics = self._config.bus_device(device_id).read_topics()
            for field, topic in topics.items():
                self._topic_fields[topic] = (device_id, field)
                self._bus.subscribe(topic, self._on_message)
        _logger.info(
            "Subscribed to %s topics for %s devices",
            len(self._topic_fields),
            len(self.registry),
        )
        return len(self._topic_fields)

    async def stop(self) -> None:
        await self._cancel_debounce()
        for topic in list(self._topic_fields):
            self._bus.unsubscribe(topic)
        self._topic_fields.clear()

    def _on_message(self, topic: str, payload: str) -> None:
        target = self._topic_fields.get(topic)
        if target is None:
            _logger.debug("Ignoring message on unmapped topic %s", topic)
            return
        device_id, field = target
        self.handle_message(device_id, field, payload)

    def handle_message(self, device_id: int, field: str, payload: str) -> bool:
        """Apply one telemetry value; ``False`` if it was dropped."""
        self._messages_received += 1
        try:
            changes: dict[str, Any] = decode_bus_value(
                field,
                payload,
                temperatures_raw=self._config.bus_temperatures_raw,
            )
        except (ValueError, OverflowError) as exc:
            self._messages_dropped += 1
            _logger.warning("Dropping bus value for device %s %s=%r: %s", device_id, field, payload, exc)
            return False

        current = self.registry.get(device_id)
        changes["is_online"] = True
        changes["raw_bus"] = {**current.raw_bus, field: payload}
        self.registry.update(device_id, **changes)
        _logger.debug("Bus update device=%s %s=%s", device_id, field, payload)
        self._schedule_flush()
        return True

    # ------------------------------------------------------------------
    # Debounced push
    # ------------------------------------------------------------------

    def _schedule_flush(self) -> None:
        task = self._debounce_task
        if task is not None and not task.done():
            task.cancel()
        self._debounce_task = asyncio.create_task(self._debounced_flush(), name="pyaircond-bus-debounce")

    async def _debounced_flush(self) -> None:
        await asyncio.sleep(self._config.debounce_delay)
        # Detached: a message arriving mid-push opens a new window.
        self._debounce_task = None
        await self._push()

    async def _cancel_debounce(self) -> None:
        task = self._debounce_task
        self._debounce_task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _push(self) -> None:
        self._pushes += 1
        await self._broadcaster.broadcast_devices_state(self.registry.snapshot())

    async def flush(self) -> None:
        """Push the current snapshot now, discarding any pending window."""
        await self._cancel_debounce()
        await self._push()

    def snapshot(self) -> list[DeviceState]:
        return self.registry.snapshot()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def publish_command(self, device_id: int, field: str, value: int) -> bool:
        """Publish a write command and force a push after the settle delay."""
        try:
            topic = self._config.bus_device(device_id).command_topic(field)
        except AircondConfigError as exc:
            _logger.error("Cannot command device %s: %s", device_id, exc)
            return False
        try:
            self._bus.publish(topic, value)
        except BusError as exc:
            _logger.error("Publishing %s=%s failed: %s", topic, value, exc)
            return False
        _logger.info("Bus command %s = %s", topic, value)

        await asyncio.sleep(self._config.command_settle_delay)
        await self.flush()
        return True

    async def set_power_state(self, device_id: int, is_on: bool) -> bool:
        mode = POWER_ON_MODE if is_on else int(OperatingMode.OFF)
        return await self.publish_command(device_id, "mode", mode)

    async def set_temperature_setpoint(self, device_id: int, temperature: int) -> bool:
        try:
            value = validate_setpoint(temperature)
        except AircondValidationError as exc:
            _logger.error("Device %s: setpoint rejected: %s", device_id, exc)
            return False
        return await self.publish_command(device_id, "set_temperature", value)

    async def set_fan_speed(self, device_id: int, speed: int) -> bool:
        try:
            value = validate_fan_speed(speed)
        except AircondValidationError as exc:
            _logger.error("Device %s: fan speed rejected: %s", device_id, exc)
            return False
        return await self.publish_command(device_id, "fan_speed", value)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        info = self._bus.connection_info()
        online = sum(1 for state in self.registry.snapshot() if state.is_online)
        return {
            **info,
            "status": "connected" if info.get("isConnected") else "disconnected",
            "devices": len(self.registry),
            "onlineDevices": online,
            "topics": len(self._topic_fields),
            "messagesReceived": self._messages_received,
            "messagesDropped": self._messages_dropped,
            "pushes": self._pushes,
            "flushPending": self.flush_pending,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def health(self) -> dict[str, Any]:
        info = self._bus.connection_info()
        connected = bool(info.get("isConnected"))
        return {
            "status": "healthy" if connected else "unhealthy",
            "mqtt": {
                "connected": connected,
                "reconnectAttempts": info.get("reconnectAttempts", 0),
                "handlersCount": info.get("handlersCount", 0),
            },
            "timestamp": datetime.now(UTC).isoformat(),
        }
