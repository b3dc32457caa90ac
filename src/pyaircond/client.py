"""High-level async client for the Modbus link channel."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from pyaircond._client import commands as _commands
from pyaircond._client import reads as _reads
from pyaircond._link import ModbusLinkClient, ProtocolClient
from pyaircond.arbiter import LinkArbiter
from pyaircond.broadcast import Broadcaster
from pyaircond.config import AircondConfig, RegisterMap
from pyaircond.exceptions import LinkConnectionError
from pyaircond.executor import RequestExecutor
from pyaircond.models.device import DeviceErrors, DeviceState, OperatingMode
from pyaircond.models.request import RequestKind, RequestPriority
from pyaircond.models.stats import (
    ConnectionDiagnostics,
    ErrorDiagnostics,
    MasterStats,
    NetworkDiagnostics,
    PerformanceDiagnostics,
    QueueDiagnostics,
)
from pyaircond.poller import PollCycleOrchestrator
from pyaircond.queue import RequestQueue
from pyaircond.state.registry import DeviceRegistry
from pyaircond.stats import StatsCollector

_logger = logging.getLogger(__name__)


class AircondLinkClient:
    """Async client for HVAC controllers behind one Modbus TCP gateway.

    Owns the connection, the link arbiter, the retrying executor, the
    priority queue and the poller.  All of them share one
    :class:`DeviceRegistry`.

    Usage::

        async with AircondLinkClient(config, broadcaster=broadcaster) as client:
            await client.set_temperature_setpoint(5, 22)
    """

    def __init__(
        self,
        config: AircondConfig,
        *,
        broadcaster: Broadcaster,
        link: ProtocolClient | None = None,
        registry: DeviceRegistry | None = None,
    ) -> None:
        self._config = config
        self._link: ProtocolClient = link or ModbusLinkClient(
            request_timeout=config.request_timeout,
            connect_timeout=config.connect_timeout,
        )
        self._broadcaster = broadcaster
        self.registry = registry or DeviceRegistry(config.device_ids)
        self.stats = StatsCollector()
        self.arbiter = LinkArbiter(self._link, switch_delay=config.device_switch_delay)
        self.executor = RequestExecutor(
            self._link,
            self.arbiter,
            self.stats,
            max_retries=config.max_retries,
            request_delay=config.request_delay,
            confirm_delay=config.confirm_delay,
        )
        self.queue = RequestQueue(self.executor, tick_interval=config.queue_tick_interval)
        self.poller = PollCycleOrchestrator(
            self,
            self.registry,
            broadcaster,
            poll_interval=config.poll_interval,
            inter_device_delay=config.inter_device_delay,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> AircondLinkClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Connect (best effort) and start the queue and poller tasks.

        A gateway that is down at startup is retried by the poller.
        """
        await self.connect()
        self.queue.start()
        self.poller.start()

    async def close(self) -> None:
        await self.poller.stop()
        await self.queue.stop()
        self.queue.clear()
        self._link.close()
        self.arbiter.reset()

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @property
    def config(self) -> AircondConfig:
        return self._config

    @property
    def registers(self) -> RegisterMap:
        return self._config.registers

    @property
    def link(self) -> ProtocolClient:
        return self._link

    @property
    def is_connected(self) -> bool:
        return self._link.is_connected

    async def connect(self) -> bool:
        """(Re)open the link; ``False`` when the gateway is unreachable."""
        self.arbiter.reset()
        try:
            await self._link.connect(self._config.host, self._config.port)
        except LinkConnectionError as exc:
            self.stats.record_connection_error()
            _logger.error("Modbus gateway unavailable: %s", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    async def get_operating_mode(self, device_id: int) -> OperatingMode | None:
        return await _reads.get_operating_mode(self, device_id)

    async def get_temperature_setpoint(self, device_id: int) -> int | None:
        return await _reads.get_temperature_setpoint(self, device_id)

    async def get_fan_speed(self, device_id: int) -> int | None:
        return await _reads.get_fan_speed(self, device_id)

    async def get_air_temperature(self, device_id: int) -> float | None:
        return await _reads.get_air_temperature(self, device_id)

    async def get_water_temperature(self, device_id: int) -> float | None:
        return await _reads.get_water_temperature(self, device_id)

    async def get_pump_status(self, device_id: int) -> bool | None:
        return await _reads.get_pump_status(self, device_id)

    async def get_valve_status(self, device_id: int) -> bool | None:
        return await _reads.get_valve_status(self, device_id)

    async def get_errors(self, device_id: int) -> DeviceErrors | None:
        return await _reads.get_errors(self, device_id)

    async def get_protection_state(self, device_id: int) -> int | None:
        return await _reads.get_protection_state(self, device_id)

    async def probe(self, device_id: int) -> bool:
        return await _reads.probe(self, device_id)

    async def read_device_state(self, device_id: int, previous: DeviceState) -> DeviceState:
        return await _reads.read_device_state(self, device_id, previous)

    async def read_registers_batch(self, device_id: int, registers: Iterable[int]) -> dict[int, int]:
        return await _reads.read_registers_batch(self, device_id, registers)

    async def refresh_device(self, device_id: int) -> DeviceState | None:
        """Re-read one device now and push it to subscribers.

        Returns ``None`` when the device did not answer the probe; the
        registry is left untouched in that case.
        """
        if not await self.probe(device_id):
            _logger.warning("Device %s unavailable for immediate refresh", device_id)
            return None
        state = await self.read_device_state(device_id, self.registry.get(device_id))
        self.registry.set(state)
        await self._broadcaster.broadcast_device_state(state)
        return state

    # ------------------------------------------------------------------
    # Confirmed setters
    # ------------------------------------------------------------------

    async def set_operating_mode(self, device_id: int, mode: int | OperatingMode) -> bool:
        return await _commands.set_operating_mode(self, device_id, mode)

    async def set_temperature_setpoint(self, device_id: int, temperature: int) -> bool:
        return await _commands.set_temperature_setpoint(self, device_id, temperature)

    async def set_fan_speed(self, device_id: int, speed: int) -> bool:
        return await _commands.set_fan_speed(self, device_id, speed)

    async def set_power_state(self, device_id: int, is_on: bool) -> bool:
        return await _commands.set_power_state(self, device_id, is_on)

    # ------------------------------------------------------------------
    # Priority queue facade
    # ------------------------------------------------------------------

    async def read_register_with_priority(
        self,
        device_id: int,
        register: int,
        priority: RequestPriority = RequestPriority.NORMAL,
    ) -> int | None:
        handle = self.queue.enqueue(device_id, RequestKind.READ, register, priority=priority)
        try:
            result = await handle.wait(self._config.priority_wait_timeout)
        except TimeoutError:
            _logger.warning("Queued read %s of device %s did not complete", handle.request.id, device_id)
            return None
        return result if isinstance(result, int) and not isinstance(result, bool) else None

    async def write_register_with_priority(
        self,
        device_id: int,
        register: int,
        value: int,
        priority: RequestPriority = RequestPriority.NORMAL,
    ) -> bool:
        handle = self.queue.enqueue(device_id, RequestKind.WRITE, register, value, priority)
        try:
            result = await handle.wait(self._config.priority_wait_timeout)
        except TimeoutError:
            _logger.warning("Queued write %s of device %s did not complete", handle.request.id, device_id)
            return False
        return result is True

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_master_stats(self) -> MasterStats:
        return MasterStats(
            **self.stats.snapshot().model_dump(),
            queue_length=len(self.queue),
            current_device=self.arbiter.active_device,
            is_processing=self.queue.is_processing,
            is_polling=self.poller.is_polling,
            connection_status=self.is_connected,
        )

    def get_network_diagnostics(self) -> NetworkDiagnostics:
        stats = self.stats
        return NetworkDiagnostics(
            connection=ConnectionDiagnostics(
                is_connected=self.is_connected,
                current_device=self.arbiter.active_device,
                is_switching=self.arbiter.is_switching,
            ),
            queue=QueueDiagnostics(
                length=len(self.queue),
                is_processing=self.queue.is_processing,
                next_request=self.queue.peek(),
            ),
            performance=PerformanceDiagnostics(
                success_rate=stats.success_rate,
                average_response_time=stats.average_response_time,
                last_request_time=stats.last_request_time,
            ),
            errors=ErrorDiagnostics(
                total_errors=stats.failed_requests,
                connection_errors=stats.connection_errors,
                timeout_errors=stats.timeout_errors,
                device_conflicts=stats.device_conflicts,
            ),
        )

    def reset_stats(self) -> None:
        """Operator reset: clear counters, drop the queue, forget the active device."""
        self.stats.reset()
        self.queue.clear()
        self.arbiter.reset()
        _logger.info("Statistics and request queue reset")
