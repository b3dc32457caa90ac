"""Periodic poll cycle over every configured device on the link."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from typing import Protocol

from pyaircond.broadcast import Broadcaster
from pyaircond.models.device import DeviceState
from pyaircond.state.registry import DeviceRegistry

_logger = logging.getLogger(__name__)

DEVICE_UNAVAILABLE = "Device unavailable"


class LinkReader(Protocol):
    """Link operations a poll cycle needs."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> bool: ...

    async def probe(self, device_id: int) -> bool: ...

    async def read_device_state(self, device_id: int, previous: DeviceState) -> DeviceState: ...


class PollState(enum.StrEnum):
    IDLE = "idle"
    POLLING = "polling"


class PollCycleOrchestrator:
    """Visit every device in configured order and publish the result.

    A cycle requested while another one is running is dropped, not queued.
    One device failing never aborts the cycle; it is marked offline and the
    next device is polled.
    """

    def __init__(
        self,
        reader: LinkReader,
        registry: DeviceRegistry,
        broadcaster: Broadcaster,
        *,
        poll_interval: float = 10.0,
        inter_device_delay: float = 0.5,
    ) -> None:
        self._reader = reader
        self._registry = registry
        self._broadcaster = broadcaster
        self._poll_interval = poll_interval
        self._inter_device_delay = inter_device_delay
        self._state = PollState.IDLE
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def is_polling(self) -> bool:
        return self._state is PollState.POLLING

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> list[DeviceState] | None:
        """Run one cycle; ``None`` when a cycle was already in progress."""
        if self._state is PollState.POLLING:
            _logger.warning("Poll cycle already in progress, skipping")
            return None
        self._state = PollState.POLLING
        try:
            return await self._cycle()
        finally:
            self._state = PollState.IDLE

    async def _cycle(self) -> list[DeviceState]:
        if not self._reader.is_connected:
            _logger.info("Link disconnected, reconnecting before poll")
            await self._reader.connect()
            if not self._reader.is_connected:
                _logger.warning("Link still disconnected, marking all devices offline")
                offline = self._registry.mark_all_offline()
                await self._broadcaster.broadcast_error(DEVICE_UNAVAILABLE)
                return offline

        updated: list[DeviceState] = []
        device_ids = self._registry.device_ids
        for index, device_id in enumerate(device_ids):
            updated.append(await self._poll_device(device_id))
            if index < len(device_ids) - 1:
                await asyncio.sleep(self._inter_device_delay)

        online = sum(1 for state in updated if state.is_online)
        _logger.debug("Poll cycle finished: %s/%s devices online", online, len(updated))
        await self._broadcaster.broadcast_devices_state(updated)
        return updated

    async def _poll_device(self, device_id: int) -> DeviceState:
        try:
            if not await self._reader.probe(device_id):
                return self._registry.mark_offline(device_id)
            state = await self._reader.read_device_state(device_id, self._registry.get(device_id))
            return self._registry.set(state)
        except asyncio.CancelledError:
            raise
        except Exception:
            _logger.exception("Polling device %s failed", device_id)
            return self._registry.mark_offline(device_id)

    async def run(self) -> None:
        """Poll forever, sleeping ``poll_interval`` seconds after each cycle."""
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.exception("Poll cycle failed")
            await asyncio.sleep(self._poll_interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name="pyaircond-poller")
        _logger.info("Poller started, interval=%ss", self._poll_interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.info("Poller stopped")
