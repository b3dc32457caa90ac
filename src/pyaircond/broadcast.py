"""Downstream push of device state to WebSocket clients."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from aiohttp import web

from pyaircond.models.device import DevicesState, DeviceState

_logger = logging.getLogger(__name__)


class Broadcaster(Protocol):
    """Sink for finished state snapshots."""

    async def broadcast_devices_state(self, devices: Sequence[DeviceState]) -> None: ...

    async def broadcast_device_state(self, device: DeviceState) -> None: ...

    async def broadcast_error(self, message: str) -> None: ...


class WebSocketBroadcaster:
    """:class:`Broadcaster` writing JSON frames to aiohttp WebSockets.

    Every connected socket is counted in ``clientCount``; only subscribed
    sockets receive state frames.
    """

    def __init__(self) -> None:
        self._clients: set[web.WebSocketResponse] = set()
        self._subscribers: set[web.WebSocketResponse] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def add_client(self, ws: web.WebSocketResponse, *, subscribe: bool = False) -> None:
        self._clients.add(ws)
        if subscribe:
            self._subscribers.add(ws)
        _logger.info("WebSocket client connected, total=%s", len(self._clients))

    def remove_client(self, ws: web.WebSocketResponse) -> None:
        self._clients.discard(ws)
        self._subscribers.discard(ws)
        _logger.info("WebSocket client disconnected, total=%s", len(self._clients))

    def subscribe(self, ws: web.WebSocketResponse) -> None:
        if ws in self._clients:
            self._subscribers.add(ws)

    def unsubscribe(self, ws: web.WebSocketResponse) -> None:
        self._subscribers.discard(ws)

    async def send(self, ws: web.WebSocketResponse, event: str, data: Any) -> bool:
        """Send one frame to *ws*; ``False`` and drop the socket if it is gone."""
        if ws.closed:
            self.remove_client(ws)
            return False
        try:
            await ws.send_json({"event": event, "data": data})
        except (ConnectionResetError, RuntimeError) as exc:
            _logger.debug("Dropping WebSocket client after send failure: %s", exc)
            self.remove_client(ws)
            return False
        return True

    async def _emit(self, event: str, data: Any) -> int:
        delivered = 0
        for ws in list(self._subscribers):
            if await self.send(ws, event, data):
                delivered += 1
        return delivered

    def devices_payload(self, devices: Sequence[DeviceState]) -> dict[str, Any]:
        return DevicesState(devices=list(devices), client_count=self.client_count).to_payload()

    async def broadcast_devices_state(self, devices: Sequence[DeviceState]) -> None:
        delivered = await self._emit("devicesState", self.devices_payload(devices))
        _logger.debug("Broadcast %s device states to %s clients", len(devices), delivered)

    async def broadcast_device_state(self, device: DeviceState) -> None:
        payload = device.to_payload()
        payload["clientCount"] = self.client_count
        await self._emit("deviceState", payload)

    async def broadcast_error(self, message: str) -> None:
        _logger.debug("Broadcast error: %s", message)
        await self._emit("error", {"message": message})
