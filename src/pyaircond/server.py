"""aiohttp application: WebSocket push, command intake and read endpoints."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from aiohttp import WSMsgType, web

from pyaircond.broadcast import WebSocketBroadcaster
from pyaircond.client import AircondLinkClient
from pyaircond.commands import CommandHandler, parse_device_id
from pyaircond.exceptions import CommandRejectedError
from pyaircond.ingestion.bus import BusStateAggregator
from pyaircond.models.device import DeviceState

_logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], list[DeviceState]]

BROADCASTER_KEY = web.AppKey("broadcaster", WebSocketBroadcaster)
COMMANDS_KEY = web.AppKey("commands", CommandHandler)
SNAPSHOT_KEY = web.AppKey("snapshot", SnapshotProvider)
LINK_CLIENT_KEY = web.AppKey("link_client", AircondLinkClient)
BUS_KEY = web.AppKey("bus", BusStateAggregator)


async def _handle_frame(request: web.Request, ws: web.WebSocketResponse, raw: str) -> None:
    broadcaster = request.app[BROADCASTER_KEY]
    try:
        frame = json.loads(raw)
    except ValueError:
        await broadcaster.send(ws, "error", {"message": "Invalid JSON"})
        return
    if not isinstance(frame, dict):
        await broadcaster.send(ws, "error", {"message": "Frame must be an object"})
        return

    event = frame.get("event")
    if event == "subscribe":
        broadcaster.subscribe(ws)
        _logger.debug("Client subscribed to device updates")
    elif event == "unsubscribe":
        broadcaster.unsubscribe(ws)
        _logger.debug("Client unsubscribed from device updates")
    elif event == "command":
        result = await request.app[COMMANDS_KEY].handle(frame.get("data"))
        await broadcaster.send(ws, result.event, result.to_frame()["data"])
    else:
        await broadcaster.send(ws, "error", {"message": f"Unknown event: {event}"})


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    broadcaster = request.app[BROADCASTER_KEY]
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)
    # Bus mode joins new sockets to state pushes; link mode waits for "subscribe".
    broadcaster.add_client(ws, subscribe=BUS_KEY in request.app)
    try:
        devices = request.app[SNAPSHOT_KEY]()
        if devices:
            await broadcaster.send(ws, "devicesState", broadcaster.devices_payload(devices))
        async for msg in ws:
            if msg.type is WSMsgType.TEXT:
                await _handle_frame(request, ws, msg.data)
            elif msg.type is WSMsgType.ERROR:
                _logger.warning("WebSocket closed with error: %s", ws.exception())
    finally:
        broadcaster.remove_client(ws)
    return ws


async def get_state(request: web.Request) -> web.Response:
    broadcaster = request.app[BROADCASTER_KEY]
    return web.json_response(broadcaster.devices_payload(request.app[SNAPSHOT_KEY]()))


async def get_device_state(request: web.Request) -> web.Response:
    try:
        device_id = parse_device_id(request.match_info["device_id"])
    except CommandRejectedError as exc:
        raise web.HTTPBadRequest(text=exc.reason) from exc
    for state in request.app[SNAPSHOT_KEY]():
        if state.device_id == device_id:
            return web.json_response(state.to_payload())
    raise web.HTTPNotFound(text=f"unknown device {device_id}")


async def get_stats(request: web.Request) -> web.Response:
    return web.json_response(request.app[LINK_CLIENT_KEY].get_master_stats().to_payload())


async def get_diagnostics(request: web.Request) -> web.Response:
    return web.json_response(request.app[LINK_CLIENT_KEY].get_network_diagnostics().to_payload())


async def reset_stats(request: web.Request) -> web.Response:
    client = request.app[LINK_CLIENT_KEY]
    client.reset_stats()
    return web.json_response({"reset": True, "stats": client.get_master_stats().to_payload()})


async def get_bus_status(request: web.Request) -> web.Response:
    return web.json_response(request.app[BUS_KEY].status())


async def get_bus_health(request: web.Request) -> web.Response:
    health: dict[str, Any] = request.app[BUS_KEY].health()
    status = 200 if health["status"] == "healthy" else 503
    return web.json_response(health, status=status)


def create_app(
    *,
    broadcaster: WebSocketBroadcaster,
    commands: CommandHandler,
    snapshot: SnapshotProvider,
    link_client: AircondLinkClient | None = None,
    bus: BusStateAggregator | None = None,
) -> web.Application:
    """Build the application for whichever channel is running.

    Link statistics routes exist only with *link_client*; bus routes only
    with *bus*.
    """
    app = web.Application()
    app[BROADCASTER_KEY] = broadcaster
    app[COMMANDS_KEY] = commands
    app[SNAPSHOT_KEY] = snapshot

    app.router.add_get("/ws", websocket_handler)
    app.router.add_get("/state", get_state)
    app.router.add_get("/state/{device_id}", get_device_state)

    if link_client is not None:
        app[LINK_CLIENT_KEY] = link_client
        app.router.add_get("/stats", get_stats)
        app.router.add_get("/diagnostics", get_diagnostics)
        app.router.add_post("/stats/reset", reset_stats)

    if bus is not None:
        app[BUS_KEY] = bus
        app.router.add_get("/bus/status", get_bus_status)
        app.router.add_get("/bus/health", get_bus_health)

    return app
