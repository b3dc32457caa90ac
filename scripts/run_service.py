#!/usr/bin/env python3
"""Run the HVAC state service.

Two deployment modes share the same WebSocket/HTTP surface:

* ``link``: poll the controllers over the Modbus TCP gateway.
* ``bus``:  follow the field gateway's MQTT telemetry.

Configuration comes from ``AIRCOND_*`` environment variables
(see :meth:`pyaircond.AircondConfig.from_env`).
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from aiohttp import web  # noqa: E402

from pyaircond import AircondConfig, AircondLinkClient, BusStateAggregator, CommandHandler  # noqa: E402
from pyaircond import WebSocketBroadcaster  # noqa: E402
from pyaircond._mqtt import MqttBusClient  # noqa: E402
from pyaircond.exceptions import AircondError  # noqa: E402
from pyaircond.server import create_app  # noqa: E402

_logger = logging.getLogger("pyaircond.run_service")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="HVAC controller state service")
    parser.add_argument("--mode", choices=("link", "bus"), default="link", help="Data source")
    parser.add_argument("--host", default=None, help="Override bind address")
    parser.add_argument("--port", type=int, default=None, help="Override bind port")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Root log level",
    )
    return parser.parse_args()


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)


async def _serve(app: web.Application, config: AircondConfig) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server_host, config.server_port)
    await site.start()
    _logger.info("Serving on http://%s:%s (WebSocket at /ws)", config.server_host, config.server_port)
    return runner


async def run_link(config: AircondConfig, stop: asyncio.Event) -> None:
    broadcaster = WebSocketBroadcaster()
    client = AircondLinkClient(config, broadcaster=broadcaster)
    app = create_app(
        broadcaster=broadcaster,
        commands=CommandHandler(client, config.device_ids),
        snapshot=client.registry.snapshot,
        link_client=client,
    )
    runner = await _serve(app, config)
    try:
        async with client:
            await stop.wait()
    finally:
        await runner.cleanup()


async def run_bus(config: AircondConfig, stop: asyncio.Event) -> None:
    broadcaster = WebSocketBroadcaster()
    bus = MqttBusClient(config.mqtt)
    aggregator = BusStateAggregator(config, bus, broadcaster)
    app = create_app(
        broadcaster=broadcaster,
        commands=CommandHandler(aggregator, config.device_ids),
        snapshot=aggregator.snapshot,
        bus=aggregator,
    )
    aggregator.start()
    runner = await _serve(app, config)
    try:
        try:
            await bus.connect()
        except AircondError as exc:
            _logger.error("MQTT broker unavailable at startup, retrying in background: %s", exc)
        await stop.wait()
    finally:
        await aggregator.stop()
        await bus.close()
        await runner.cleanup()


async def run(args: argparse.Namespace) -> None:
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["server_host"] = args.host
    if args.port:
        overrides["server_port"] = args.port
    config = AircondConfig.from_env(**overrides)

    stop = asyncio.Event()
    _install_signal_handlers(stop)
    if args.mode == "link":
        await run_link(config, stop)
    else:
        await run_bus(config, stop)


def main() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("pymodbus").setLevel(logging.WARNING)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        pass
    except AircondError as exc:
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":
    main()
