"""Internal MQTT runtime for the field gateway bus.

paho-mqtt runs its network loop on its own thread; every callback hops onto
the asyncio loop with ``call_soon_threadsafe`` so topic handlers always run
on the event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from pyaircond.config import MqttSettings
from pyaircond.exceptions import BusError, LinkConnectionError

MessageHandler = Callable[[str, str], None]


class BusClient(Protocol):
    """Topic-level publish/subscribe client."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    def subscribe(self, topic: str, handler: MessageHandler) -> bool: ...

    def unsubscribe(self, topic: str) -> bool: ...

    def publish(self, topic: str, value: str | int | float) -> None: ...

    def connection_info(self) -> dict[str, Any]: ...


class MqttBusClient:
    """:class:`BusClient` over a threaded paho-mqtt client.

    Handlers are kept across reconnects and re-subscribed on every
    successful connect.  After an unexpected disconnect the client retries
    ``reconnect_attempts`` times, ``reconnect_delay`` seconds apart.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._connected = False
        self._closing = False
        self._handlers: dict[str, MessageHandler] = {}
        self._reconnect_attempts = 0
        self._reconnect_task: asyncio.Task[None] | None = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def topics(self) -> list[str]:
        return list(self._handlers)

    def connection_info(self) -> dict[str, Any]:
        return {
            "isConnected": self._connected,
            "host": self._settings.host,
            "port": self._settings.port,
            "clientId": self._settings.client_id,
            "handlersCount": len(self._handlers),
            "reconnectAttempts": self._reconnect_attempts,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._settings.client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if self._settings.username:
            client.username_pw_set(self._settings.username, self._settings.password)

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._call_on_loop(self._handle_connect, not reason_code.is_failure, str(reason_code))

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            payload = msg.payload.decode("utf-8", errors="replace")
            self._call_on_loop(self.dispatch, msg.topic, payload)

        def on_disconnect(
            _c: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._call_on_loop(self._handle_disconnect, str(reason_code))

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect
        return client

    def _call_on_loop(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    async def connect(self) -> None:
        """Connect to the broker and start the network thread.

        Raises
        ------
        LinkConnectionError
            The broker could not be reached. Reconnect attempts are
            scheduled in the background before this is raised.
        """
        try:
            await self._connect_once()
        except LinkConnectionError:
            self._schedule_reconnect()
            raise

    async def _connect_once(self) -> None:
        self._loop = self._loop or asyncio.get_running_loop()
        self._closing = False
        await self._loop.run_in_executor(None, self._start)

    def _start(self) -> None:
        self._stop_client()
        client = self._build_client()
        self._client = client
        self._logger.info("Connecting to MQTT broker %s:%s", self._settings.host, self._settings.port)
        try:
            client.connect(self._settings.host, self._settings.port, keepalive=self._settings.keepalive)
        except OSError as exc:
            self._client = None
            raise LinkConnectionError(
                f"MQTT broker {self._settings.host}:{self._settings.port} unreachable: {exc}"
            ) from exc
        client.loop_start()

    def _stop_client(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()

    async def close(self) -> None:
        self._closing = True
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        loop = self._loop or asyncio.get_running_loop()
        await loop.run_in_executor(None, self._stop_client)
        self._connected = False
        self._logger.info("MQTT client closed")

    def _handle_connect(self, ok: bool, reason: str) -> None:
        if not ok:
            self._logger.warning("MQTT connect refused: %s", reason)
            return
        self._connected = True
        self._reconnect_attempts = 0
        self._logger.info("MQTT connected, subscribing %s topics", len(self._handlers))
        client = self._client
        if client is None:
            return
        for topic in self._handlers:
            client.subscribe(topic, qos=0)

    def _handle_disconnect(self, reason: str) -> None:
        self._connected = False
        if self._closing:
            return
        self._logger.warning("MQTT disconnected: %s", reason)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closing:
            return
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect(), name="pyaircond-mqtt-reconnect")

    async def _reconnect(self) -> None:
        while not self._connected and not self._closing:
            if self._reconnect_attempts >= self._settings.reconnect_attempts:
                self._logger.error(
                    "MQTT reconnect gave up after %s attempts",
                    self._reconnect_attempts,
                )
                return
            self._reconnect_attempts += 1
            await asyncio.sleep(self._settings.reconnect_delay)
            if self._connected or self._closing:
                return
            self._logger.info(
                "MQTT reconnect attempt %s/%s",
                self._reconnect_attempts,
                self._settings.reconnect_attempts,
            )
            try:
                await self._connect_once()
            except LinkConnectionError as exc:
                self._logger.warning("MQTT reconnect failed: %s", exc)
                continue
            # Wait for on_connect before counting the next attempt.
            await asyncio.sleep(self._settings.reconnect_delay)

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def subscribe(self, topic: str, handler: MessageHandler) -> bool:
        """Register *handler* for *topic*; ``False`` if already subscribed.

        Topics registered while disconnected are subscribed on connect.
        """
        if topic in self._handlers:
            self._logger.warning("Already subscribed to %s", topic)
            return False
        self._handlers[topic] = handler
        if self._connected and self._client is not None:
            self._client.subscribe(topic, qos=0)
        self._logger.debug("Subscribed to %s", topic)
        return True

    def unsubscribe(self, topic: str) -> bool:
        if self._handlers.pop(topic, None) is None:
            return False
        if self._connected and self._client is not None:
            self._client.unsubscribe(topic)
        self._logger.debug("Unsubscribed from %s", topic)
        return True

    def dispatch(self, topic: str, payload: str) -> None:
        """Route one message to its handler (runs on the event loop)."""
        handler = self._handlers.get(topic)
        if handler is None:
            self._logger.debug("No handler for topic %s", topic)
            return
        try:
            handler(topic, payload)
        except Exception:
            self._logger.exception("Handler for %s failed", topic)

    def publish(self, topic: str, value: str | int | float) -> None:
        """Publish *value* as text.

        Raises
        ------
        BusError
            Not connected, or paho rejected the message.
        """
        client = self._client
        if client is None or not self._connected:
            raise BusError("MQTT client is not connected", topic=topic)
        info = client.publish(topic, str(value), qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise BusError(f"MQTT publish failed rc={info.rc}", topic=topic)
        self._logger.debug("Published %s = %s", topic, value)
