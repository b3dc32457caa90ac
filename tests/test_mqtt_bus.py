from __future__ import annotations

import asyncio

import pytest

from pyaircond._mqtt import MqttBusClient
from pyaircond.config import MqttSettings
from pyaircond.exceptions import BusError, LinkConnectionError


class _FakePahoClient:
    def __init__(self) -> None:
        self.subscribed: list[str] = []

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscribed.append(topic)

    def unsubscribe(self, topic: str) -> None:
        self.subscribed.remove(topic)


def test_subscribe_while_disconnected_and_duplicates() -> None:
    bus = MqttBusClient(MqttSettings())
    received: list[tuple[str, str]] = []

    assert bus.subscribe("/devices/a/controls/55_PV", lambda t, p: received.append((t, p)))
    assert not bus.subscribe("/devices/a/controls/55_PV", lambda t, p: None)

    bus.dispatch("/devices/a/controls/55_PV", "84")
    bus.dispatch("/devices/a/controls/unknown", "1")

    assert received == [("/devices/a/controls/55_PV", "84")]
    assert bus.connection_info()["handlersCount"] == 1
    assert bus.unsubscribe("/devices/a/controls/55_PV")
    assert not bus.unsubscribe("/devices/a/controls/55_PV")


def test_handler_errors_are_contained() -> None:
    bus = MqttBusClient(MqttSettings())

    def _broken(topic: str, payload: str) -> None:
        raise ValueError(payload)

    bus.subscribe("t", _broken)
    bus.dispatch("t", "boom")


def test_publish_requires_connection() -> None:
    bus = MqttBusClient(MqttSettings())

    with pytest.raises(BusError) as excinfo:
        bus.publish("/devices/a/controls/55_Уставка_W/on", 22)
    assert excinfo.value.topic == "/devices/a/controls/55_Уставка_W/on"


def test_connect_resubscribes_registered_topics() -> None:
    bus = MqttBusClient(MqttSettings())
    fake = _FakePahoClient()
    bus.subscribe("a", lambda t, p: None)
    bus.subscribe("b", lambda t, p: None)
    bus._client = fake  # type: ignore[assignment]

    bus._handle_connect(True, "Success")

    assert bus.is_connected
    assert fake.subscribed == ["a", "b"]
    assert bus.connection_info()["isConnected"] is True


def test_refused_connect_stays_disconnected() -> None:
    bus = MqttBusClient(MqttSettings())

    bus._handle_connect(False, "Not authorized")

    assert not bus.is_connected


@pytest.mark.asyncio
async def test_reconnect_gives_up_after_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    bus = MqttBusClient(MqttSettings(reconnect_attempts=2, reconnect_delay=0))
    calls: list[int] = []

    async def _refuse() -> None:
        calls.append(1)
        raise LinkConnectionError("refused")

    monkeypatch.setattr(bus, "_connect_once", _refuse)

    bus._handle_disconnect("Unspecified error")
    task = bus._reconnect_task
    assert task is not None
    await task

    assert len(calls) == 2
    assert bus.connection_info()["reconnectAttempts"] == 2
    assert not bus.is_connected


@pytest.mark.asyncio
async def test_failed_first_connect_retries_in_background(monkeypatch: pytest.MonkeyPatch) -> None:
    loop = asyncio.get_running_loop()
    bus = MqttBusClient(MqttSettings(reconnect_attempts=3, reconnect_delay=0.01))
    calls: list[int] = []

    def _start() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise LinkConnectionError("broker not up yet")
        loop.call_soon_threadsafe(bus._handle_connect, True, "Success")

    monkeypatch.setattr(bus, "_start", _start)

    with pytest.raises(LinkConnectionError):
        await bus.connect()
    task = bus._reconnect_task
    assert task is not None
    await asyncio.wait_for(task, 1)

    assert len(calls) == 2
    assert bus.is_connected
    assert bus.connection_info()["reconnectAttempts"] == 0


@pytest.mark.asyncio
async def test_failed_connect_after_close_does_not_retry(monkeypatch: pytest.MonkeyPatch) -> None:
    bus = MqttBusClient(MqttSettings(reconnect_delay=0))
    await bus.close()

    async def _refuse() -> None:
        raise LinkConnectionError("refused")

    monkeypatch.setattr(bus, "_connect_once", _refuse)

    with pytest.raises(LinkConnectionError):
        await bus.connect()
    assert bus._reconnect_task is None
