from __future__ import annotations

import os

import pytest

from pyaircond.config import AircondConfig, BusDeviceConfig, MqttSettings
from pyaircond.exceptions import AircondConfigError


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("AIRCOND_"):
            monkeypatch.delenv(key)


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)

    config = AircondConfig.from_env()

    assert config.host == "192.168.1.162"
    assert config.port == 502
    assert config.device_ids == (5, 6, 7)
    assert config.registers.setpoint == 1602
    assert config.registers.protection == config.registers.errors
    assert config.mqtt.port == 1883
    assert config.bus_temperatures_raw is True


def test_env_values_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("AIRCOND_HOST", "10.0.0.5")
    monkeypatch.setenv("AIRCOND_PORT", "1502")
    monkeypatch.setenv("AIRCOND_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("AIRCOND_DEVICE_IDS", "5, 6")
    monkeypatch.setenv("AIRCOND_BUS_DEVICES", "5=wb-a,6=wb-b")
    monkeypatch.setenv("AIRCOND_BUS_TEMPERATURES_RAW", "no")
    monkeypatch.setenv("AIRCOND_MQTT_HOST", "broker.local")
    monkeypatch.setenv("AIRCOND_MQTT_RECONNECT_DELAY", "0.5")

    config = AircondConfig.from_env(port=5020, mqtt={"client_id": "test"})

    assert config.host == "10.0.0.5"
    assert config.port == 5020
    assert config.poll_interval == 2.5
    assert config.device_ids == (5, 6)
    assert dict(config.bus_devices) == {5: "wb-a", 6: "wb-b"}
    assert config.bus_temperatures_raw is False
    assert config.mqtt == MqttSettings(host="broker.local", client_id="test", reconnect_delay=0.5)


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("AIRCOND_PORT", "five-oh-two"),
        ("AIRCOND_REQUEST_TIMEOUT", "fast"),
        ("AIRCOND_DEVICE_IDS", "5,x"),
        ("AIRCOND_DEVICE_IDS", " , "),
        ("AIRCOND_BUS_DEVICES", "5"),
        ("AIRCOND_MQTT_PORT", "mqtt"),
    ],
)
def test_invalid_env_values(monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv(key, value)

    with pytest.raises(AircondConfigError):
        AircondConfig.from_env()


def test_device_id_invariants() -> None:
    with pytest.raises(AircondConfigError):
        AircondConfig(device_ids=())
    with pytest.raises(AircondConfigError):
        AircondConfig(device_ids=(5, 5))
    with pytest.raises(AircondConfigError):
        AircondConfig(max_retries=-1)


def test_bus_topics() -> None:
    device = BusDeviceConfig(device_id=6, broker="wb-modbus-8-1")

    topics = device.read_topics()

    assert topics["set_temperature"] == "/devices/wb-modbus-8-1/controls/56_Уставка_R"
    assert topics["water_temperature"] == "/devices/wb-modbus-8-1/controls/56_CoolingWater"
    assert device.command_topic("fan_speed") == "/devices/wb-modbus-8-1/controls/56_Скорость_W/on"
    with pytest.raises(AircondConfigError):
        device.command_topic("temperature")


def test_bus_device_requires_broker() -> None:
    config = AircondConfig(device_ids=(5, 8))

    assert config.bus_device(5).broker == "wb-modbus-8-0"
    with pytest.raises(AircondConfigError):
        config.bus_device(8)
