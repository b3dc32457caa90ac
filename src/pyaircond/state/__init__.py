"""Device state ownership."""

from pyaircond.state.registry import DeviceRegistry

__all__ = ["DeviceRegistry"]
