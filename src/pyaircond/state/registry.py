"""Canonical in-memory device state.

The registry is the single owner of per-device state.  Writers replace whole
:class:`DeviceState` snapshots; readers get immutable models.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from pyaircond.models.device import DeviceState

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DeviceRegistry:
    """Map of device id to its last known state.

    Devices are created once at construction with all-off defaults and are
    never removed.
    """

    def __init__(
        self,
        device_ids: Iterable[int],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or _utcnow
        self._states: dict[int, DeviceState] = {}
        self._updated_at: dict[int, datetime | None] = {}
        for device_id in device_ids:
            self._states[device_id] = DeviceState.initial(device_id)
            self._updated_at[device_id] = None

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    @property
    def device_ids(self) -> tuple[int, ...]:
        return tuple(self._states)

    def get(self, device_id: int) -> DeviceState:
        """Return the state of *device_id*.

        Raises
        ------
        KeyError
            The device is not configured.
        """
        return self._states[device_id]

    def set(self, state: DeviceState) -> DeviceState:
        if state.device_id not in self._states:
            raise KeyError(state.device_id)
        self._states[state.device_id] = state
        self._updated_at[state.device_id] = self._clock()
        return state

    def update(self, device_id: int, **changes: Any) -> DeviceState:
        """Apply field *changes* to the current state and store the result."""
        state = self.get(device_id).model_copy(update=changes)
        return self.set(state)

    def mark_offline(self, device_id: int) -> DeviceState:
        current = self.get(device_id)
        if current.is_online:
            _logger.info("Device %s went offline", device_id)
        return self.update(device_id, is_online=False)

    def mark_all_offline(self) -> list[DeviceState]:
        return [self.mark_offline(device_id) for device_id in self._states]

    def updated_at(self, device_id: int) -> datetime | None:
        """When the device state was last written, ``None`` if never."""
        return self._updated_at[device_id]

    def snapshot(self) -> list[DeviceState]:
        """All states in configured order."""
        return list(self._states.values())
