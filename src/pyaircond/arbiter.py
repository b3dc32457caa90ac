"""Ownership of the shared Modbus link.

Only one unit can be addressed at a time, and the gateway needs a settle
delay after every switch before replies are attributed correctly.  The
arbiter serializes switches and rejects concurrent ones instead of queueing
them; callers treat a rejection as "could not switch" and back off.
"""

from __future__ import annotations

import asyncio
import enum
import logging

from pyaircond._link import ProtocolClient

_logger = logging.getLogger(__name__)


class ArbiterState(enum.StrEnum):
    IDLE = "idle"
    SWITCHING = "switching"
    ACTIVE = "active"


class LinkArbiter:
    """Fail-fast owner of the link's active device address."""

    def __init__(self, link: ProtocolClient, *, switch_delay: float = 0.2) -> None:
        self._link = link
        self._switch_delay = switch_delay
        self._active_device: int | None = None
        self._switching = False

    @property
    def active_device(self) -> int | None:
        return self._active_device

    @property
    def is_switching(self) -> bool:
        return self._switching

    @property
    def state(self) -> ArbiterState:
        if self._switching:
            return ArbiterState.SWITCHING
        if self._active_device is None:
            return ArbiterState.IDLE
        return ArbiterState.ACTIVE

    async def acquire(self, device_id: int) -> bool:
        """Make *device_id* the active unit.

        Returns ``False`` immediately while another switch is in progress.
        No delay is applied when *device_id* is already active.
        """
        # Check-and-set happens before the first await, so no other task can
        # interleave between them on the event loop.
        if self._switching:
            _logger.debug("Link busy switching, rejecting device %s", device_id)
            return False
        if self._active_device == device_id:
            return True

        self._switching = True
        previous = self._active_device
        try:
            _logger.debug("Switching link from device %s to %s", previous, device_id)
            await asyncio.sleep(self._switch_delay)
            try:
                self._link.set_active_address(device_id)
            except Exception:
                _logger.warning("Could not switch link to device %s", device_id, exc_info=True)
                return False
            self._active_device = device_id
            return True
        finally:
            self._switching = False

    def reset(self) -> None:
        """Forget the active device (operator reset or reconnect)."""
        self._active_device = None
        self._switching = False
