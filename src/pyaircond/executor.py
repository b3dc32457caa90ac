"""Retrying execution of link operations."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pyaircond._constants import CONFLICT_MARKERS, TIMEOUT_MARKERS
from pyaircond._link import ProtocolClient
from pyaircond.arbiter import LinkArbiter
from pyaircond.exceptions import DeviceConflictError, LinkConnectionError, LinkTimeoutError, WriteConfirmationMismatch
from pyaircond.stats import StatsCollector

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureKind(enum.StrEnum):
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    GENERIC = "generic"


def classify_failure(exc: BaseException) -> FailureKind:
    """Map a link exception to its failure class.

    Structured exception types win; the message substrings cover errors
    raised by lower layers without a dedicated type.
    """
    if isinstance(exc, DeviceConflictError):
        return FailureKind.CONFLICT
    if isinstance(exc, LinkTimeoutError | TimeoutError):
        return FailureKind.TIMEOUT
    if isinstance(exc, LinkConnectionError):
        return FailureKind.CONNECTION
    message = str(exc).lower()
    if any(marker in message for marker in CONFLICT_MARKERS):
        return FailureKind.CONFLICT
    if any(marker in message for marker in TIMEOUT_MARKERS):
        return FailureKind.TIMEOUT
    return FailureKind.GENERIC


class RequestExecutor:
    """Run one link operation with arbitration, retries and statistics.

    :meth:`execute` never raises for operation failures; exhausted retries or
    a lost arbitration yield ``None``.
    """

    def __init__(
        self,
        link: ProtocolClient,
        arbiter: LinkArbiter,
        stats: StatsCollector,
        *,
        max_retries: int = 3,
        request_delay: float = 0.1,
        confirm_delay: float = 0.1,
    ) -> None:
        self._link = link
        self._arbiter = arbiter
        self._stats = stats
        self._max_retries = max_retries
        self._request_delay = request_delay
        self._confirm_delay = confirm_delay

    @property
    def link(self) -> ProtocolClient:
        return self._link

    async def execute(
        self,
        device_id: int,
        operation: Callable[[], Awaitable[T]],
        label: str,
    ) -> T | None:
        for attempt in range(self._max_retries + 1):
            if not await self._arbiter.acquire(device_id):
                _logger.warning("Could not switch link to device %s for %s", device_id, label)
                return None

            if attempt > 0:
                await asyncio.sleep(self._request_delay * (attempt + 1))

            started = time.monotonic()
            try:
                result = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                kind = classify_failure(exc)
                if kind is FailureKind.CONFLICT:
                    self._stats.record_conflict()
                    _logger.warning("Device conflict on %s for device %s: %s", label, device_id, exc)
                elif kind is FailureKind.TIMEOUT:
                    self._stats.record_timeout()
                    _logger.warning("Timeout on %s for device %s: %s", label, device_id, exc)
                elif kind is FailureKind.CONNECTION:
                    self._stats.record_connection_error()
                    _logger.warning("Link connection error on %s for device %s: %s", label, device_id, exc)
                else:
                    _logger.debug("%s failed for device %s: %s", label, device_id, exc)
                self._stats.record(False)

                if attempt == self._max_retries:
                    _logger.error(
                        "%s failed for device %s after %s attempts: %s",
                        label,
                        device_id,
                        attempt + 1,
                        exc,
                    )
                    return None
                await asyncio.sleep(self._request_delay * (attempt + 2))
                continue

            self._stats.record(True, time.monotonic() - started)
            return result
        return None

    async def read_register(self, device_id: int, register: int, label: str) -> int | None:
        """Read one holding register; ``None`` when all attempts failed."""

        async def _read() -> int:
            registers = await self._link.read_holding_registers(register, 1)
            return registers[0]

        return await self.execute(device_id, _read, label)

    async def write_register(self, device_id: int, register: int, value: int, label: str) -> bool:
        async def _write() -> bool:
            await self._link.write_register(register, value)
            return True

        return await self.execute(device_id, _write, label) is not None

    async def write_confirmed(self, device_id: int, register: int, value: int, label: str) -> bool:
        """Write *value* and confirm it by reading the register back.

        Returns ``True`` only when the read-back equals *value*.
        """
        if not await self.write_register(device_id, register, value, label):
            _logger.error("%s: write of %s to device %s failed", label, value, device_id)
            return False

        await asyncio.sleep(self._confirm_delay)

        actual = await self.read_register(device_id, register, f"{label} (confirm)")
        if actual != value:
            mismatch = WriteConfirmationMismatch(
                f"{label}: device {device_id} register {register} reads {actual}, expected {value}",
                expected=value,
                actual=actual,
            )
            _logger.error("%s", mismatch)
            return False

        _logger.info("%s confirmed for device %s: %s", label, device_id, value)
        return True
