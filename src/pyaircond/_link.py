"""Modbus TCP link adapter.

The gateway multiplexes several unit ids over one TCP connection.  The
adapter remembers the active unit set by :meth:`ModbusLinkClient.set_active_address`
and addresses every request to it; switching units is coordinated by
:class:`pyaircond.arbiter.LinkArbiter`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException, ModbusIOException

from pyaircond.exceptions import LinkConnectionError, LinkProtocolError, LinkTimeoutError

_logger = logging.getLogger(__name__)


class ProtocolClient(Protocol):
    """Minimal register-level client used by the link core."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self, host: str, port: int) -> None: ...

    def close(self) -> None: ...

    def set_active_address(self, device_id: int) -> None: ...

    async def read_holding_registers(self, address: int, count: int) -> list[int]: ...

    async def write_register(self, address: int, value: int) -> None: ...


class ModbusLinkClient:
    """:class:`ProtocolClient` over ``pymodbus.client.AsyncModbusTcpClient``."""

    def __init__(
        self,
        *,
        request_timeout: float = 5.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self._request_timeout = request_timeout
        self._connect_timeout = connect_timeout
        self._client: AsyncModbusTcpClient | None = None
        self._unit_id: int | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.connected

    @property
    def active_address(self) -> int | None:
        return self._unit_id

    async def connect(self, host: str, port: int) -> None:
        """Open the TCP connection.

        Raises
        ------
        LinkConnectionError
            Gateway unreachable within ``connect_timeout``.
        """
        self.close()
        # Retries are owned by RequestExecutor; pymodbus must fail fast.
        client = AsyncModbusTcpClient(host, port=port, timeout=self._request_timeout, retries=0)
        try:
            connected = await asyncio.wait_for(client.connect(), timeout=self._connect_timeout)
        except (TimeoutError, OSError, ModbusException) as exc:
            client.close()
            raise LinkConnectionError(f"Cannot connect to {host}:{port}: {exc}") from exc
        if not connected:
            client.close()
            raise LinkConnectionError(f"Cannot connect to {host}:{port}")
        self._client = client
        _logger.info("Modbus link connected host=%s port=%s", host, port)

    def close(self) -> None:
        client = self._client
        self._client = None
        self._unit_id = None
        if client is not None:
            client.close()
            _logger.debug("Modbus link closed")

    def set_active_address(self, device_id: int) -> None:
        self._require_client()
        self._unit_id = device_id

    def _require_client(self) -> AsyncModbusTcpClient:
        if self._client is None or not self._client.connected:
            raise LinkConnectionError("Modbus link is not connected", device_id=self._unit_id)
        return self._client

    def _require_unit(self) -> int:
        if self._unit_id is None:
            raise LinkConnectionError("No active device selected on the link")
        return self._unit_id

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        client = self._require_client()
        unit = self._require_unit()
        try:
            response = await client.read_holding_registers(address, count=count, device_id=unit)
        except ModbusIOException as exc:
            raise LinkTimeoutError(f"No response reading {address}: {exc}", device_id=unit) from exc
        except ConnectionException as exc:
            raise LinkConnectionError(str(exc), device_id=unit) from exc
        except ModbusException as exc:
            raise LinkProtocolError(str(exc), device_id=unit) from exc
        if response.isError():
            code = getattr(response, "exception_code", None)
            raise LinkProtocolError(
                f"Exception response reading {address}: code={code}",
                device_id=unit,
                exception_code=code,
            )
        return list(response.registers)

    async def write_register(self, address: int, value: int) -> None:
        client = self._require_client()
        unit = self._require_unit()
        try:
            response = await client.write_register(address, value, device_id=unit)
        except ModbusIOException as exc:
            raise LinkTimeoutError(f"No response writing {address}: {exc}", device_id=unit) from exc
        except ConnectionException as exc:
            raise LinkConnectionError(str(exc), device_id=unit) from exc
        except ModbusException as exc:
            raise LinkProtocolError(str(exc), device_id=unit) from exc
        if response.isError():
            code = getattr(response, "exception_code", None)
            raise LinkProtocolError(
                f"Exception response writing {address}: code={code}",
                device_id=unit,
                exception_code=code,
            )
